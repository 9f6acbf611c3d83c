"""
Database Schemas for the Netpay storefront

Each Pydantic model represents a MongoDB collection. The collection name is the
lowercased class name (e.g., EmiApplication -> "emiapplication").
"""
from datetime import datetime
from typing import List, Optional, Literal

from pydantic import BaseModel, Field, field_validator

from pricing import parse_emi_plan

ORDER_STATUSES = Literal["Pending", "EMI Pending", "Confirmed", "Delivered", "Cancelled"]


class User(BaseModel):
    username: str
    phone: str = Field(..., min_length=7, max_length=15)
    password_hash: str
    is_admin: bool = False


class Product(BaseModel):
    category: Literal["precious", "other"]
    model: str = Field(..., description="Display name of the product")
    price: Optional[float] = Field(None, ge=0, description="Base price")
    booking_amount: Optional[float] = Field(None, ge=0, description="Market (booking) price")
    netpay_price: Optional[float] = Field(None, ge=0, description="Price charged for a Netpay order")
    offer: Optional[int] = Field(None, ge=0, le=100, description="Discount percent")
    offer_time: Optional[str] = Field(None, description="Legacy daily offer end, HH:MM")
    offer_end_date_time: Optional[datetime] = None
    full_specs: Optional[str] = None
    image_url: Optional[str] = None
    netpay_qr_url: Optional[str] = None
    product_video: Optional[str] = None
    buy_one_get_one: bool = False
    emi_months: List[int] = Field(default_factory=list, description="Allowed installment counts")
    down_payment_amount: Optional[float] = Field(None, ge=0)

    @field_validator("emi_months", mode="before")
    @classmethod
    def _plan(cls, v):
        return parse_emi_plan(v)

    @field_validator("buy_one_get_one", mode="before")
    @classmethod
    def _yes_no(cls, v):
        if isinstance(v, str):
            return v.strip().lower() in ("yes", "true", "1", "on")
        return bool(v)


class Order(BaseModel):
    user_id: str
    product_id: str
    product_name: Optional[str] = None
    amount: float = Field(..., ge=0)
    units: int = Field(1, ge=1, description="2 for buy-one-get-one Netpay orders")
    payment_type: Literal["Netpay", "EMI"] = "Netpay"
    payment_method: str = "QR"
    user_name: Optional[str] = None
    mobile: Optional[str] = None
    address: Optional[str] = None
    screenshot_url: Optional[str] = None
    delivery_status: ORDER_STATUSES = "Pending"
    delivery_date: Optional[str] = Field(None, description="ISO date, set on confirmation")
    emi_months: Optional[int] = Field(None, ge=0)
    down_payment: Optional[float] = Field(None, ge=0)
    idempotency_key: Optional[str] = None


class EmiApplication(BaseModel):
    order_id: str
    user_id: str
    aadhar_number: Optional[str] = None
    bank_details: Optional[str] = None
    user_photo_url: Optional[str] = None
    emi_months: int = Field(..., ge=0)
    down_payment: float = Field(0, ge=0)
    application_status: Literal["Pending", "Approved", "Rejected"] = "Pending"


class SiteSettings(BaseModel):
    header_title: Optional[str] = None
    company_logo_url: Optional[str] = None
    delivery_image_url: Optional[str] = None
    banners: List[str] = []
    advertisement_video_url: Optional[str] = None
    whatsapp_number: Optional[str] = None
    header_bg_color: str = "#1D4ED8"


class Message(BaseModel):
    user_id: str
    content: str = Field(..., min_length=1)
    sender_type: Literal["user", "admin"] = "user"
    is_read: bool = False
