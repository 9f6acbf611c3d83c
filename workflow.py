"""
Buyer checkout funnel.

Netpay: PRODUCT_DETAILS -> BUYER_INFO -> PAYMENT_QR -> CONFIRM_UPLOAD
EMI:    PRODUCT_DETAILS -> EMI_PLAN   -> PAYMENT_QR -> CONFIRM_UPLOAD

Every step before CONFIRM_UPLOAD only edits local form state. ``submit`` is
the single network call; on success the funnel lands on HISTORY, on failure
it stays put with everything the buyer typed so they can retry.
"""
import enum
import logging
import threading
import uuid
from datetime import datetime
from typing import Optional

import httpx
from pydantic import BaseModel

import config
import offers
import pricing

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Something went wrong. Please try again."


class WorkflowError(Exception):
    pass


class ApiError(Exception):
    def __init__(self, status: int, message: str):
        self.status = status
        self.message = message
        super().__init__(f"{status}: {message}")


class SessionExpired(ApiError):
    def __init__(self, message: str = "Please log in again."):
        super().__init__(401, message)


class StorefrontClient:
    """Thin wrapper over the storefront REST API."""

    def __init__(self, http: Optional[httpx.Client] = None, token: Optional[str] = None):
        self.http = http or httpx.Client(base_url=config.API_BASE_URL, timeout=config.API_TIMEOUT)
        self.token = token
        self.user = None

    def _request(self, method: str, path: str, idempotency_key: Optional[str] = None, **kwargs) -> dict:
        headers = kwargs.pop("headers", {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        try:
            response = self.http.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException:
            raise ApiError(0, "The server took too long to respond. Please try again.")
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise ApiError(0, GENERIC_ERROR)
        if response.status_code == 401:
            self.token = None
            raise SessionExpired()
        if response.status_code >= 400:
            try:
                detail = response.json().get("detail")
            except ValueError:
                detail = None
            raise ApiError(response.status_code, detail if isinstance(detail, str) and detail else GENERIC_ERROR)
        return response.json()

    def login(self, phone: str, password: str) -> dict:
        data = self._request("POST", "/api/auth/login", json={"phone": phone, "password": password})
        self.token = data["token"]
        self.user = data["user"]
        return self.user

    def products(self, category: str) -> list:
        return self._request("GET", f"/api/products/{category}")

    def place_netpay_order(self, form: dict, screenshot: "Attachment", idempotency_key: Optional[str] = None) -> dict:
        files = {"screenshot": screenshot.as_file()}
        return self._request("POST", "/api/orders/place", data=form, files=files, idempotency_key=idempotency_key)

    def place_emi_order(self, form: dict, screenshot: "Attachment", user_photo: Optional["Attachment"] = None,
                        idempotency_key: Optional[str] = None) -> dict:
        files = {"screenshot": screenshot.as_file()}
        if user_photo:
            files["user_photo"] = user_photo.as_file()
        return self._request("POST", "/api/orders/emi", data=form, files=files, idempotency_key=idempotency_key)

    def my_orders(self) -> list:
        return self._request("GET", "/api/orders/mine")

    def confirm_order(self, order_id: str) -> dict:
        return self._request("PUT", f"/api/admin/orders/{order_id}/confirm")


class Step(str, enum.Enum):
    PRODUCT_DETAILS = "product-details"
    BUYER_INFO = "buyer-info"
    EMI_PLAN = "emi-plan"
    PAYMENT_QR = "payment-qr"
    CONFIRM_UPLOAD = "confirm-upload"
    HISTORY = "history"


class Attachment(BaseModel):
    filename: str
    data: bytes
    content_type: str = "image/jpeg"

    def as_file(self):
        return (self.filename, self.data, self.content_type)


class BuyerInfo(BaseModel):
    name: str = ""
    mobile: str = ""
    address: str = ""

    def missing(self) -> list:
        return [k for k, v in self.model_dump().items() if not v.strip()]


class EmiChoice(BaseModel):
    months: int = 0
    down_payment: Optional[float] = None
    aadhar: str = ""
    bank_details: str = ""


class CheckoutWorkflow:
    def __init__(self, client: StorefrontClient, product: dict, payment_type: str = pricing.NETPAY,
                 user: Optional[dict] = None):
        if payment_type not in pricing.PAYMENT_TYPES:
            raise WorkflowError(f"Unknown payment type: {payment_type}")
        self.client = client
        self.product = product
        self.payment_type = payment_type
        self.user = user if user is not None else client.user
        self.step = Step.PRODUCT_DETAILS
        self.buyer = self._default_buyer()
        self.emi = EmiChoice()
        self.screenshot: Optional[Attachment] = None
        self.user_photo: Optional[Attachment] = None
        self.idempotency_key: Optional[str] = None
        self.error: Optional[str] = None
        self.acknowledgement: Optional[str] = None
        self.last_order: Optional[dict] = None
        self._in_flight = threading.Lock()

    @property
    def is_emi(self) -> bool:
        return self.payment_type == pricing.EMI

    @property
    def submitting(self) -> bool:
        return self._in_flight.locked()

    def _default_buyer(self) -> BuyerInfo:
        user = self.user or {}
        return BuyerInfo(name=user.get("username") or "", mobile=user.get("phone") or "")

    # Form state

    def fill(self, **fields):
        self.buyer = self.buyer.model_copy(update={k: v for k, v in fields.items() if v is not None})

    def plan_options(self) -> list:
        try:
            return pricing.parse_emi_plan(self.product.get("emi_months"))
        except pricing.PricingError:
            return []

    def suggested_months(self) -> int:
        plan = self.product.get("emi_months")
        if isinstance(plan, list):
            plan = ",".join(str(m) for m in plan)
        return pricing.select_months_from_plan_string(plan)

    @property
    def fixed_down_payment(self) -> Optional[float]:
        return self.product.get("down_payment_amount")

    def choose_plan(self, months: int, down_payment: Optional[float] = None, aadhar: str = "",
                    bank_details: str = ""):
        self.emi = EmiChoice(months=months, down_payment=down_payment, aadhar=aadhar, bank_details=bank_details)

    def quote(self) -> pricing.Quote:
        if self.is_emi:
            return pricing.quote(self.product, pricing.EMI, self.emi.months, self.emi.down_payment)
        return pricing.quote(self.product, pricing.NETPAY)

    def offer(self, now: datetime) -> offers.OfferWindow:
        return offers.evaluate_product(self.product, now)

    def payment_summary(self) -> dict:
        """What the QR page shows."""
        q = self.quote()
        summary = {
            "amount": pricing.round_money(q.amount),
            "units": q.units,
            "qr_code": self.product.get("netpay_qr_url"),
        }
        if q.emi:
            summary["emi"] = q.emi.rounded().model_dump()
        return summary

    def attach_screenshot(self, data: bytes, filename: str = "screenshot.jpg", content_type: str = "image/jpeg"):
        self.screenshot = Attachment(filename=filename, data=data, content_type=content_type)

    def attach_photo(self, data: bytes, filename: str = "photo.jpg", content_type: str = "image/jpeg"):
        self.user_photo = Attachment(filename=filename, data=data, content_type=content_type)

    # Navigation

    def _validate_buyer(self):
        missing = self.buyer.missing()
        if missing:
            raise WorkflowError(f"Please fill all the required fields ({', '.join(m.title() for m in missing)}).")

    def _validate_plan(self):
        options = self.plan_options()
        if self.emi.months <= 0 or (options and self.emi.months not in options):
            raise WorkflowError("Please select an EMI plan.")
        if self.fixed_down_payment is None and self.emi.down_payment is None:
            raise WorkflowError("Please enter a down payment amount.")

    def next(self) -> Step:
        self.error = None
        if self.step == Step.PRODUCT_DETAILS:
            if not self.user:
                raise WorkflowError("Login first to place an order.")
            self.step = Step.EMI_PLAN if self.is_emi else Step.BUYER_INFO
        elif self.step in (Step.BUYER_INFO, Step.EMI_PLAN):
            self._validate_buyer()
            if self.is_emi:
                self._validate_plan()
            self.step = Step.PAYMENT_QR
        elif self.step == Step.PAYMENT_QR:
            if self.idempotency_key is None:
                self.idempotency_key = uuid.uuid4().hex
            self.step = Step.CONFIRM_UPLOAD
        else:
            raise WorkflowError(f"No step after {self.step.value}")
        return self.step

    def back(self) -> Step:
        self.error = None
        if self.step == Step.CONFIRM_UPLOAD:
            self.step = Step.PAYMENT_QR
        elif self.step == Step.PAYMENT_QR:
            self.step = Step.EMI_PLAN if self.is_emi else Step.BUYER_INFO
        elif self.step in (Step.BUYER_INFO, Step.EMI_PLAN, Step.HISTORY):
            self.step = Step.PRODUCT_DETAILS
        return self.step

    # Submission

    def _form(self) -> dict:
        form = {
            "product_id": self.product["id"],
            "product_name": self.product.get("model") or "",
            "user_name": self.buyer.name.strip(),
            "mobile": self.buyer.mobile.strip(),
            "address": self.buyer.address.strip(),
            "amount": str(self.quote().amount),
        }
        if self.is_emi:
            form["emi_months"] = str(self.emi.months)
            if self.fixed_down_payment is None:
                form["down_payment"] = str(self.emi.down_payment)
            if self.emi.aadhar:
                form["aadhar"] = self.emi.aadhar
            if self.emi.bank_details:
                form["bank_details"] = self.emi.bank_details
        return form

    def submit(self) -> dict:
        if self.step != Step.CONFIRM_UPLOAD:
            raise WorkflowError("Nothing to submit yet.")
        if self.screenshot is None:
            raise WorkflowError("Please upload the payment screenshot.")
        if not self._in_flight.acquire(blocking=False):
            raise WorkflowError("Your order is already being submitted.")
        try:
            self.error = None
            if self.is_emi:
                result = self.client.place_emi_order(self._form(), self.screenshot, self.user_photo,
                                                     idempotency_key=self.idempotency_key)
            else:
                result = self.client.place_netpay_order(self._form(), self.screenshot,
                                                        idempotency_key=self.idempotency_key)
        except ApiError as e:
            self.error = e.message or GENERIC_ERROR
            logger.warning("Order submission failed: %s", e)
            raise
        finally:
            self._in_flight.release()
        self._finish(result)
        return result

    def _finish(self, result: dict):
        self.last_order = result.get("order")
        self.buyer = self._default_buyer()
        self.emi = EmiChoice()
        self.screenshot = None
        self.user_photo = None
        self.idempotency_key = None
        self.acknowledgement = "Order placed successfully."
        self.step = Step.HISTORY
