import logging
import os
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, HTTPException, Depends, File, Form, Header, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ValidationError
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

import config
import lifecycle
import offers
import pricing
from auth import MAX_PASSWORD_BYTES, TokenUser, check_password, current_user, hash_password, require_admin, sign_token
from clock import Clock, SystemClock, parse_timestamp
from database import db, create_document, ensure_indexes, get_documents, serialize, to_object_id
from media import CloudinaryUploader, UploadError, Uploader, media_field, resolve
from notifications import EmailNotifier
from schemas import User, Product, Order, EmiApplication, SiteSettings, Message

logger = logging.getLogger(__name__)

SETTINGS_ID = "site"
NEWEST_FIRST = [("created_at", -1), ("_id", -1)]
OLDEST_FIRST = [("created_at", 1), ("_id", 1)]
UPLOAD_FOLDERS = {
    "products", "qr_codes", "product_videos",
    "settings/logo", "settings/delivery", "settings/banners", "settings/advertisement",
}

app = FastAPI(title="Netpay Storefront API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def create_indexes():
    if db is not None:
        ensure_indexes()


# Collaborators, swapped out in tests through dependency_overrides

_clock = SystemClock()
_notifier = EmailNotifier()


def get_clock() -> Clock:
    return _clock


def get_uploader() -> Uploader:
    return CloudinaryUploader()


def get_notifier() -> EmailNotifier:
    return _notifier


def _db():
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db


def _read(upload: Optional[UploadFile]) -> Optional[bytes]:
    if upload is None:
        return None
    data = upload.file.read()
    return data or None


def _find(collection: str, doc_id: str, label: str) -> dict:
    oid = to_object_id(doc_id)
    doc = _db()[collection].find_one({"_id": oid}) if oid else None
    if not doc:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return doc


@app.get("/")
def root():
    return {"name": "Netpay Storefront", "status": "ok"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": [],
        "cloudinary": "✅ Configured" if config.CLOUDINARY_URL or config.CLOUDINARY_CLOUD_NAME else "⚠️ Missing CLOUDINARY_URL",
        "smtp": "✅ Configured" if config.SMTP_USER and config.ADMIN_EMAIL else "⚠️ Missing SMTP_USER or ADMIN_EMAIL",
    }
    try:
        if db is not None:
            response["database"] = "✅ Available"
            response["connection_status"] = "Connected"
            try:
                response["collections"] = db.list_collection_names()[:10]
                response["database"] = "✅ Connected & Working"
            except Exception as e:
                response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
        else:
            response["database"] = "⚠️  Available but not initialized"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"
    return response


# Auth

class SignupPayload(BaseModel):
    username: str
    password: str
    phone: str


class LoginPayload(BaseModel):
    phone: str
    password: str


def _token_response(user_doc: dict, message: str) -> dict:
    user = TokenUser(
        id=str(user_doc["_id"]),
        username=user_doc.get("username"),
        phone=user_doc.get("phone"),
        is_admin=bool(user_doc.get("is_admin")),
    )
    return {"message": message, "token": sign_token(user), "user": user.model_dump()}


@app.post("/api/auth/signup", status_code=201)
def signup(payload: SignupPayload):
    database = _db()
    if not payload.username or not payload.password or not payload.phone:
        raise HTTPException(status_code=400, detail="Username, password, and phone are required.")
    if len(payload.password.encode()) > MAX_PASSWORD_BYTES:
        raise HTTPException(status_code=400, detail=f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
    if database["user"].find_one({"username": payload.username}):
        raise HTTPException(status_code=409, detail="Username already taken.")
    if database["user"].find_one({"phone": payload.phone}):
        raise HTTPException(status_code=409, detail="Phone number is already associated with an account.")
    try:
        user = User(
            username=payload.username,
            phone=payload.phone,
            password_hash=hash_password(payload.password),
            is_admin=payload.phone in config.ADMIN_PHONES,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors()[0]["msg"])
    uid = create_document("user", user)
    return _token_response(database["user"].find_one({"_id": to_object_id(uid)}), "User registered successfully.")


def _authenticate(payload: LoginPayload) -> dict:
    if not payload.phone or not payload.password:
        raise HTTPException(status_code=400, detail="Mobile and password are required.")
    user = _db()["user"].find_one({"phone": payload.phone})
    if not user or not check_password(payload.password, user.get("password_hash")):
        raise HTTPException(status_code=401, detail="Invalid phone or password.")
    return user


@app.post("/api/auth/login")
def login(payload: LoginPayload):
    return _token_response(_authenticate(payload), "Login successful.")


@app.post("/api/admin/login")
def admin_login(payload: LoginPayload):
    user = _authenticate(payload)
    if not user.get("is_admin"):
        raise HTTPException(status_code=403, detail="Access denied. Not an admin.")
    return _token_response(user, "Login successful.")


# Products

def _product_view(doc: dict, now: datetime) -> dict:
    product = serialize(doc)
    window = offers.evaluate_product(doc, now)
    product["offer_window"] = {
        "active": window.active,
        "remaining_seconds": window.remaining_seconds,
        "display": window.display,
        "ends_at": window.ends_at.isoformat() if window.ends_at else None,
    }
    base = doc.get("price") if doc.get("price") is not None else doc.get("netpay_price")
    if doc.get("offer") and base is not None:
        product["offer_price"] = pricing.round_money(pricing.offer_price(base, doc["offer"]))
    else:
        product["offer_price"] = None
    return product


@app.get("/api/products/{category}")
def list_products(category: str, clock: Clock = Depends(get_clock)):
    _db()
    now = clock.now()
    docs = get_documents("product", {"category": category}, sort=NEWEST_FIRST)
    return [_product_view(d, now) for d in docs]


@app.post("/api/products/admin")
def upsert_product(
    category: str = Form(...),
    model: str = Form(...),
    id: Optional[str] = Form(None),
    price: Optional[float] = Form(None),
    booking_amount: Optional[float] = Form(None),
    netpay_price: Optional[float] = Form(None),
    offer: Optional[int] = Form(None),
    offer_time: Optional[str] = Form(None),
    offer_end_date_time: Optional[str] = Form(None),
    full_specs: Optional[str] = Form(None),
    buy_one_get_one: Optional[str] = Form(None),
    emi_months: Optional[str] = Form(None),
    down_payment_amount: Optional[float] = Form(None),
    image: Optional[str] = Form(None),
    netpay_qr_code: Optional[str] = Form(None),
    product_video: Optional[str] = Form(None),
    image_file: Optional[UploadFile] = File(None),
    netpay_qr_code_file: Optional[UploadFile] = File(None),
    product_video_file: Optional[UploadFile] = File(None),
    admin: TokenUser = Depends(require_admin),
    uploader: Uploader = Depends(get_uploader),
):
    database = _db()
    existing = _find("product", id, "Product") if id else {}
    offer_end = parse_timestamp(offer_end_date_time)
    if offer_end_date_time and offer_end_date_time.strip() and offer_end is None:
        raise HTTPException(status_code=400, detail="offer_end_date_time: not an ISO-8601 timestamp")

    submitted = {
        "price": price,
        "booking_amount": booking_amount,
        "netpay_price": netpay_price,
        "offer": offer,
        "offer_time": offer_time,
        "offer_end_date_time": offer_end,
        "full_specs": full_specs,
        "buy_one_get_one": buy_one_get_one,
        "emi_months": emi_months,
        "down_payment_amount": down_payment_amount,
    }
    fields = {k: (v if v is not None else existing.get(k)) for k, v in submitted.items()}
    fields["buy_one_get_one"] = fields["buy_one_get_one"] or False
    fields["emi_months"] = fields["emi_months"] or []

    media = {
        "image_url": (media_field(_read(image_file), image, existing.get("image_url")), "products"),
        "netpay_qr_url": (media_field(_read(netpay_qr_code_file), netpay_qr_code, existing.get("netpay_qr_url")),
                          "qr_codes"),
        "product_video": (media_field(_read(product_video_file), product_video, existing.get("product_video"),
                                      resource_type="video"), "product_videos"),
    }

    try:
        product = Product(category=category, model=model, **fields)
    except ValidationError as e:
        err = e.errors()[0]
        raise HTTPException(status_code=400, detail=f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}")

    doc = product.model_dump()
    try:
        for key, (field, folder) in media.items():
            doc[key] = resolve(field, uploader, folder)
    except UploadError as e:
        raise HTTPException(status_code=502, detail=f"Media upload failed: {e}")

    if existing:
        doc["updated_at"] = datetime.now(timezone.utc)
        database["product"].update_one({"_id": existing["_id"]}, {"$set": doc})
        saved = database["product"].find_one({"_id": existing["_id"]})
    else:
        pid = create_document("product", doc)
        saved = database["product"].find_one({"_id": to_object_id(pid)})
    logger.info("Product %s saved by %s", saved["_id"], admin.id)
    return {"product": serialize(saved)}


@app.delete("/api/products/admin/{product_id}")
def delete_product(product_id: str, admin: TokenUser = Depends(require_admin)):
    product = _find("product", product_id, "Product")
    _db()["product"].delete_one({"_id": product["_id"]})
    return {"message": "Product deleted"}


# Orders

def _order_view(doc: dict) -> dict:
    return lifecycle.derive_emi_fields(serialize(doc))


def _emi_view(doc: Optional[dict], order: dict) -> Optional[dict]:
    if not doc:
        return None
    view = serialize(doc)
    rounded = pricing.compute_emi(order.get("amount") or 0, view.get("down_payment"), view.get("emi_months")).rounded()
    view["remaining"] = rounded.remaining
    view["monthly_emi"] = rounded.monthly
    return view


def _refresh(doc: dict, now: datetime) -> dict:
    update = lifecycle.mark_delivered(doc, now)
    if update:
        _db()["order"].update_one({"_id": doc["_id"]}, {"$set": {**update, "updated_at": now}})
        doc = {**doc, **update}
    return doc


def _order_response(order: dict) -> dict:
    response = {"order": _order_view(order)}
    if order.get("payment_type") == pricing.EMI:
        emi = _db()["emiapplication"].find_one({"order_id": str(order["_id"])})
        response["emi_application"] = _emi_view(emi, order)
    return response


def _required(**values):
    missing = [k for k, v in values.items() if v is None or (isinstance(v, str) and not v.strip())]
    if missing:
        raise HTTPException(status_code=400, detail=f"Missing required fields: {', '.join(missing)}")


def _place_order(
    user: TokenUser,
    product_id: str,
    payment_type: str,
    user_name: str,
    mobile: str,
    address: str,
    now: datetime,
    uploader: Uploader,
    notifier: EmailNotifier,
    amount: Optional[float] = None,
    product_name: Optional[str] = None,
    screenshot: Optional[bytes] = None,
    screenshot_url: Optional[str] = None,
    emi_months: Optional[int] = None,
    down_payment: Optional[float] = None,
    aadhar: Optional[str] = None,
    bank_details: Optional[str] = None,
    user_photo: Optional[bytes] = None,
    idempotency_key: Optional[str] = None,
) -> dict:
    database = _db()
    _required(product_id=product_id, user_name=user_name, mobile=mobile, address=address)
    if not screenshot and not screenshot_url:
        raise HTTPException(status_code=400, detail="Missing required fields: screenshot")

    if idempotency_key:
        previous = database["order"].find_one({"user_id": user.id, "idempotency_key": idempotency_key})
        if previous:
            logger.info("Replayed order %s for idempotency key %s", previous["_id"], idempotency_key)
            return _order_response(previous)

    product = _find("product", product_id, "Product")
    if config.ENFORCE_OFFER_EXPIRY and offers.offer_expired(product, now):
        raise HTTPException(status_code=409, detail="Offer has expired")

    if payment_type == pricing.EMI:
        _required(emi_months=emi_months)
        plan = product.get("emi_months") or []
        if emi_months <= 0 or (plan and emi_months not in plan):
            raise HTTPException(status_code=400, detail="Invalid EMI plan selection")
        if product.get("down_payment_amount") is None and down_payment is None:
            raise HTTPException(status_code=400, detail="Missing required fields: down_payment")

    try:
        quote = pricing.quote(product, payment_type, emi_months, down_payment)
    except pricing.PricingError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if amount is not None and abs(float(amount) - quote.amount) > 0.005:
        raise HTTPException(status_code=400, detail="Amount does not match product price")

    folder = "orders/emi" if payment_type == pricing.EMI else "orders"
    try:
        if screenshot:
            screenshot_url = uploader.upload(screenshot, f"{folder}/screenshots")
        user_photo_url = uploader.upload(user_photo, "orders/emi/photos") if user_photo else None
    except UploadError as e:
        raise HTTPException(status_code=502, detail=f"Screenshot upload failed: {e}")

    order = Order(
        user_id=user.id,
        product_id=str(product["_id"]),
        product_name=product_name or product.get("model"),
        amount=quote.amount,
        units=quote.units,
        payment_type=payment_type,
        user_name=user_name.strip(),
        mobile=mobile.strip(),
        address=address.strip(),
        screenshot_url=screenshot_url,
        delivery_status=lifecycle.initial_status(payment_type).value,
        emi_months=quote.emi.months if quote.emi else None,
        down_payment=quote.emi.down_payment if quote.emi else None,
        idempotency_key=idempotency_key,
    )
    try:
        order_id = create_document("order", order)
    except DuplicateKeyError:
        # A request with the same key finished while this one was uploading
        previous = database["order"].find_one({"user_id": user.id, "idempotency_key": idempotency_key})
        logger.info("Replayed order %s for idempotency key %s", previous["_id"], idempotency_key)
        return _order_response(previous)
    saved = database["order"].find_one({"_id": to_object_id(order_id)})

    if payment_type == pricing.EMI:
        create_document("emiapplication", EmiApplication(
            order_id=order_id,
            user_id=user.id,
            aadhar_number=aadhar,
            bank_details=bank_details,
            user_photo_url=user_photo_url,
            emi_months=quote.emi.months,
            down_payment=quote.emi.down_payment,
        ))

    notifier.notify_new_order({**order.model_dump(), "id": order_id}, order.product_name)
    logger.info("Order %s placed by %s (%s, %.2f)", order_id, user.id, payment_type, quote.amount)
    return _order_response(saved)


@app.post("/api/orders/place", status_code=201)
def place_order(
    product_id: str = Form(...),
    user_name: str = Form(""),
    mobile: str = Form(""),
    address: str = Form(""),
    amount: Optional[float] = Form(None),
    product_name: Optional[str] = Form(None),
    screenshot: Optional[UploadFile] = File(None),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    user: TokenUser = Depends(current_user),
    clock: Clock = Depends(get_clock),
    uploader: Uploader = Depends(get_uploader),
    notifier: EmailNotifier = Depends(get_notifier),
):
    return _place_order(
        user, product_id, pricing.NETPAY, user_name, mobile, address, clock.now(), uploader, notifier,
        amount=amount, product_name=product_name, screenshot=_read(screenshot), idempotency_key=idempotency_key,
    )


class NetpayPayload(BaseModel):
    id: str
    name: str = ""
    mobile: str = ""
    address: str = ""
    model: Optional[str] = None
    price: Optional[float] = None
    screenshot: Optional[str] = None
    timestamp: Optional[str] = None


@app.post("/api/orders/netpay", status_code=201)
def netpay_order(
    payload: NetpayPayload,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    user: TokenUser = Depends(current_user),
    clock: Clock = Depends(get_clock),
    uploader: Uploader = Depends(get_uploader),
    notifier: EmailNotifier = Depends(get_notifier),
):
    """Order whose payment screenshot was uploaded ahead of time."""
    return _place_order(
        user, payload.id, pricing.NETPAY, payload.name, payload.mobile, payload.address, clock.now(), uploader,
        notifier, amount=payload.price, product_name=payload.model, screenshot_url=payload.screenshot,
        idempotency_key=idempotency_key,
    )


@app.post("/api/orders/emi", status_code=201)
def emi_order(
    product_id: str = Form(...),
    user_name: str = Form(""),
    mobile: str = Form(""),
    address: str = Form(""),
    emi_months: Optional[int] = Form(None),
    down_payment: Optional[float] = Form(None),
    amount: Optional[float] = Form(None),
    product_name: Optional[str] = Form(None),
    aadhar: Optional[str] = Form(None),
    bank_details: Optional[str] = Form(None),
    screenshot: Optional[UploadFile] = File(None),
    user_photo: Optional[UploadFile] = File(None),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    user: TokenUser = Depends(current_user),
    clock: Clock = Depends(get_clock),
    uploader: Uploader = Depends(get_uploader),
    notifier: EmailNotifier = Depends(get_notifier),
):
    return _place_order(
        user, product_id, pricing.EMI, user_name, mobile, address, clock.now(), uploader, notifier,
        amount=amount, product_name=product_name, screenshot=_read(screenshot), emi_months=emi_months,
        down_payment=down_payment, aadhar=aadhar, bank_details=bank_details, user_photo=_read(user_photo),
        idempotency_key=idempotency_key,
    )


@app.get("/api/admin/orders")
def admin_orders(admin: TokenUser = Depends(require_admin), clock: Clock = Depends(get_clock)):
    database = _db()
    now = clock.now()
    orders = [_refresh(o, now) for o in get_documents("order", sort=NEWEST_FIRST)]
    ids = {to_object_id(o["product_id"]) for o in orders} - {None}
    models = {str(p["_id"]): p.get("model") for p in database["product"].find({"_id": {"$in": list(ids)}})}
    result = []
    for o in orders:
        view = _order_view(o)
        view["product"] = {"model": models.get(o["product_id"])}
        result.append(view)
    return result


@app.get("/api/orders/mine")
def my_orders(user: TokenUser = Depends(current_user), clock: Clock = Depends(get_clock)):
    _db()
    now = clock.now()
    docs = get_documents("order", {"user_id": user.id}, sort=NEWEST_FIRST)
    return [_order_view(_refresh(o, now)) for o in docs]


def _transition(order_id: str, verb: str, action, at: datetime, **kwargs) -> dict:
    database = _db()
    order = _find("order", order_id, "Order")
    try:
        update = action(order, **kwargs)
    except lifecycle.TransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    open_states = [s.value for s in lifecycle.OrderStatus if s.is_open]
    saved = database["order"].find_one_and_update(
        {"_id": order["_id"], "delivery_status": {"$in": open_states}},
        {"$set": {**update, "updated_at": at}},
        return_document=ReturnDocument.AFTER,
    )
    if saved is None:
        # Someone else moved it first
        current = database["order"].find_one({"_id": order["_id"]})
        raise HTTPException(status_code=409, detail=str(
            lifecycle.TransitionError(current["delivery_status"], verb)))
    return {"order": _order_view(saved)}


@app.put("/api/admin/orders/{order_id}/confirm")
def confirm_order(order_id: str, admin: TokenUser = Depends(require_admin), clock: Clock = Depends(get_clock)):
    now = clock.now()
    return _transition(order_id, "confirm", lifecycle.confirm_delivery, now, now=now, lead_days=config.DELIVERY_LEAD_DAYS)


@app.put("/api/admin/orders/{order_id}/cancel")
def cancel_order(order_id: str, admin: TokenUser = Depends(require_admin), clock: Clock = Depends(get_clock)):
    return _transition(order_id, "cancel", lifecycle.cancel, clock.now())


@app.get("/api/user/sales/count")
def user_sales_count(user: TokenUser = Depends(current_user)):
    done = [lifecycle.OrderStatus.CONFIRMED.value, lifecycle.OrderStatus.DELIVERED.value]
    count = _db()["order"].count_documents({"user_id": user.id, "delivery_status": {"$in": done}})
    return {"total_sales_count": count}


@app.get("/api/orders/count")
def sales_count():
    return {"total_sales_count": _db()["order"].count_documents({})}


# Site settings

class SettingsReplace(SiteSettings):
    version: int = 0


def _settings_doc() -> dict:
    doc = _db()["sitesettings"].find_one({"_id": SETTINGS_ID})
    if not doc:
        return {**SiteSettings().model_dump(), "version": 0}
    doc = serialize(doc)
    doc.pop("id", None)
    return doc


def _replace_settings(settings: SiteSettings, expected_version: int, now: datetime) -> dict:
    """Swap in a whole new settings record if nobody saved since expected_version."""
    database = _db()
    doc = {**settings.model_dump(), "version": expected_version + 1, "updated_at": now}
    if expected_version == 0:
        try:
            database["sitesettings"].insert_one({"_id": SETTINGS_ID, **doc})
        except DuplicateKeyError:
            raise HTTPException(status_code=409, detail="Settings were changed by someone else")
    else:
        replaced = database["sitesettings"].find_one_and_replace(
            {"_id": SETTINGS_ID, "version": expected_version}, doc, return_document=ReturnDocument.AFTER
        )
        if replaced is None:
            raise HTTPException(status_code=409, detail="Settings were changed by someone else")
    return _settings_doc()


@app.get("/api/settings")
def get_settings():
    return _settings_doc()


@app.put("/api/admin/settings")
def replace_settings(payload: SettingsReplace, admin: TokenUser = Depends(require_admin),
                     clock: Clock = Depends(get_clock)):
    settings = SiteSettings(**payload.model_dump(exclude={"version"}))
    return {"settings": _replace_settings(settings, payload.version, clock.now())}


@app.delete("/api/admin/settings/banners")
def delete_banner(url: str, version: int, admin: TokenUser = Depends(require_admin),
                  clock: Clock = Depends(get_clock)):
    current = _settings_doc()
    if current["version"] != version:
        raise HTTPException(status_code=409, detail="Settings were changed by someone else")
    fields = {k: v for k, v in current.items() if k in SiteSettings.model_fields}
    fields["banners"] = [b for b in current.get("banners", []) if b != url]
    settings = _replace_settings(SiteSettings(**fields), version, clock.now())
    return {"message": "Banner deleted successfully", "settings": settings}


@app.post("/api/admin/uploads", status_code=201)
def upload_media(
    folder: str = Form(...),
    resource_type: str = Form("image"),
    file: UploadFile = File(...),
    admin: TokenUser = Depends(require_admin),
    uploader: Uploader = Depends(get_uploader),
):
    if folder not in UPLOAD_FOLDERS:
        raise HTTPException(status_code=400, detail=f"Unknown upload folder: {folder}")
    data = _read(file)
    if not data:
        raise HTTPException(status_code=400, detail="Empty file")
    try:
        return {"url": uploader.upload(data, folder, resource_type)}
    except UploadError as e:
        raise HTTPException(status_code=502, detail=f"Media upload failed: {e}")


# Users

@app.get("/api/admin/users")
def list_users(admin: TokenUser = Depends(require_admin)):
    _db()
    users = get_documents("user", sort=NEWEST_FIRST)
    return {"users": [{k: v for k, v in serialize(u).items() if k != "password_hash"} for u in users]}


@app.delete("/api/admin/users/{user_id}")
def delete_user(user_id: str, admin: TokenUser = Depends(require_admin)):
    user = _find("user", user_id, "User")
    if user.get("is_admin"):
        raise HTTPException(status_code=403, detail="Cannot delete an admin user")
    _db()["user"].delete_one({"_id": user["_id"]})
    return {"message": "User deleted successfully"}


# Messages

class MessageIn(BaseModel):
    content: str


def _post_message(user_id: str, content: str, sender_type: str) -> dict:
    if not content or not content.strip():
        raise HTTPException(status_code=400, detail="Message content is required.")
    _db()
    mid = create_document("message", Message(user_id=user_id, content=content.strip(), sender_type=sender_type))
    return serialize(db["message"].find_one({"_id": to_object_id(mid)}))


@app.post("/api/messages/send", status_code=201)
def send_message(payload: MessageIn, user: TokenUser = Depends(current_user)):
    return {"message": _post_message(user.id, payload.content, "user")}


@app.get("/api/messages/user")
def user_messages(user: TokenUser = Depends(current_user)):
    _db()
    thread = [serialize(m) for m in get_documents("message", {"user_id": user.id}, sort=OLDEST_FIRST)]
    replies = [m for m in thread if m["sender_type"] == "admin"]
    return {"messages": thread, "latestAdminMessage": replies[-1] if replies else None}


@app.post("/api/admin/messages/reply/{user_id}", status_code=201)
def reply_message(user_id: str, payload: MessageIn, admin: TokenUser = Depends(require_admin)):
    _find("user", user_id, "User")
    return {"reply": _post_message(user_id, payload.content, "admin")}


@app.get("/api/admin/messages/latest-per-user")
def latest_messages(admin: TokenUser = Depends(require_admin)):
    _db()
    latest = {}
    for m in get_documents("message", sort=NEWEST_FIRST):
        latest.setdefault(m["user_id"], serialize(m))
    return {"latestMessages": list(latest.values())}


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
