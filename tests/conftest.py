import os
import smtplib
from datetime import datetime, timezone

os.environ["DATABASE_URL"] = "mongodb://localhost:27017"
os.environ["DATABASE_NAME"] = "netpay_test"
os.environ["JWT_SECRET"] = "test-secret"

import mongomock
import pymongo

# database.py builds its client at import time
pymongo.MongoClient = mongomock.MongoClient

import pytest
from fastapi.testclient import TestClient

import config
import main
from auth import TokenUser, hash_password, sign_token
from clock import FrozenClock
from database import create_document
from media import UploadError
from notifications import EmailNotifier
from schemas import Product, User

START = datetime(2026, 1, 15, 10, 0, tzinfo=timezone.utc)


class FakeUploader:
    def __init__(self):
        self.uploads = []
        self.fail = False
        self.before_upload = None

    def upload(self, data, folder, resource_type="image"):
        if self.before_upload:
            self.before_upload(folder, data)
        if self.fail:
            raise UploadError("media host unavailable")
        self.uploads.append((folder, data, resource_type))
        return f"https://media.test/{folder}/{len(self.uploads)}"


class RecordingNotifier(EmailNotifier):
    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, message):
        if self.fail:
            raise smtplib.SMTPException("mail server down")
        self.sent.append(message)


@pytest.fixture(autouse=True)
def clean_db():
    yield
    for name in main.db.list_collection_names():
        main.db.drop_collection(name)


@pytest.fixture
def clock():
    return FrozenClock(START)


@pytest.fixture
def uploader():
    return FakeUploader()


@pytest.fixture
def notifier(monkeypatch):
    monkeypatch.setattr(config, "ADMIN_EMAIL", "admin@example.com")
    return RecordingNotifier()


@pytest.fixture
def client(clock, uploader, notifier):
    main.app.dependency_overrides[main.get_clock] = lambda: clock
    main.app.dependency_overrides[main.get_uploader] = lambda: uploader
    main.app.dependency_overrides[main.get_notifier] = lambda: notifier
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()


def make_user(username="asha", phone="9990001111", password="secret", is_admin=False):
    uid = create_document("user", User(
        username=username, phone=phone, password_hash=hash_password(password), is_admin=is_admin,
    ))
    return sign_token(TokenUser(id=uid, username=username, phone=phone, is_admin=is_admin)), uid


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def buyer():
    token, uid = make_user()
    return bearer(token), uid


@pytest.fixture
def admin():
    token, uid = make_user(username="admin", phone="9000000000", is_admin=True)
    return bearer(token), uid


def make_product(**overrides):
    fields = dict(category="precious", model="Nokia 6.1 Motherboard", price=5000, booking_amount=4800,
                  netpay_price=4199, netpay_qr_url="https://media.test/qr_codes/1")
    fields.update(overrides)
    return create_document("product", Product(**fields).model_dump())


@pytest.fixture
def netpay_product():
    return make_product()


@pytest.fixture
def emi_product():
    return make_product(model="Washing Machine", category="other", price=13000, netpay_price=12000,
                        down_payment_amount=2000, emi_months="6,12")
