import main

PIXEL = {
    "category": "precious",
    "model": "Pixel 7 Board",
    "price": "5000",
    "booking_amount": "4800",
    "netpay_price": "4199",
    "offer": "16",
    "offer_end_date_time": "2026-01-15T10:01:30Z",
    "emi_months": "12,6",
    "buy_one_get_one": "Yes",
}
IMAGE = {"image_file": ("pixel.jpg", b"img", "image/jpeg")}


def test_admin_creates_product_with_uploaded_image(client, admin, uploader):
    res = client.post("/api/products/admin", headers=admin[0], data=PIXEL, files=IMAGE)
    assert res.status_code == 200
    product = res.json()["product"]
    assert product["image_url"] == "https://media.test/products/1"
    assert product["netpay_qr_url"] is None
    assert product["emi_months"] == [6, 12]
    assert product["buy_one_get_one"] is True
    assert product["netpay_price"] == 4199
    assert uploader.uploads == [("products", b"img", "image")]


def test_listing_carries_offer_countdown(client, admin):
    client.post("/api/products/admin", headers=admin[0], data=PIXEL, files=IMAGE)
    products = client.get("/api/products/precious").json()
    assert len(products) == 1
    window = products[0]["offer_window"]
    assert window["active"] is True
    assert window["remaining_seconds"] == 90
    assert window["display"] == "01:30"
    assert products[0]["offer_price"] == 4200
    assert client.get("/api/products/other").json() == []


def test_listing_after_offer_ends(client, admin, clock):
    client.post("/api/products/admin", headers=admin[0], data=PIXEL, files=IMAGE)
    clock.advance(91)
    window = client.get("/api/products/precious").json()[0]["offer_window"]
    assert window["active"] is False
    assert window["display"] == "00:00"


def test_update_keeps_fields_that_were_not_sent(client, admin, uploader):
    created = client.post("/api/products/admin", headers=admin[0], data=PIXEL, files=IMAGE).json()["product"]
    res = client.post("/api/products/admin", headers=admin[0], data={
        "id": created["id"], "category": "precious", "model": "Pixel 7 Board v2",
        "netpay_qr_code": "https://media.test/qr_codes/existing.png",
    })
    assert res.status_code == 200
    product = res.json()["product"]
    assert product["id"] == created["id"]
    assert product["model"] == "Pixel 7 Board v2"
    assert product["image_url"] == created["image_url"]
    assert product["netpay_qr_url"] == "https://media.test/qr_codes/existing.png"
    assert product["netpay_price"] == 4199
    assert product["emi_months"] == [6, 12]
    assert len(uploader.uploads) == 1
    assert main.db["product"].count_documents({}) == 1


def test_video_goes_up_as_video(client, admin, uploader):
    files = {"product_video_file": ("demo.mp4", b"mp4", "video/mp4")}
    client.post("/api/products/admin", headers=admin[0], data=PIXEL, files=files)
    assert uploader.uploads == [("product_videos", b"mp4", "video")]


def test_bad_emi_plan_is_rejected_at_entry(client, admin):
    res = client.post("/api/products/admin", headers=admin[0], data={**PIXEL, "emi_months": "3,x"})
    assert res.status_code == 400
    assert "emi_months" in res.json()["detail"]
    assert main.db["product"].count_documents({}) == 0


def test_unparseable_offer_end_is_rejected(client, admin):
    res = client.post("/api/products/admin", headers=admin[0], data={**PIXEL, "offer_end_date_time": "next tuesday"})
    assert res.status_code == 400
    assert "offer_end_date_time" in res.json()["detail"]
    assert main.db["product"].count_documents({}) == 0


def test_failed_media_upload(client, admin, uploader):
    uploader.fail = True
    res = client.post("/api/products/admin", headers=admin[0], data=PIXEL, files=IMAGE)
    assert res.status_code == 502
    assert main.db["product"].count_documents({}) == 0


def test_product_admin_requires_admin(client, buyer):
    assert client.post("/api/products/admin", headers=buyer[0], data=PIXEL).status_code == 403
    assert client.post("/api/products/admin", data=PIXEL).status_code == 401


def test_delete_product(client, admin, netpay_product):
    assert client.delete(f"/api/products/admin/{netpay_product}", headers=admin[0]).status_code == 200
    assert client.get("/api/products/precious").json() == []
    assert client.delete(f"/api/products/admin/{netpay_product}", headers=admin[0]).status_code == 404
