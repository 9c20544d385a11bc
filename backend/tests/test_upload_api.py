from pathlib import Path

import pytest

from config import settings
from conftest import make_product

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def png(name="photo.png"):
    return (name, PNG, "image/png")


@pytest.fixture
def product(db):
    return make_product(db)


def upload_one(client, product_id, headers, file=None):
    return client.post(f"/upload/product/{product_id}/image", files={"image": file or png()}, headers=headers)


def stored_path(url):
    return Path(settings.UPLOAD_DIR) / url.replace("/uploads/", "", 1)


def test_first_image_becomes_primary(client, product, admin_headers):
    r = upload_one(client, product.id, admin_headers)
    assert r.status_code == 201, r.text
    image = r.json()["data"]["image"]
    assert image["isPrimary"] is True
    assert image["url"].startswith("/uploads/products/")
    assert stored_path(image["url"]).exists()

    r = upload_one(client, product.id, admin_headers)
    assert r.json()["data"]["image"]["isPrimary"] is False

    served = client.get(image["url"])
    assert served.status_code == 200
    assert served.content == PNG


def test_upload_requires_admin(client, product, user_headers):
    assert upload_one(client, product.id, user_headers).status_code == 403


def test_rejects_bad_type_and_missing_product(client, product, admin_headers):
    r = upload_one(client, product.id, admin_headers, file=("notes.txt", b"hello", "text/plain"))
    assert r.status_code == 400
    assert r.json()["message"] == "Invalid file type"
    assert upload_one(client, 9999, admin_headers).status_code == 404


def test_rejects_oversized_file(client, product, admin_headers, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 10)
    r = upload_one(client, product.id, admin_headers)
    assert r.status_code == 400
    assert r.json()["message"] == "File too large"


def test_multi_upload_limit(client, product, admin_headers):
    files = [("images", png(f"p{i}.png")) for i in range(6)]
    r = client.post(f"/upload/product/{product.id}/images", files=files, headers=admin_headers)
    assert r.status_code == 400

    files = [("images", png(f"p{i}.png")) for i in range(3)]
    r = client.post(f"/upload/product/{product.id}/images", files=files, headers=admin_headers)
    assert r.status_code == 201
    images = r.json()["data"]["images"]
    assert len(images) == 3
    assert [i["isPrimary"] for i in images] == [True, False, False]


def test_rolling_cap_evicts_oldest(client, product, admin_headers):
    urls = [upload_one(client, product.id, admin_headers).json()["data"]["image"]["url"] for _ in range(5)]
    r = upload_one(client, product.id, admin_headers)
    images = r.json()["data"]["images"]
    assert len(images) == settings.MAX_PRODUCT_IMAGES
    assert urls[0] not in [i["url"] for i in images]
    assert not stored_path(urls[0]).exists()
    # the evicted image was primary, so the oldest survivor takes over
    assert images[0]["isPrimary"] is True
    assert sum(i["isPrimary"] for i in images) == 1


def test_delete_and_set_primary(client, product, admin_headers):
    first = upload_one(client, product.id, admin_headers).json()["data"]["image"]
    second = upload_one(client, product.id, admin_headers).json()["data"]["image"]

    r = client.patch(f"/upload/product/{product.id}/image/{second['id']}/primary", headers=admin_headers)
    assert [i["isPrimary"] for i in r.json()["data"]] == [False, True]

    r = client.delete(f"/upload/product/{product.id}/image/{second['id']}", headers=admin_headers)
    assert r.status_code == 200
    remaining = r.json()["data"]
    assert [i["id"] for i in remaining] == [first["id"]]
    assert remaining[0]["isPrimary"] is True
    assert not stored_path(second["url"]).exists()

    r = client.delete(f"/upload/product/{product.id}/image/424242", headers=admin_headers)
    assert r.status_code == 404

    listing = client.get(f"/upload/product/{product.id}/images", headers=admin_headers).json()
    assert listing["count"] == 1


def test_images_show_on_product(client, product, admin_headers):
    upload_one(client, product.id, admin_headers)
    data = client.get(f"/products/{product.id}", headers=admin_headers).json()["data"]
    assert len(data["images"]) == 1
    assert data["images"][0]["isPrimary"] is True
