"""
Integration tests: HTTP API end to end.

Runs against the temporary SQLite file and upload directory configured in
conftest.py.
"""
import os

import pytest
from fastapi.testclient import TestClient

from backoffice.main import app
from backoffice.core.config import settings
from backoffice.core.database import create_db_and_tables


@pytest.fixture(scope="module", autouse=True)
def setup_db():
    create_db_and_tables()
    yield
    # Cleanup
    db_path = settings.DATABASE_URL.replace("sqlite:///", "")
    try:
        os.unlink(db_path)
    except OSError:
        pass


@pytest.fixture(scope="module")
def client():
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


@pytest.fixture(scope="module")
def tree(client):
    r = client.post(
        "/api/categories/",
        json={
            "category_name": "Office",
            "description": "Office supplies",
            "subcategories": [
                {"category_name": "Desks", "subcategories": [{"category_name": "Standing"}]},
                {"category_name": "Chairs"},
            ],
        },
    )
    assert r.status_code == 201, r.text
    return r.json()


@pytest.fixture(scope="module")
def product(client, tree):
    desks = next(s for s in tree["subcategories"] if s["category_name"] == "Desks")
    r = client.post(
        "/api/products/",
        json={
            "product_name": "Oak desk",
            "code": "DSK-OAK",
            "main_category_id": tree["id"],
            "sub_category_id": desks["id"],
            "price": 100,
            "unit": "pcs",
        },
    )
    assert r.status_code == 201, r.text
    return r.json()


class TestHealth:
    def test_health(self, client):
        r = client.get("/api/health")
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "ok"
        assert data["db"] == "ok"


class TestCategoryAPI:
    def test_tree_shape(self, client, tree):
        assert tree["level"] == 0
        assert [s["category_name"] for s in tree["subcategories"]] == ["Chairs", "Desks"]

        r = client.get("/api/categories/")
        assert r.status_code == 200
        assert "Office" in [n["category_name"] for n in r.json()]

    def test_duplicate_name_conflict(self, client, tree):
        r = client.post("/api/categories/", json={"category_name": "Chairs"})
        assert r.status_code == 409
        assert r.json()["error"] == "DuplicateName"

    def test_depth_limit(self, client, tree):
        desks = next(s for s in tree["subcategories"] if s["category_name"] == "Desks")
        standing = desks["subcategories"][0]
        r = client.post(
            f"/api/categories/{standing['id']}/children",
            json={"subcategories": [{"category_name": "Electric"}]},
        )
        assert r.status_code == 400
        assert r.json()["error"] == "MaxDepthExceeded"

    def test_children_and_parents(self, client, tree, product):
        r = client.get(f"/api/categories/{tree['id']}/children")
        assert r.status_code == 200
        counts = {c["category_name"]: c["child_count"] for c in r.json()}
        assert counts == {"Chairs": 0, "Desks": 1}

        r = client.get("/api/categories/parents")
        office = next(p for p in r.json() if p["category_name"] == "Office")
        assert office["subcategory_count"] == 2
        assert office["product_count"] == 1

    def test_sub_subcategory_and_dropdown(self, client, tree):
        chairs = next(s for s in tree["subcategories"] if s["category_name"] == "Chairs")
        r = client.post(
            f"/api/categories/{chairs['id']}/sub-subcategories",
            json={"category_name": "Ergonomic"},
        )
        assert r.status_code == 201
        assert r.json()["ancestry_path"] == [tree["id"], chairs["id"]]

        names = [c["category_name"] for c in client.get("/api/categories/dropdown").json()]
        assert "Ergonomic" in names

    def test_bulk_reports_failures(self, client, tree):
        r = client.post(
            "/api/categories/bulk",
            json=[{"category_name": "Storage"}, {"category_name": "Office"}],
        )
        assert r.status_code == 200
        data = r.json()
        assert [c["category_name"] for c in data["created"]] == ["Storage"]
        assert data["errors"][0]["index"] == 1

    def test_rename_and_delete(self, client):
        r = client.post("/api/categories/", json={"category_name": "Temp", "subcategories": [{"category_name": "Temp child"}]})
        cid = r.json()["id"]

        r = client.put(f"/api/categories/{cid}", json={"category_name": "Temporary"})
        assert r.status_code == 200
        assert r.json()["category_name"] == "Temporary"

        r = client.delete(f"/api/categories/{cid}")
        assert r.status_code == 200
        assert len(r.json()["deleted_ids"]) == 2
        assert client.get(f"/api/categories/{cid}").status_code == 404


class TestProductAPI:
    def test_get_and_list(self, client, product):
        r = client.get(f"/api/products/{product['id']}")
        assert r.status_code == 200
        assert r.json()["code"] == "DSK-OAK"

        r = client.get("/api/products/?search=Oak")
        assert r.json()["total"] == 1

    def test_image_upload(self, client, product):
        r = client.post(
            f"/api/products/{product['id']}/image",
            files={"file": ("oak.png", b"\x89PNG fake", "image/png")},
        )
        assert r.status_code == 200, r.text
        data = r.json()
        assert data["image_url"] == f"{settings.ASSET_URL_PREFIX}/{data['product_image']}"
        assert os.path.exists(os.path.join(settings.UPLOAD_DIR, data["product_image"]))

    def test_gallery(self, client, product):
        base = f"/api/products/{product['id']}/gallery"
        r = client.post(
            base,
            files=[
                ("files", ("front.png", b"\x89PNG front", "image/png")),
                ("files", ("back.png", b"\x89PNG back", "image/png")),
            ],
        )
        assert r.status_code == 200, r.text
        assert len(r.json()["product_gallery"]) == 2

        r = client.get(base)
        assert r.status_code == 200
        data = r.json()
        first, second = data["gallery"]
        assert data["gallery_urls"][1] == f"{settings.ASSET_URL_PREFIX}/{second}"

        r = client.delete(f"{base}/9")
        assert r.status_code == 422
        assert r.json()["error"] == "ValidationError"

        r = client.delete(f"{base}/0")
        assert r.status_code == 200
        assert r.json()["product_gallery"] == [second]
        assert not os.path.exists(os.path.join(settings.UPLOAD_DIR, first))

    def test_missing_product(self, client):
        r = client.get("/api/products/99999")
        assert r.status_code == 404
        assert r.json()["error"] == "NotFound"


class TestQuotationAPI:
    def test_full_lifecycle(self, client, product):
        r = client.post(
            "/api/quotations/",
            json={
                "quotation_name": "Office refresh",
                "client_name": "Initech",
                "subject": "Desks",
                "items": [{"product_id": product["id"], "quantity": 2}],
                "cgst": 9,
                "sgst": 9,
                "discount": 10,
            },
        )
        assert r.status_code == 201, r.text
        created = r.json()
        qid = created["id"]
        assert created["status"] == "Draft"
        assert created["total"] == 208
        assert created["items"][0]["product_name"] == "Oak desk"
        assert created["items"][0]["category"] == "Office"

        r = client.post(f"/api/quotations/{qid}/payment", json={"amount_received": 10})
        assert r.status_code == 409
        assert r.json()["error"] == "InvalidStatus"

        r = client.post(f"/api/quotations/{qid}/finalize")
        assert r.status_code == 200
        assert r.json()["running_balance"] == 208

        r = client.post(f"/api/quotations/{qid}/finalize")
        assert r.status_code == 409

        r = client.post(
            f"/api/quotations/{qid}/payment",
            json={"amount_received": 100, "payment_method": "Cash"},
        )
        assert r.status_code == 200
        data = r.json()
        assert data["running_balance"] == 308
        assert data["paid"] == 100
        assert data["due"] == 108

        r = client.post(f"/api/quotations/{qid}/payment", json={"amount_received": 500})
        assert r.status_code == 400
        assert r.json()["error"] == "OverPayment"

        r = client.get(f"/api/quotations/{qid}/transactions")
        assert [t["balance_after"] for t in r.json()["transactions"]] == [208, 308]

        r = client.patch(f"/api/quotations/{qid}/approve")
        assert r.status_code == 200
        assert r.json()["status"] == "Approved"

        r = client.delete(f"/api/quotations/{qid}")
        assert r.status_code == 409

    def test_staged_creation(self, client):
        r = client.post(
            "/api/quotations/initial",
            json={"quotation_name": "Staged", "client_name": "Hooli", "subject": "Chairs"},
        )
        assert r.status_code == 201
        qid = r.json()["id"]

        r = client.post(
            f"/api/quotations/{qid}/products",
            json={"items": [{"product_name": "Chair", "quantity": 4, "unit_price": 25, "category": "Seating"}]},
        )
        assert r.json()["subtotal"] == 100

        r = client.post(f"/api/quotations/{qid}/financial", json={"other_tax": 5})
        assert r.json()["total"] == 105

        assert "Seating" in client.get("/api/quotations/categories").json()
        listed = client.get("/api/quotations/category/Seating").json()
        assert [q["id"] for q in listed] == [qid]

        r = client.delete(f"/api/quotations/{qid}")
        assert r.status_code == 200
        assert client.get(f"/api/quotations/{qid}").status_code == 404

    def test_validation_errors(self, client):
        r = client.post(
            "/api/quotations/",
            json={"quotation_name": "Bad", "client_name": "X", "subject": "Y", "items": []},
        )
        assert r.status_code == 422

        r = client.post(
            "/api/quotations/initial",
            json={"quotation_name": "Blank", "client_name": "X", "subject": "Y"},
        )
        qid = r.json()["id"]
        r = client.put(f"/api/quotations/{qid}", json={"subject": "   "})
        assert r.status_code == 422
        assert client.get(f"/api/quotations/{qid}").json()["subject"] == "Y"

    def test_list(self, client):
        r = client.get("/api/quotations/?status=Approved")
        assert r.status_code == 200
        assert all(q["status"] == "Approved" for q in r.json()["items"])


class TestClientFinanceAPI:
    def test_client_transaction_summary(self, client):
        r = client.post("/api/client-finance/clients", json={"name": "Umbrella"})
        assert r.status_code == 201
        client_id = r.json()["id"]

        r = client.post(
            "/api/quotations/",
            json={
                "quotation_name": "Umbrella job",
                "client_name": "Umbrella",
                "subject": "Cabinets",
                "client_id": client_id,
                "items": [{"product_name": "Cabinet", "quantity": 1, "unit_price": 300}],
            },
        )
        quotation = r.json()

        r = client.post(
            "/api/client-finance/transaction",
            json={"quotation_number": quotation["quotation_number"], "type": "credit", "amount": 300},
        )
        assert r.status_code == 201, r.text
        assert r.json()["client_id"] == client_id

        r = client.get(f"/api/client-finance/summary/{quotation['id']}")
        assert r.status_code == 200
        summary = r.json()
        assert summary["total_credited"] == 300
        assert summary["profit"] == 300
        assert summary["due"] == 300

        numbers = [n["quotation_number"] for n in client.get("/api/client-finance/quotations/numbers").json()]
        assert quotation["quotation_number"] in numbers
        assert numbers == sorted(numbers)

    def test_transaction_requires_client(self, client):
        r = client.post("/api/client-finance/transaction", json={"type": "debit", "amount": 5})
        assert r.status_code == 422
        assert r.json()["error"] == "ValidationError"
