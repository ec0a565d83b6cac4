# tests/test_api.py
from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import delete

from stock_api.crud import product as crud
from stock_api.database import session_scope
from stock_api.main import app
from stock_api.models.product import Product

API = "/api/produtos"


# --- Utilities ----------------------------------------------------------------
def _dump_response(r: httpx.Response) -> str:
    """Compact diagnostic for assertion messages."""
    try:
        j = r.json()
    except Exception:
        j = None
    snippet = (r.text or "")[:500].replace("\n", "\\n")
    return (
        f"status={r.status_code} {r.request.method} {r.request.url} "
        f"json={j!r} text='{snippet}...'"
    )


def _assert_status(r: httpx.Response, expected: int | tuple[int, ...]):
    if isinstance(expected, int):
        ok = r.status_code == expected
        exp_str = str(expected)
    else:
        ok = r.status_code in expected
        exp_str = "|".join(map(str, expected))
    assert ok, f"expected {exp_str} but got: {_dump_response(r)}"


def _assert_error(r: httpx.Response, expected: int, message: Optional[str] = None):
    _assert_status(r, expected)
    body = r.json()
    assert set(body) == {"error"}, body
    if message is not None:
        assert body["error"] == message, body


def create_product(c: TestClient, name: Optional[str] = None, quantity: Any = 10) -> Dict[str, Any]:
    payload = {"nome": name or f"Prod_{uuid.uuid4().hex[:8]}", "quantidade": quantity}
    r = c.post(API, json=payload)
    _assert_status(r, 201)
    j = r.json()
    assert isinstance(j.get("id"), int) and j["id"] > 0, j
    return j


def list_products(c: TestClient) -> list:
    r = c.get(API)
    _assert_status(r, 200)
    j = r.json()
    assert isinstance(j, list), j
    return j


# --- Fixtures -----------------------------------------------------------------
@pytest.fixture(scope="session")
def client() -> TestClient:
    # context manager => runs the lifespan (startup check creates the table)
    with TestClient(app) as c:
        yield c


@pytest.fixture(autouse=True)
def _empty_table(client: TestClient):
    with session_scope() as db:
        db.execute(delete(Product))
    yield


# --- Create -------------------------------------------------------------------
@pytest.mark.timeout(10)
def test_create_returns_full_product(client: TestClient):
    j = create_product(client, "  Parafusos M6  ", 40)

    assert j["nome"] == "Parafusos M6"
    assert j["quantidade"] == 40
    assert j.get("created_at") and j.get("updated_at"), j
    assert "lowStock" not in j and "warning" not in j, j


@pytest.mark.timeout(10)
def test_create_low_stock_advisory(client: TestClient):
    low = create_product(client, "Porcas", 3)
    assert low["lowStock"] is True, low
    assert low["warning"], low

    ok = create_product(client, "Anilhas", 4)
    assert "lowStock" not in ok, ok


@pytest.mark.timeout(10)
def test_create_accepts_integer_string_and_english_keys(client: TestClient):
    r = client.post(API, json={"nome": "Buchas", "quantidade": "12"})
    _assert_status(r, 201)
    assert r.json()["quantidade"] == 12

    r = client.post(API, json={"name": "Pregos", "quantity": 5})
    _assert_status(r, 201)
    assert r.json()["nome"] == "Pregos"


@pytest.mark.timeout(10)
@pytest.mark.parametrize(
    "payload, message",
    [
        ({"quantidade": 5}, "Product name is required."),
        ({"nome": "   ", "quantidade": 5}, "Product name is required."),
        ({"nome": "Pregos"}, "Quantity is required."),
        ({"nome": "Pregos", "quantidade": None}, "Quantity is required."),
        ({"nome": "Pregos", "quantidade": 0}, "Quantity must be a positive integer."),
        ({"nome": "Pregos", "quantidade": -1}, "Quantity must be a positive integer."),
        ({"nome": "Pregos", "quantidade": "abc"}, "Quantity must be a positive integer."),
        ({"nome": "Pregos", "quantidade": 2.5}, "Quantity must be a positive integer."),
    ],
)
def test_create_validation_errors(client: TestClient, payload, message):
    r = client.post(API, json=payload)
    _assert_error(r, 400, message)
    assert list_products(client) == []


@pytest.mark.timeout(10)
def test_malformed_body_is_bad_request(client: TestClient):
    r = client.post(API, content=b"{not json", headers={"content-type": "application/json"})
    _assert_error(r, 400)

    r = client.post(API, json=[{"nome": "x", "quantidade": 1}])
    _assert_error(r, 400)

    r = client.post(API, json={"nome": ["x"], "quantidade": 1})
    _assert_error(r, 400, "Product name is required.")


@pytest.mark.timeout(10)
@pytest.mark.parametrize("quantity", [True, [3], {"q": 3}, 10**20, "9" * 5000, 2**31])
def test_create_rejects_unusable_quantity_with_validator_message(client: TestClient, quantity):
    r = client.post(API, json={"nome": "Pregos", "quantidade": quantity})
    _assert_error(r, 400, "Quantity must be a positive integer.")
    assert list_products(client) == []


@pytest.mark.timeout(10)
def test_create_accepts_largest_quantity(client: TestClient):
    p = create_product(client, "Estoque cheio", 2**31 - 1)
    assert p["quantidade"] == 2**31 - 1


@pytest.mark.timeout(10)
def test_name_length_limit(client: TestClient):
    r = client.post(API, json={"nome": "x" * 101, "quantidade": 5})
    _assert_error(r, 400, "Product name must be at most 100 characters.")
    assert list_products(client) == []

    p = create_product(client, "  " + "y" * 100 + "  ", 5)
    assert p["nome"] == "y" * 100

    r = client.put(f"{API}/{p['id']}", json={"nome": "z" * 101, "quantidade": 5})
    _assert_error(r, 400, "Product name must be at most 100 characters.")
    assert list_products(client)[0]["nome"] == "y" * 100


# --- List / search ------------------------------------------------------------
@pytest.mark.timeout(10)
def test_list_round_trip_and_order(client: TestClient):
    z = create_product(client, "Zebra", 5)
    create_product(client, "Apple", 7)

    items = list_products(client)
    assert [p["nome"] for p in items] == ["Apple", "Zebra"]
    zebra = items[1]
    assert zebra["id"] == z["id"]
    assert zebra["quantidade"] == 5


@pytest.mark.timeout(10)
def test_search_by_substring(client: TestClient):
    for name in ("Banana", "Ananas", "Pear"):
        create_product(client, name, 10)

    r = client.get(f"{API}/busca/ana")
    _assert_status(r, 200)
    assert [p["nome"] for p in r.json()] == ["Ananas", "Banana"]

    r = client.get(f"{API}/busca/kiwi")
    _assert_status(r, 200)
    assert r.json() == []


# --- Update -------------------------------------------------------------------
@pytest.mark.timeout(10)
def test_put_updates_product(client: TestClient):
    p = create_product(client, "Pregos", 10)

    r = client.put(f"{API}/{p['id']}", json={"nome": "Pregos 5cm", "quantidade": 20})
    _assert_status(r, 200)
    assert r.json() == {"success": True}

    [item] = list_products(client)
    assert (item["id"], item["nome"], item["quantidade"]) == (p["id"], "Pregos 5cm", 20)
    assert item["created_at"] == p["created_at"]


@pytest.mark.timeout(10)
def test_put_same_values_succeeds(client: TestClient):
    p = create_product(client, "Pregos", 10)
    r = client.put(f"{API}/{p['id']}", json={"nome": "Pregos", "quantidade": 10})
    _assert_status(r, 200)


@pytest.mark.timeout(10)
def test_put_low_stock_advisory(client: TestClient):
    p = create_product(client, "Pregos", 10)
    r = client.put(f"{API}/{p['id']}", json={"nome": "Pregos", "quantidade": 2})
    _assert_status(r, 200)
    body = r.json()
    assert body["success"] is True and body["lowStock"] is True, body


@pytest.mark.timeout(10)
def test_put_unknown_id_is_not_found(client: TestClient):
    p = create_product(client, "Pregos", 10)

    r = client.put(f"{API}/{p['id'] + 1000}", json={"nome": "Outro", "quantidade": 1})
    _assert_error(r, 404)

    [item] = list_products(client)
    assert (item["nome"], item["quantidade"]) == ("Pregos", 10)


@pytest.mark.timeout(10)
def test_put_validation_runs_before_lookup(client: TestClient):
    r = client.put(f"{API}/999", json={"nome": "", "quantidade": 1})
    _assert_error(r, 400, "Product name is required.")


@pytest.mark.timeout(10)
def test_patch_quantity(client: TestClient):
    p = create_product(client, "Buchas", 50)

    r = client.patch(f"{API}/{p['id']}/quantidade", json={"quantidade": 8})
    _assert_status(r, 200)
    assert r.json() == {"success": True}
    assert list_products(client)[0]["quantidade"] == 8

    r = client.patch(f"{API}/{p['id']}/quantidade", json={"quantidade": 1})
    _assert_status(r, 200)
    assert r.json()["lowStock"] is True


@pytest.mark.timeout(10)
@pytest.mark.parametrize("payload", [
        {},
        {"quantidade": 0},
        {"quantidade": "x"},
        {"quantidade": 1.5},
        {"quantidade": True},
        {"quantidade": [3]},
        {"quantidade": {"q": 3}},
        {"quantidade": "9" * 5000},
    ])
def test_patch_invalid_quantity(client: TestClient, payload):
    p = create_product(client, "Buchas", 50)
    r = client.patch(f"{API}/{p['id']}/quantidade", json=payload)
    _assert_error(r, 400, "Quantity must be a positive integer.")


@pytest.mark.timeout(10)
def test_patch_unknown_id_is_not_found(client: TestClient):
    r = client.patch(f"{API}/424242/quantidade", json={"quantidade": 5})
    _assert_error(r, 404)


# --- Delete -------------------------------------------------------------------
@pytest.mark.timeout(10)
def test_delete_then_delete_again(client: TestClient):
    p = create_product(client, "Porcas", 3)

    r = client.delete(f"{API}/{p['id']}")
    _assert_status(r, 200)
    assert r.json() == {"success": True}
    assert list_products(client) == []

    r = client.delete(f"{API}/{p['id']}")
    _assert_error(r, 404)


@pytest.mark.timeout(10)
def test_non_integer_id_is_bad_request(client: TestClient):
    r = client.delete(f"{API}/abc")
    _assert_error(r, 400)


# --- Store failures -----------------------------------------------------------
@pytest.mark.timeout(10)
def test_store_failure_is_500_with_generic_message(client: TestClient, monkeypatch: pytest.MonkeyPatch):
    def _boom(*args, **kwargs):
        raise crud.StoreUnavailableError("Could not list products.")

    monkeypatch.setattr(crud, "list_all", _boom)
    r = client.get(API)
    _assert_error(r, 500, "Database error, please try again later.")
    assert r.headers.get("x-request-id")
