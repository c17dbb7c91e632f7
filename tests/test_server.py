"""Tests for server/app.py endpoints."""

import sys, os
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))
sys.path.insert(0, os.path.dirname(__file__))

import pytest
from starlette.testclient import TestClient

from crypto import sign_message
from server.app import create_app
from server.block import encode_body
from server.chain import Blockchain
from conftest import OWNER_ADDRESS, OWNER_PRIV, OTHER_PRIV, SAMPLE_STAR, T0, FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app(clock):
    """Fresh app around an in-memory chain for each test."""
    return create_app(chain=Blockchain(clock=clock))


@pytest.fixture
def client(app):
    return TestClient(app)


def _challenge(client, address=OWNER_ADDRESS):
    resp = client.post("/requestValidation", json={"address": address})
    assert resp.status_code == 200
    return resp.json()["message"]


def _submit(client, message, privkey=OWNER_PRIV, address=OWNER_ADDRESS, star=None):
    return client.post("/submitstar", json={
        "address": address,
        "message": message,
        "signature": sign_message(privkey, message),
        "star": star or SAMPLE_STAR,
    })


# --- Reads ---

def test_default_chain_is_created():
    client = TestClient(create_app())
    assert client.get("/height").json() == {"height": 0}


def test_height(client):
    assert client.get("/height").json() == {"height": 0}


def test_genesis_by_height(client, app):
    resp = client.get("/block/height/0")
    assert resp.status_code == 200
    data = resp.json()
    assert data["height"] == 0
    assert data["previous_hash"] == ""
    assert data["hash"] == app.state.chain.chain[0].hash


def test_block_by_height_not_found(client):
    resp = client.get("/block/height/9")
    assert resp.status_code == 404
    assert "Block Not Found" in resp.json()["detail"]


def test_block_by_height_rejects_non_int(client):
    assert client.get("/block/height/abc").status_code == 422


def test_block_by_hash(client, app):
    genesis_hash = app.state.chain.chain[0].hash
    resp = client.get(f"/block/hash/{genesis_hash}")
    assert resp.status_code == 200
    assert resp.json()["height"] == 0


def test_block_by_hash_not_found(client):
    assert client.get(f"/block/hash/{'00' * 32}").status_code == 404


# --- Ownership flow ---

def test_request_validation(client):
    assert _challenge(client) == f"{OWNER_ADDRESS}:{T0}:starRegistry"


def test_request_validation_empty_address(client):
    assert client.post("/requestValidation", json={"address": "  "}).status_code == 400


def test_request_validation_missing_address(client):
    assert client.post("/requestValidation", json={}).status_code == 422


def test_submit_star(client, app, clock):
    message = _challenge(client)
    clock.advance(1)
    resp = _submit(client, message)
    assert resp.status_code == 200
    block = resp.json()
    assert block["height"] == 1
    assert block["previous_hash"] == app.state.chain.chain[0].hash
    assert client.get("/height").json() == {"height": 1}


def test_submit_star_expired(client, clock):
    message = _challenge(client)
    clock.advance(300)
    resp = _submit(client, message)
    assert resp.status_code == 400
    assert "Incorrect time" in resp.json()["detail"]


def test_submit_star_bad_format(client):
    resp = _submit(client, "just-a-string")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Incorrect message format"


def test_submit_star_bad_signature(client):
    message = _challenge(client)
    resp = _submit(client, message, privkey=OTHER_PRIV)
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Message signature unverified"
    assert client.get("/height").json() == {"height": 0}


def test_submit_star_requires_object(client):
    message = _challenge(client)
    resp = client.post("/submitstar", json={
        "address": OWNER_ADDRESS,
        "message": message,
        "signature": sign_message(OWNER_PRIV, message),
        "star": "a string",
    })
    assert resp.status_code == 422


def test_stars_by_address(client):
    _submit(client, _challenge(client), star={"ra": "1"})
    _submit(client, _challenge(client), star={"ra": "2"})
    resp = client.get(f"/blocks/{OWNER_ADDRESS}")
    assert resp.status_code == 200
    assert sorted(s["star"]["ra"] for s in resp.json()) == ["1", "2"]
    assert all(s["owner"] == OWNER_ADDRESS for s in resp.json())


def test_stars_unknown_address(client):
    assert client.get("/blocks/star_nobody").json() == []


# --- Validation ---

def test_validate_chain_valid(client):
    _submit(client, _challenge(client))
    assert client.get("/validateChain").json() == {"valid": True, "errors": []}


def test_validate_chain_tampered(client, app):
    for _ in range(3):
        _submit(client, _challenge(client))
    app.state.chain.chain[1].body = encode_body({"address": OWNER_ADDRESS, "star": {"ra": "x"}})
    data = client.get("/validateChain").json()
    assert data["valid"] is False
    assert len(data["errors"]) == 1
    assert data["errors"][0]["kind"] == "tampered_data"
    assert data["errors"][0]["height"] == 1


def test_validate_chain_strict(client, app):
    for _ in range(2):
        _submit(client, _challenge(client))
    block = app.state.chain.chain[2]
    block.previous_hash = "ff" * 32
    block.hash = block.compute_hash()
    assert client.get("/validateChain").json()["valid"] is True
    data = client.get("/validateChain", params={"strict": "true"}).json()
    assert data["valid"] is False
    assert data["errors"][0]["kind"] == "broken_linkage"
    assert data["errors"][0]["actual_previous_hash"] == "ff" * 32
