from monsterden import config
from monsterden.auth import create_access_token


def test_read_wallet_creates_it(client):
    resp = client.get("/wallet")
    assert resp.status_code == 200
    assert resp.json() == {"owner_id": "alice", "balance": 25, "total_earned": 0}


def test_packages_are_public(make_client):
    resp = make_client(None).get("/wallet/packages")
    assert resp.status_code == 200
    assert [p["coins"] for p in resp.json()] == [150, 350, 1000, 2500]


def test_missing_user_is_rejected(make_client):
    resp = make_client(None).get("/wallet")
    assert resp.status_code == 401


def test_bearer_token_identifies_user(make_client):
    client = make_client(None)
    token = create_access_token("bob")
    resp = client.get("/wallet", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert resp.json()["owner_id"] == "bob"


def test_invalid_token_is_rejected(make_client):
    resp = make_client(None).get("/wallet", headers={"Authorization": "Bearer nonsense"})
    assert resp.status_code == 401
    assert resp.json() == {"detail": "Invalid authentication credentials"}


def test_disabled_auth_uses_demo_identity(make_client, monkeypatch):
    monkeypatch.setattr(config, "disable_auth", True)
    resp = make_client(None).get("/wallet")
    assert resp.status_code == 200
    assert resp.json()["owner_id"] == "demo"
