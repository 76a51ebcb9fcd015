import pytest

from monsterden.app import _validate_cors_origins, create_app


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.json()["storage"] == "memory"


def test_app_uses_the_given_engine(engine):
    app = create_app(engine)
    assert app.state.engine is engine


def test_cors_origins_are_validated():
    assert _validate_cors_origins(["https://monsterden.app"]) == ["https://monsterden.app"]
    with pytest.raises(ValueError):
        _validate_cors_origins(["*"])
    with pytest.raises(ValueError):
        _validate_cors_origins(["ftp://example.com"])


def test_body_validation_errors_are_422(client):
    resp = client.post("/monsters", json={})
    assert resp.status_code == 422
    assert resp.json()["detail"][0]["loc"][-1] == "name"
