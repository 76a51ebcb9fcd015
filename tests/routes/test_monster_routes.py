import pytest


@pytest.fixture
def monster_id(client):
    resp = client.post("/monsters", json={"name": "Blob"})
    assert resp.status_code == 201
    assert resp.json()["cost"] == 0
    return resp.json()["monster"]["id"]


def test_list_monsters(client, monster_id):
    resp = client.get("/monsters")
    assert resp.status_code == 200
    assert [m["id"] for m in resp.json()] == [monster_id]


def test_second_monster_needs_coins(client, monster_id):
    resp = client.post("/monsters", json={"name": "Second"})
    assert resp.status_code == 402


def test_blank_name_is_a_validation_error(client):
    resp = client.post("/monsters", json={"name": ""})
    assert resp.status_code == 422


def test_care_action(client, monster_id):
    resp = client.post(f"/monsters/{monster_id}/actions/feed")
    assert resp.status_code == 200
    assert resp.json() == {
        "leveled_up": False,
        "new_level": 1,
        "new_xp": 25,
        "max_xp": 100,
        "coins_earned": 10,
        "new_balance": 35,
    }


def test_care_action_errors(client, monster_id):
    assert client.post(f"/monsters/{monster_id}/actions/dance").status_code == 422
    assert client.post("/monsters/unknown/actions/feed").status_code == 404


def test_background_purchase_and_equip(client, monster_id):
    catalog = client.get("/monsters/backgrounds").json()
    assert {"id": "bg-mountains", "name": "Snowy mountains", "rarity": "uncommon", "price": 23} in catalog

    resp = client.post(f"/monsters/{monster_id}/backgrounds/bg-sunset")
    assert resp.status_code == 201
    assert resp.json()["balance"] == 15

    assert client.post(f"/monsters/{monster_id}/backgrounds/bg-sunset").status_code == 409
    assert client.post(f"/monsters/{monster_id}/backgrounds/bg-galaxy").status_code == 402

    owned = client.get(f"/monsters/{monster_id}/backgrounds").json()
    assert [o["background_id"] for o in owned] == ["bg-sunset"]

    equipped = client.put(f"/monsters/{monster_id}/background", json={"background_id": "bg-sunset"})
    assert equipped.status_code == 200
    assert equipped.json()["background_id"] == "bg-sunset"

    missing = client.put(f"/monsters/{monster_id}/background", json={"background_id": "bg-ocean"})
    assert missing.status_code == 404

    cleared = client.put(f"/monsters/{monster_id}/background", json={"background_id": None})
    assert cleared.json()["background_id"] is None


def test_get_monster(client, make_client, monster_id):
    resp = client.get(f"/monsters/{monster_id}")
    assert resp.status_code == 200
    assert resp.json()["name"] == "Blob"
    assert resp.json()["state"] == "happy"

    assert make_client("bob").get(f"/monsters/{monster_id}").status_code == 404
