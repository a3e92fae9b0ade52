import pytest
from starlette.websockets import WebSocketDisconnect

from app.models.enums import RoleName
from app.models.farm import UserFarmRole


CANOLA = {"name": "Canola", "acres": 1000, "target_yield": 40, "price_per_unit": 14}


def _as(user_id: int) -> dict[str, str]:
    return {"X-User-Id": str(user_id)}


def _create_farm(client, name: str = "Test Farm") -> int:
    response = client.post("/api/farms", json={"name": name})
    assert response.status_code == 201
    return response.json()["id"]


def _grant(api_session, user_id: int, farm_id: int, role: RoleName) -> None:
    with api_session() as db:
        db.add(UserFarmRole(user_id=user_id, farm_id=farm_id, role=role))
        db.commit()


def _budgeted_farm(client) -> int:
    farm_id = _create_farm(client)
    response = client.put(f"/api/farms/{farm_id}/assumptions/2026", json={"start_month": "Nov", "crops": [CANOLA]})
    assert response.status_code == 200
    return farm_id


def test_health(client) -> None:
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert client.get("/healthz").json()["ok"] is True


def test_farm_lifecycle(client, users) -> None:
    response = client.post("/api/farms", json={"name": "  North Farm  "})
    assert response.status_code == 201
    body = response.json()
    assert body["name"] == "North Farm"
    assert body["role"] == "admin"
    farm_id = body["id"]

    assert [farm["id"] for farm in client.get("/api/farms").json()] == [farm_id]
    assert client.get("/api/farms", headers=_as(users["viewer"])).json() == []

    response = client.patch(f"/api/farms/{farm_id}", json={"name": "South Farm"})
    assert response.status_code == 200
    assert response.json()["name"] == "South Farm"

    assert client.delete(f"/api/farms/{farm_id}").status_code == 200
    assert client.get(f"/api/farms/{farm_id}/assumptions").status_code == 404


def test_roles_gate_writes(client, api_session, users) -> None:
    farm_id = _budgeted_farm(client)

    # No membership at all.
    assert client.get(f"/api/farms/{farm_id}/assumptions", headers=_as(users["manager"])).status_code == 403

    _grant(api_session, users["viewer"], farm_id, RoleName.viewer)
    viewer = _as(users["viewer"])
    assert client.get(f"/api/farms/{farm_id}/assumptions", headers=viewer).status_code == 200
    response = client.put(f"/api/farms/{farm_id}/assumptions/2026", json={"crops": [CANOLA]}, headers=viewer)
    assert response.status_code == 403
    response = client.patch(
        f"/api/farms/{farm_id}/per-unit/2026/Nov",
        json={"category_code": "input_seed", "value": 1},
        headers=viewer,
    )
    assert response.status_code == 403

    assert client.get("/api/farms", headers=_as(999)).status_code == 401


def test_invalid_year_and_month(client) -> None:
    farm_id = _budgeted_farm(client)
    assert client.get(f"/api/farms/{farm_id}/per-unit/abc").status_code == 400
    response = client.patch(f"/api/farms/{farm_id}/per-unit/2026/Foo", json={"category_code": "input_seed", "value": 1})
    assert response.status_code == 400


def test_per_unit_edit_freeze_and_audit(client, api_session, users) -> None:
    farm_id = _budgeted_farm(client)
    _grant(api_session, users["manager"], farm_id, RoleName.manager)
    manager = _as(users["manager"])

    response = client.patch(
        f"/api/farms/{farm_id}/per-unit/2026/Nov",
        json={"category_code": "input_seed", "value": 12.5},
        headers=manager,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["per_unit"]["input_seed"] == 12.5
    assert body["accounting"]["input_seed"] == 12500.0
    assert body["accounting"]["inputs"] == 12500.0

    response = client.patch(f"/api/farms/{farm_id}/per-unit/2026/Nov", json={"category_code": "inputs", "value": 1})
    assert response.status_code == 400

    grid = client.get(f"/api/farms/{farm_id}/accounting/2026").json()
    assert grid["total_acres"] == 1000.0
    assert grid["summary"]["Nov"]["inputs"] == 12500.0

    response = client.post(f"/api/farms/{farm_id}/assumptions/2026/freeze", headers=manager)
    assert response.status_code == 200
    assert response.json()["frozen_rows"] == 24
    assert client.post(f"/api/farms/{farm_id}/assumptions/2026/freeze").status_code == 409

    frozen = client.get(f"/api/farms/{farm_id}/frozen/2026").json()
    assert frozen["months"]["Nov"]["per_unit"]["input_seed"] == 12.5

    response = client.patch(f"/api/farms/{farm_id}/per-unit/2026/Dec", json={"category_code": "input_seed", "value": 3})
    assert response.status_code == 403

    assert client.post(f"/api/farms/{farm_id}/assumptions/2026/unfreeze", headers=manager).status_code == 403
    assert client.post(f"/api/farms/{farm_id}/assumptions/2026/unfreeze").status_code == 200

    actions = [entry["action"] for entry in client.get(f"/api/farms/{farm_id}/audit").json()]
    assert actions[0] == "budget_unfrozen"
    assert "budget_frozen" in actions
    assert client.get(f"/api/farms/{farm_id}/audit", params={"fiscal_year": 2025}).json() == []


def test_csv_preview_upload(client) -> None:
    farm_id = _budgeted_farm(client)
    content = b'Account,Nov 2025,Dec 2025\nSeed,100,"1,250.50"\nMystery,5,5\n'
    response = client.post(
        f"/api/farms/{farm_id}/accounting/import-csv/preview",
        files={"file": ("gl.csv", content, "text/csv")},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["account_column"] == "Account"
    assert body["month_columns"] == {"Nov 2025": "Nov", "Dec 2025": "Dec"}
    assert body["accounts"] == ["Seed", "Mystery"]
    assert body["mapping"] == {"Seed": "input_seed"}
    assert body["category_totals"]["input_seed"]["month_totals"] == {"Nov": 100.0, "Dec": 1250.5}

    response = client.post(
        f"/api/farms/{farm_id}/accounting/import-csv/preview",
        files={"file": ("empty.csv", b"", "text/csv")},
    )
    assert response.status_code == 400


def test_duplicate_category_conflicts(client) -> None:
    farm_id = _budgeted_farm(client)
    payload = {"code": "input_custom", "display_name": "Custom", "category_type": "input", "parent_code": "inputs"}
    response = client.post(f"/api/farms/{farm_id}/categories", json=payload)
    assert response.status_code == 201
    assert response.json()["level"] == 1
    assert client.post(f"/api/farms/{farm_id}/categories", json=payload).status_code == 409

    payload["parent_code"] = "missing"
    payload["code"] = "input_other"
    assert client.post(f"/api/farms/{farm_id}/categories", json=payload).status_code == 404


def test_farm_socket_accepts_members_and_rejects_unknown_farms(client) -> None:
    farm_id = _create_farm(client)
    with client.websocket_connect(f"/api/ws/farms/{farm_id}") as websocket:
        websocket.send_text("ping")

    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/api/ws/farms/9999") as websocket:
            websocket.receive_text()


def test_export_on_new_farm_leaves_categories_editable(client) -> None:
    farm_id = _create_farm(client)
    assert client.get(f"/api/farms/{farm_id}/export/csv/2026").status_code == 200

    categories = {row["code"]: row for row in client.get(f"/api/farms/{farm_id}/categories").json()}
    response = client.put(
        f"/api/farms/{farm_id}/categories/{categories['inputs']['id']}",
        json={"display_name": "Crop Inputs"},
    )
    assert response.status_code == 200
    assert response.json()["display_name"] == "Crop Inputs"

    payload = {"code": "input_custom", "display_name": "Custom", "category_type": "INPUT", "parent_code": "inputs"}
    assert client.post(f"/api/farms/{farm_id}/categories", json=payload).status_code == 201
    assert client.get(f"/api/farms/{farm_id}/gl-accounts").json()


def test_cell_edits_are_pushed_to_farm_sockets(client) -> None:
    farm_id = _budgeted_farm(client)
    with client.websocket_connect(f"/api/ws/farms/{farm_id}") as websocket:
        response = client.patch(
            f"/api/farms/{farm_id}/per-unit/2026/Dec",
            json={"category_code": "input_seed", "value": 7.5},
        )
        assert response.status_code == 200
        event = websocket.receive_json()
        assert event["type"] == "cell_change"
        assert event["fiscal_year"] == 2026
        assert event["month"] == "Dec"
        assert event["category_code"] == "input_seed"
        assert event["per_unit_value"] == 7.5
        assert event["accounting_value"] == 7500.0

        response = client.patch(
            f"/api/farms/{farm_id}/accounting/2026/Nov",
            json={"category_code": "input_fert", "value": 2000},
        )
        assert response.status_code == 200
        event = websocket.receive_json()
        assert event["month"] == "Nov"
        assert event["category_code"] == "input_fert"
        assert event["accounting_value"] == 2000.0
        assert event["per_unit_value"] == 2.0
