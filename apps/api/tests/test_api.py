"""
HTTP tests (FastAPI TestClient) -- routing, envelopes, request ids, feature flag.
"""

import pytest


def _setup(client):
    gs = client.post("/game-systems", json={"name": "Warhammer 40,000"}).json()
    army = client.post("/armies", json={"name": "Space Marines", "game_system_id": gs["id"]}).json()
    model = client.post("/models", json={
        "name": "Intercessor", "game_system_id": gs["id"], "army_ids": [army["id"]], "quantity": 10, "status": "Painted",
    }).json()
    return gs, army, model


class TestHealth:
    def test_contract_keys(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        body = r.json()
        assert set(body) == {"status", "version", "db", "storage", "last_error_summary"}
        assert body["status"] == "ok"
        assert body["last_error_summary"] is None

    def test_request_id_echoed(self, client):
        r = client.get("/health", headers={"X-Request-Id": "ABC123"})
        assert r.headers["X-Request-Id"] == "ABC123"
        assert client.get("/health").headers.get("X-Request-Id")


class TestCollectionRoutes:
    def test_crud_flow(self, client):
        gs, army, model = _setup(client)
        assert model["army_ids"] == [army["id"]]

        r = client.patch(f"/models/{model['id']}", json={"status": "Based"})
        assert r.status_code == 200
        assert r.json()["status"] == "Based"

        assert client.get(f"/models/{model['id']}").json()["status"] == "Based"
        assert [m["name"] for m in client.get("/models", params={"search": "inter"}).json()] == ["Intercessor"]

        assert client.delete(f"/game-systems/{gs['id']}").status_code == 204
        assert client.get("/models").json() == []
        assert client.get("/armies").json() == []

    def test_not_found_envelope(self, client):
        r = client.patch("/models/nope", json={"status": "Based"})
        assert r.status_code == 404
        body = r.json()
        assert body["error"] == "not_found"
        assert set(body) == {"error", "message", "request_id", "details"}
        assert body["request_id"] == r.headers["X-Request-Id"]

    def test_validation_envelope(self, client):
        r = client.post("/models", json={"name": "X", "game_system_id": "g", "quantity": 0})
        assert r.status_code == 422
        assert r.json()["error"] == "validation_error"

    def test_dangling_army_reference(self, client):
        r = client.post("/armies", json={"name": "Orphans", "game_system_id": "missing"})
        assert r.status_code == 422
        assert r.json()["error"] == "invalid_reference"

    def test_bulk_update_and_delete(self, client):
        gs, army, model = _setup(client)
        other = client.post("/models", json={"name": "Hellblaster", "game_system_id": gs["id"]}).json()
        r = client.post("/models/bulk-update", json={"ids": [model["id"], other["id"]], "patch": {"status": "Primed"}})
        assert r.status_code == 200
        assert {m["status"] for m in r.json()} == {"Primed"}

        r = client.post("/models/bulk-update", json={"ids": [model["id"], "missing"], "patch": {"status": "Based"}})
        assert r.status_code == 500
        assert r.json()["error"] == "store_error"
        assert client.get(f"/models/{model['id']}").json()["status"] == "Primed"

        r = client.post("/models/bulk-delete", json={"ids": [model["id"], other["id"]]})
        assert r.json() == {"deleted": 2}
        assert client.get("/models").json() == []

    def test_paints_sorted(self, client):
        client.post("/paints/bulk", json={"items": [
            {"name": "Nuln Oil", "manufacturer": "Citadel", "paint_type": "Shade", "stock": 4},
            {"name": "Abaddon Black", "manufacturer": "Citadel", "paint_type": "Base", "stock": 1},
        ]})
        names = [p["name"] for p in client.get("/paints", params={"sort": "stock-desc"}).json()]
        assert names == ["Nuln Oil", "Abaddon Black"]

    def test_notifications(self, client):
        client.post("/game-systems", json={"name": "Necromunda"})
        messages = [n["message"] for n in client.get("/notifications").json()]
        assert "Game system added successfully!" in messages


class TestSettingsRoutes:
    def test_put_and_low_stock(self, client):
        client.post("/paints", json={"name": "Nuln Oil", "manufacturer": "Citadel", "stock": 3})
        assert client.get("/dashboard/low-stock").json()["items"] == []
        assert client.put("/settings", json={"min_stock_threshold": 3}).json() == {"min_stock_threshold": 3}
        items = client.get("/dashboard/low-stock").json()["items"]
        assert [p["name"] for p in items] == ["Nuln Oil"]

    def test_clear_requires_confirmation(self, client):
        _setup(client)
        r = client.post("/settings/clear-all-data", json={})
        assert r.status_code == 400
        assert len(client.get("/models").json()) == 1
        assert client.post("/settings/clear-all-data", json={"confirm": True}).json() == {"cleared": True}
        assert client.get("/game-systems").json() == []


class TestImportRoutes:
    CSV = (
        "name,game system,army,quantity,status\n"
        "Goliath Forge Boss,Necromunda,Goliaths,1,Assembled\n"
        'Intercessor,"Warhammer 40,000",Space Marines,10,Painted\n'
    )

    def test_review_then_commit(self, client):
        _setup(client)
        r = client.post("/imports/models", content=self.CSV, headers={"Content-Type": "text/csv"})
        assert r.status_code == 200
        plan = r.json()
        assert plan["needs_review"] is True
        assert plan["status"] == "pending"
        assert [row["status"] for row in plan["rows"]] == ["NEW", "DUPLICATE"]

        r = client.post(f"/imports/{plan['plan_id']}/duplicates", json={"selected": False})
        assert r.json()["rows"][1]["selected"] is False

        r = client.post(f"/imports/{plan['plan_id']}/commit")
        body = r.json()
        assert body["status"] == "committed"
        assert body["summary"]["imported"] == 1
        assert body["summary"]["skipped_duplicates"] == 1

        again = client.post(f"/imports/{plan['plan_id']}/commit")
        assert again.status_code == 409

    def test_clean_file_commits_immediately(self, client):
        _setup(client)
        csv_text = 'name,game system,army,quantity,status\nHellblaster,"Warhammer 40,000",Space Marines,5,Primed\n'
        plan = client.post("/imports/models", content=csv_text).json()
        assert plan["status"] == "committed"
        assert plan["summary"]["imported"] == 1
        assert len(client.get("/models").json()) == 2

    def test_error_row_toggle_conflict(self, client):
        plan = client.post("/imports/models", content="name,game system,army,quantity,status\nX,Y,Z,0,Primed\n").json()
        r = client.patch(f"/imports/{plan['plan_id']}/rows/0", json={"selected": True})
        assert r.status_code == 409

    def test_cancel_and_unknown_plan(self, client):
        plan = client.post("/imports/models", content=self.CSV).json()
        assert client.delete(f"/imports/{plan['plan_id']}").status_code == 200
        assert client.get(f"/imports/{plan['plan_id']}").status_code == 404

    def test_export_csv(self, client):
        _setup(client)
        r = client.get("/exports/models.csv")
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/csv")
        assert r.text.splitlines()[1] == 'Intercessor,"Warhammer 40,000",Space Marines,10,Painted'

    def test_feature_flag(self, client, monkeypatch):
        monkeypatch.setenv("EXPORT_IMPORT_ENABLED", "0")
        r = client.get("/exports/models.csv")
        assert r.status_code == 503
        assert r.json()["error"] == "export_import_disabled"


class TestDashboardRoutes:
    def test_dashboard_and_calendar(self, client):
        _setup(client)
        d = client.get("/dashboard").json()
        assert d["total_models"] == 1
        assert d["status_breakdown"][0]["status"] == "Painted"

        client.post("/painting-sessions", json={"title": "Night", "start": "2025-10-03T18:00:00Z", "end": "2025-10-03T20:00:00Z"})
        cal = client.get("/calendar", params={"month": "2025-10"}).json()
        assert list(cal["days"]) == ["2025-10-03"]
        assert client.get("/calendar", params={"month": "oct"}).status_code == 400

    @pytest.mark.parametrize("body", [
        {"title": "Backwards", "start": "2025-10-03T20:00:00Z", "end": "2025-10-03T18:00:00Z"},
        {"title": "Garbage", "start": "yesterday", "end": "2025-10-03T18:00:00Z"},
    ])
    def test_session_validation(self, client, body):
        assert client.post("/painting-sessions", json=body).status_code == 422
