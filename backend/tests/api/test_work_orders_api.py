"""
Tests for work order, material, QC and production endpoints
"""
import pytest


def _gate_record_id(client, headers, wo_id, qc_type):
    response = client.get(
        f"/api/v1/qc/records?work_order_id={wo_id}&qc_type={qc_type}", headers=headers,
    )
    assert response.status_code == 200
    items = response.json()["items"]
    assert len(items) == 1
    return items[0]["id"]


@pytest.fixture
def wo_id(client, production_headers):
    response = client.post(
        "/api/v1/work-orders/",
        json={"item_code": "FLANGE-01", "quantity": 100, "priority": 2},
        headers=production_headers,
    )
    assert response.status_code == 201
    return response.json()["id"]


class TestCreate:

    @pytest.mark.api
    def test_new_work_order_is_locked(self, client, production_headers, wo_id):
        response = client.get(f"/api/v1/work-orders/{wo_id}", headers=production_headers)
        body = response.json()
        assert body["status"] == "pending"
        assert body["current_stage"] == "goods_in"
        assert body["production_locked"] is True
        assert body["wo_number"].startswith("WO-")

    @pytest.mark.api
    def test_quantity_must_be_positive(self, client, production_headers):
        response = client.post(
            "/api/v1/work-orders/", json={"item_code": "FLANGE-01", "quantity": 0}, headers=production_headers,
        )
        assert response.status_code == 422
        assert response.json()["error"] == "VALIDATION_ERROR"

    @pytest.mark.api
    def test_quality_cannot_create(self, client, quality_headers):
        response = client.post(
            "/api/v1/work-orders/", json={"item_code": "FLANGE-01", "quantity": 10}, headers=quality_headers,
        )
        assert response.status_code == 403


class TestQCGates:

    @pytest.mark.api
    def test_production_stage_blocked_until_material_qc(self, client, production_headers, wo_id):
        response = client.post(
            f"/api/v1/work-orders/{wo_id}/stage", json={"to_stage": "production"}, headers=production_headers,
        )
        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "PRODUCTION_LOCKED"
        assert body["details"]["wo_number"].startswith("WO-")

    @pytest.mark.api
    def test_logging_blocked_while_locked(self, client, production_headers, wo_id):
        response = client.post(
            "/api/v1/production/logs", json={"work_order_id": wo_id, "ok_quantity": 10},
            headers=production_headers,
        )
        assert response.status_code == 422
        assert response.json()["error"] == "PRODUCTION_LOCKED"

    @pytest.mark.api
    def test_release_then_log_then_completion_blockers(
        self, client, production_headers, quality_headers, stores_headers, wo_id,
    ):
        lot = client.post(
            "/api/v1/materials/lots",
            json={"heat_no": "HT-88", "alloy": "EN8", "quantity_received_kg": "250"},
            headers=stores_headers,
        )
        assert lot.status_code == 201
        issue = client.post(
            "/api/v1/materials/issues",
            json={"material_lot_id": lot.json()["id"], "work_order_id": wo_id, "quantity_kg": "40"},
            headers=stores_headers,
        )
        assert issue.status_code == 201

        incoming = _gate_record_id(client, quality_headers, wo_id, "incoming")
        passed = client.post(f"/api/v1/qc/records/{incoming}/result", json={"result": "pass"}, headers=quality_headers)
        assert passed.status_code == 200
        assert passed.json()["result"] == "pass"

        moved = client.post(
            f"/api/v1/work-orders/{wo_id}/stage", json={"to_stage": "production"}, headers=production_headers,
        )
        assert moved.status_code == 200
        assert moved.json()["current_stage"] == "production"
        assert moved.json()["production_locked"] is True

        first_piece = _gate_record_id(client, quality_headers, wo_id, "first_piece")
        client.post(f"/api/v1/qc/records/{first_piece}/result", json={"result": "pass"}, headers=quality_headers)
        wo = client.get(f"/api/v1/work-orders/{wo_id}", headers=production_headers).json()
        assert wo["production_locked"] is False
        assert wo["status"] == "in_progress"

        log = client.post(
            "/api/v1/production/logs",
            json={"work_order_id": wo_id, "ok_quantity": 60, "rejection_quantity": 2, "shift": "A"},
            headers=production_headers,
        )
        assert log.status_code == 201
        assert log.json()["production_batch_id"]

        status = client.get(f"/api/v1/work-orders/{wo_id}/completion-status", headers=production_headers)
        assert status.status_code == 200
        check = status.json()
        assert check["can_complete"] is False
        assert "Produced qty (62) < ordered qty (100)" in check["blockers"]
        assert "No quantity packed yet" in check["blockers"]
        assert check["totals"]["produced"] == 62

        complete = client.post(f"/api/v1/work-orders/{wo_id}/complete", headers=production_headers)
        assert complete.status_code == 422
        body = complete.json()
        assert body["error"] == "BUSINESS_RULE_ERROR"
        assert body["details"]["rule"] == "wo_completion"
        assert body["details"]["blockers"] == check["blockers"]

    @pytest.mark.api
    def test_waiver_needs_reason(self, client, quality_headers, wo_id):
        response = client.post(
            "/api/v1/qc/waive", json={"work_order_id": wo_id, "gate": "material", "reason": ""},
            headers=quality_headers,
        )
        assert response.status_code == 422


class TestStatus:

    @pytest.mark.api
    def test_hold_is_recorded_in_history(self, client, production_headers, wo_id):
        response = client.post(
            f"/api/v1/work-orders/{wo_id}/status",
            json={"status": "on_hold", "reason": "Customer drawing revision"},
            headers=production_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "on_hold"

        history = client.get(f"/api/v1/work-orders/{wo_id}/stage-history", headers=production_headers).json()
        assert [h["event"] for h in history][0] == "wo_created"
        assert history[-1]["to_status"] == "on_hold"
        assert history[-1]["reason"] == "Customer drawing revision"
