"""
Tests for NCR endpoints: action workflow and who may sign it off
"""
import pytest


@pytest.fixture
def completed_action_id(client, quality_headers, production_headers):
    ncr = client.post(
        "/api/v1/ncr/",
        json={"issue_description": "Chatter marks on bore", "quantity_affected": 6},
        headers=quality_headers,
    )
    assert ncr.status_code == 201
    action = client.post(
        f"/api/v1/ncr/{ncr.json()['id']}/actions",
        json={"description": "Regrind boring bar"},
        headers=production_headers,
    )
    assert action.status_code == 201
    action_id = action.json()["id"]
    done = client.post(
        f"/api/v1/ncr/actions/{action_id}/status", json={"status": "completed"}, headers=production_headers,
    )
    assert done.status_code == 200
    return action_id


class TestActionVerification:

    @pytest.mark.api
    def test_production_cannot_verify(self, client, production_headers, completed_action_id):
        response = client.post(
            f"/api/v1/ncr/actions/{completed_action_id}/status", json={"status": "verified"},
            headers=production_headers,
        )
        assert response.status_code == 403
        body = response.json()
        assert body["error"] == "PERMISSION_DENIED"
        assert body["details"]["action"] == "ncr:verify"

    @pytest.mark.api
    def test_quality_verifies(self, client, quality_headers, quality_user, completed_action_id):
        response = client.post(
            f"/api/v1/ncr/actions/{completed_action_id}/status", json={"status": "verified"},
            headers=quality_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "verified"
        assert response.json()["verified_by"] == quality_user.id

    @pytest.mark.api
    def test_close_without_root_cause(self, client, quality_headers, completed_action_id):
        verified = client.post(
            f"/api/v1/ncr/actions/{completed_action_id}/status", json={"status": "verified"},
            headers=quality_headers,
        )
        ncr_id = verified.json()["ncr_id"]

        response = client.post(f"/api/v1/ncr/{ncr_id}/close", headers=quality_headers)
        assert response.status_code == 422
        assert response.json()["details"]["rule"] == "ncr_root_cause_required"
