"""HTTP API tests: FastAPI TestClient over an in-memory store"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi.testclient import TestClient

from fundplan.config.settings import settings
from fundplan.main import create_app

from .conftest import ORG

API = "/api/v1"


def _token(actor, expires_in=timedelta(hours=1)) -> str:
    payload = {
        "user": {
            "id": actor.user_id,
            "email": actor.email,
            "name": actor.name,
            "role": actor.role.value,
            "organizationId": actor.organization_id,
            "departmentId": actor.department_id,
        },
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _auth(actor, **kwargs):
    return {"Authorization": f"Bearer {_token(actor, **kwargs)}"}


def _error_code(response):
    return response.json()["error"]["code"]


@pytest.fixture
def client(db):
    return TestClient(create_app(db=db))


@pytest.fixture
def predict_policy(client, admin):
    response = client.put(
        f"{API}/withdrawal-configs/predict",
        json={"allowed_statuses": ["SUBMITTED"], "time_limit_hours": 24, "max_attempts": 3},
        headers=_auth(admin)
    )
    assert response.status_code == 200
    assert response.json()["warnings"] == []
    return response.json()["config"]


def _create(client, actor, module_type="predict"):
    return client.post(
        f"{API}/records",
        json={"module_type": module_type, "title": "Q2 forecast", "amount": 5000, "year": 2024, "month": 4},
        headers=_auth(actor)
    )


class TestAuthentication:

    def test_missing_header(self, client):
        response = client.get(f"{API}/records")
        assert response.status_code == 401
        assert _error_code(response) == "AUTHENTICATION_ERROR"

    def test_expired_token(self, client, reporter):
        response = client.get(f"{API}/records", headers=_auth(reporter, expires_in=timedelta(hours=-1)))
        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Token has expired"

    def test_wrong_signature(self, client, reporter):
        token = jwt.encode({"user": {"id": "x"}}, "another-secret-0123456789abcdefghij", algorithm="HS256")
        response = client.get(f"{API}/records", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    @pytest.mark.parametrize("scheme", ["bearer", "BEARER", "Bearer"])
    def test_scheme_is_case_insensitive(self, client, reporter, scheme):
        response = client.get(f"{API}/records", headers={"Authorization": f"{scheme} {_token(reporter)}"})
        assert response.status_code == 200

    def test_bare_token_is_accepted(self, client, reporter):
        response = client.get(f"{API}/records", headers={"Authorization": _token(reporter)})
        assert response.status_code == 200

    def test_malformed_header(self, client, reporter):
        response = client.get(f"{API}/records", headers={"Authorization": f"Bearer {_token(reporter)} extra"})
        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Malformed Authorization header"

    def test_root_is_public(self, client):
        assert client.get("/").json()["name"] == "Fund Planning Workflow Service"


class TestRecordFlow:

    def test_create_and_submit(self, client, reporter):
        created = _create(client, reporter)
        assert created.status_code == 201
        body = created.json()
        assert body["record"]["status"] == "DRAFT"
        assert body["record"]["owner_id"] == reporter.user_id
        assert body["record"]["organization_id"] == ORG
        assert body["available_actions"] == ["submit"]

        record_id = body["record"]["record_id"]
        response = client.post(
            f"{API}/records/{record_id}/submit",
            headers={**_auth(reporter), "X-Correlation-Id": "COR-api-1"}
        )

        assert response.status_code == 200
        assert response.json()["record"]["status"] == "SUBMITTED"
        assert response.json()["warnings"] == []
        assert response.headers["X-Correlation-Id"] == "COR-api-1"

    def test_withdrawal_lifecycle(self, client, reporter, admin, predict_policy):
        record_id = _create(client, reporter).json()["record"]["record_id"]
        client.post(f"{API}/records/{record_id}/submit", headers=_auth(reporter))

        requested = client.post(
            f"{API}/records/{record_id}/withdrawal", json={"reason": "wrong amount"}, headers=_auth(reporter)
        )
        assert requested.status_code == 200
        assert requested.json()["record"]["status"] == "PENDING_WITHDRAWAL"
        assert requested.json()["record"]["withdrawal_attempts"] == 1

        again = client.post(
            f"{API}/records/{record_id}/withdrawal", json={"reason": "still wrong"}, headers=_auth(reporter)
        )
        assert again.status_code == 400
        assert _error_code(again) == "NOT_WITHDRAWABLE"

        resolved = client.post(
            f"{API}/records/{record_id}/withdrawal/resolve", json={"decision": "approve"}, headers=_auth(admin)
        )
        assert resolved.status_code == 200
        assert resolved.json()["record"]["status"] == "DRAFT"

        cancel = client.post(f"{API}/records/{record_id}/withdrawal/cancel", headers=_auth(reporter))
        assert cancel.status_code == 409
        assert _error_code(cancel) == "INVALID_STATE"

        trail = client.get(f"{API}/records/{record_id}/audit", headers=_auth(reporter)).json()
        assert trail["total"] == 4
        assert sorted(e["action"] for e in trail["items"]) == sorted([
            "CREATE_RECORD", "SUBMIT", "REQUEST_WITHDRAWAL", "APPROVE_WITHDRAWAL"
        ])

    def test_withdrawal_without_policy(self, client, reporter):
        record_id = _create(client, reporter).json()["record"]["record_id"]
        client.post(f"{API}/records/{record_id}/submit", headers=_auth(reporter))

        response = client.post(
            f"{API}/records/{record_id}/withdrawal", json={"reason": "wrong amount"}, headers=_auth(reporter)
        )

        assert response.status_code == 400
        assert _error_code(response) == "POLICY_NOT_CONFIGURED"

    @pytest.mark.parametrize("body", [{}, {"reason": ""}, {"reason": "   "}])
    def test_withdrawal_needs_reason(self, client, reporter, predict_policy, body):
        record_id = _create(client, reporter).json()["record"]["record_id"]
        client.post(f"{API}/records/{record_id}/submit", headers=_auth(reporter))

        response = client.post(f"{API}/records/{record_id}/withdrawal", json=body, headers=_auth(reporter))

        assert response.status_code == 400
        assert _error_code(response) == "VALIDATION_ERROR"
        record = client.get(f"{API}/records/{record_id}", headers=_auth(reporter)).json()["record"]
        assert record["status"] == "SUBMITTED"
        assert record["withdrawal_attempts"] == 0

    def test_review(self, client, reporter, auditor):
        record_id = _create(client, reporter).json()["record"]["record_id"]
        client.post(f"{API}/records/{record_id}/submit", headers=_auth(reporter))

        denied = client.post(f"{API}/records/{record_id}/review", json={"decision": "approve"}, headers=_auth(reporter))
        assert denied.status_code == 403
        assert _error_code(denied) == "PERMISSION_DENIED"

        response = client.post(
            f"{API}/records/{record_id}/review",
            json={"decision": "reject", "remark": "missing receipts"},
            headers=_auth(auditor)
        )
        assert response.status_code == 200
        assert response.json()["record"]["status"] == "REJECTED"
        assert response.json()["record"]["remark"] == "missing receipts"

    def test_invalid_decision(self, client, reporter, auditor):
        record_id = _create(client, reporter).json()["record"]["record_id"]
        response = client.post(f"{API}/records/{record_id}/review", json={"decision": "maybe"}, headers=_auth(auditor))
        assert response.status_code == 400
        assert _error_code(response) == "VALIDATION_ERROR"

    def test_unknown_record(self, client, reporter):
        response = client.get(f"{API}/records/REC-nope", headers=_auth(reporter))
        assert response.status_code == 404
        assert _error_code(response) == "RECORD_NOT_FOUND"

    def test_reporter_cannot_create_finance_records(self, client, reporter):
        response = _create(client, reporter, module_type="actual_fin")
        assert response.status_code == 403

    def test_list_is_scoped_to_caller(self, client, reporter, other_reporter, observer):
        _create(client, reporter)
        _create(client, reporter)
        _create(client, other_reporter)

        mine = client.get(f"{API}/records", headers=_auth(reporter)).json()
        assert mine["total"] == 2
        assert {r["owner_id"] for r in mine["items"]} == {reporter.user_id}

        everything = client.get(f"{API}/records", headers=_auth(observer)).json()
        assert everything["total"] == 3

    def test_other_reporter_cannot_read(self, client, reporter, other_reporter):
        record_id = _create(client, reporter).json()["record"]["record_id"]
        response = client.get(f"{API}/records/{record_id}", headers=_auth(other_reporter))
        assert response.status_code == 403


class TestWithdrawalConfigApi:

    def test_admin_manages_policies(self, client, admin, reporter, predict_policy):
        assert predict_policy["max_attempts"] == 3
        assert predict_policy["allowed_statuses"] == ["SUBMITTED"]
        assert predict_policy["updated_by"] == admin.user_id

        listing = client.get(f"{API}/withdrawal-configs", headers=_auth(reporter)).json()
        assert [c["module_type"] for c in listing["items"]] == ["predict"]

        deleted = client.delete(f"{API}/withdrawal-configs/predict", headers=_auth(admin))
        assert deleted.status_code == 200
        assert deleted.json()["config"]["module_type"] == "predict"

        missing = client.get(f"{API}/withdrawal-configs/predict", headers=_auth(admin))
        assert missing.status_code == 404
        assert _error_code(missing) == "CONFIG_NOT_FOUND"

    def test_reporter_cannot_configure(self, client, reporter):
        response = client.put(
            f"{API}/withdrawal-configs/predict",
            json={"allowed_statuses": ["SUBMITTED"], "max_attempts": 3},
            headers=_auth(reporter)
        )
        assert response.status_code == 403

    @pytest.mark.parametrize("body", [
        {"allowed_statuses": ["SUBMITTED"], "max_attempts": 0},
        {"allowed_statuses": ["SUBMITTED"], "max_attempts": 1, "time_limit_hours": -5},
        {"allowed_statuses": ["ARCHIVED"], "max_attempts": 1},
        {"allowed_statuses": [], "max_attempts": 1},
    ])
    def test_invalid_policy(self, client, admin, body):
        response = client.put(f"{API}/withdrawal-configs/predict", json=body, headers=_auth(admin))
        assert response.status_code == 400
        assert _error_code(response) == "VALIDATION_ERROR"

    def test_unknown_module(self, client, admin):
        response = client.get(f"{API}/withdrawal-configs/payroll", headers=_auth(admin))
        assert response.status_code == 400


class TestBatchSubmit:

    def test_each_record_reports_its_own_result(self, client, reporter, other_reporter):
        draft = _create(client, reporter).json()["record"]["record_id"]
        already = _create(client, reporter).json()["record"]["record_id"]
        client.post(f"{API}/records/{already}/submit", headers=_auth(reporter))
        foreign = _create(client, other_reporter).json()["record"]["record_id"]

        response = client.post(
            f"{API}/records/submit-batch",
            json={"record_ids": [draft, already, foreign, "REC-nope", draft]},
            headers=_auth(reporter)
        )

        assert response.status_code == 200
        body = response.json()
        assert body["submitted"] == 1
        assert body["failed"] == 3
        results = {r["record_id"]: r for r in body["results"]}
        assert [r["record_id"] for r in body["results"]] == [draft, already, foreign, "REC-nope"]
        assert results[draft]["ok"]
        assert results[draft]["record"]["status"] == "SUBMITTED"
        assert results[already]["error"]["code"] == "INVALID_STATE"
        assert results[foreign]["error"]["code"] == "PERMISSION_DENIED"
        assert results["REC-nope"]["error"]["code"] == "RECORD_NOT_FOUND"
        assert results["REC-nope"]["record"] is None

    def test_empty_batch_rejected(self, client, reporter):
        response = client.post(f"{API}/records/submit-batch", json={"record_ids": []}, headers=_auth(reporter))
        assert response.status_code == 400
        assert _error_code(response) == "VALIDATION_ERROR"


class TestWithdrawalRequestsApi:

    def _request(self, client, actor, reason):
        record_id = _create(client, actor).json()["record"]["record_id"]
        client.post(f"{API}/records/{record_id}/submit", headers=_auth(actor))
        client.post(f"{API}/records/{record_id}/withdrawal", json={"reason": reason}, headers=_auth(actor))
        return record_id

    def test_listing_is_scoped_and_filtered(self, client, reporter, other_reporter, admin, predict_policy):
        mine = self._request(client, reporter, "wrong amount")
        theirs = self._request(client, other_reporter, "duplicate")
        client.post(
            f"{API}/records/{mine}/withdrawal/resolve",
            json={"decision": "reject", "comment": "figures are fine"},
            headers=_auth(admin)
        )

        own = client.get(f"{API}/withdrawal-requests", headers=_auth(reporter)).json()
        assert own["total"] == 1
        row = own["items"][0]
        assert row["record_id"] == mine
        assert row["status"] == "REJECTED"
        assert row["reason"] == "wrong amount"
        assert row["requested_by"]["user_id"] == reporter.user_id
        assert row["resolved_by"]["user_id"] == admin.user_id
        assert row["decision"] == "reject"
        assert row["comment"] == "figures are fine"

        everything = client.get(f"{API}/withdrawal-requests", headers=_auth(admin)).json()
        assert everything["total"] == 2

        pending = client.get(
            f"{API}/withdrawal-requests", params={"status": "PENDING"}, headers=_auth(admin)
        ).json()
        assert [r["record_id"] for r in pending["items"]] == [theirs]

        other_module = client.get(
            f"{API}/withdrawal-requests", params={"module_type": "audit"}, headers=_auth(admin)
        ).json()
        assert other_module["total"] == 0

    def test_paging(self, client, reporter, predict_policy):
        for reason in ("one", "two", "three"):
            self._request(client, reporter, reason)

        page = client.get(
            f"{API}/withdrawal-requests", params={"page": 2, "page_size": 2}, headers=_auth(reporter)
        ).json()

        assert page["total"] == 3
        assert page["page"] == 2
        assert len(page["items"]) == 1

    def test_unknown_status(self, client, reporter):
        response = client.get(f"{API}/withdrawal-requests", params={"status": "LOST"}, headers=_auth(reporter))
        assert response.status_code == 400
        assert _error_code(response) == "VALIDATION_ERROR"
