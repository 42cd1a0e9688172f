"""ApprovalsClient and ClientReconciler against the in-process API."""

import httpx
import pytest
from httpx import ASGITransport

from agencyflow.client.api_client import ApprovalsClient, error_from_response
from agencyflow.client.reconciler import ClientReconciler
from agencyflow.errors.exceptions import (
    AlreadyDecidedError,
    ForbiddenError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from agencyflow.models.enums import ApprovalKind, DecisionOutcome
from agencyflow.services.approval_lifecycle import ApprovalLifecycle

from conftest import CLIENT, DESIGNER, make_token


@pytest.fixture
async def api(app):
    http = httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
    client = ApprovalsClient("http://test/api/v1", token=make_token(CLIENT.id, CLIENT.role), http=http)
    yield client
    await http.aclose()


async def _pending(db_session, project, count=3):
    lifecycle = ApprovalLifecycle(db_session)
    ids = []
    for n in range(count):
        approval = await lifecycle.create(
            DESIGNER, ApprovalKind.DESIGN, f"Screen {n}", requested_to=CLIENT.id, project_id=project.project_id
        )
        ids.append(approval.approval_id)
    return lifecycle, ids


@pytest.mark.asyncio
async def test_confirmed_decision_keeps_optimistic_state(api, db_session, project):
    _, ids = await _pending(db_session, project)
    reconciler = ClientReconciler(api, filters={"status": "pending"}, refetch_threshold=0)
    await reconciler.refresh()
    assert reconciler.total == 3

    result = await reconciler.decide(ids[0], "approve", "ok")

    assert result.ok
    assert result.confirmed == [ids[0]]
    assert result.refetched is False
    assert len(result.before) == 3
    assert {item["approval_id"] for item in result.after} == set(ids[1:])
    assert reconciler.total == 2


@pytest.mark.asyncio
async def test_low_remaining_count_triggers_refetch(api, db_session, project):
    _, ids = await _pending(db_session, project)
    reconciler = ClientReconciler(api, filters={"status": "pending"}, refetch_threshold=2)
    await reconciler.refresh()

    result = await reconciler.decide(ids[1], "approve")

    assert result.ok
    assert result.refetched is True
    assert reconciler.total == 2


@pytest.mark.asyncio
async def test_conflict_discards_and_refetches(api, db_session, project):
    lifecycle, ids = await _pending(db_session, project)
    reconciler = ClientReconciler(api, filters={"status": "pending"}, refetch_threshold=0)
    await reconciler.refresh()

    # Someone else decides it after our list was loaded
    await lifecycle.decide(ids[0], CLIENT, DecisionOutcome.REJECT, "Off brief")
    result = await reconciler.decide(ids[0], "approve")

    assert result.failed == {ids[0]: "Conflict"}
    assert result.messages == ["This item was already decided"]
    assert result.refetched is True
    assert ids[0] not in {item["approval_id"] for item in reconciler.items}
    assert reconciler.total == 2


@pytest.mark.asyncio
async def test_network_failure_restores_previous_view():
    def offline(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    http = httpx.AsyncClient(transport=httpx.MockTransport(offline))
    api = ApprovalsClient("http://agencyflow.invalid/api/v1", token="t", http=http)
    reconciler = ClientReconciler(api, filters={"status": "pending"})
    reconciler.items = [{"approval_id": "appr_1", "status": "pending"}]
    reconciler.total = 1

    result = await reconciler.decide("appr_1", "approve")
    await http.aclose()

    assert result.failed == {"appr_1": "NetworkFailure"}
    assert result.refetched is False
    assert reconciler.items == [{"approval_id": "appr_1", "status": "pending"}]
    assert reconciler.total == 1
    assert "Could not reach the server" in result.messages


@pytest.mark.asyncio
async def test_batch_with_partial_failure(api, db_session, project):
    lifecycle, ids = await _pending(db_session, project)
    reconciler = ClientReconciler(api, filters={"status": "pending"}, refetch_threshold=0)
    await reconciler.refresh()
    await lifecycle.decide(ids[2], CLIENT, DecisionOutcome.APPROVE)

    result = await reconciler.apply_batch(ids, "approve", "batch ok")

    assert sorted(result.confirmed) == sorted(ids[:2])
    assert result.failed == {ids[2]: "Conflict"}
    assert "This item was already decided" in result.messages
    assert "2 of 3 processed" in result.messages
    assert result.refetched is True
    assert reconciler.items == []


@pytest.mark.asyncio
async def test_client_maps_error_bodies(api):
    with pytest.raises(NotFoundError):
        await api.get_approval("appr_missing")
    with pytest.raises(ValidationError):
        await api.create_approval(kind="design", title="Self", requested_to=CLIENT.id)


def test_error_from_response_codes():
    request = httpx.Request("POST", "http://test/api/v1/approvals/appr_1/decide")

    def body(code, details=None):
        return httpx.Response(
            409, json={"error": {"code": code, "message": "m", "details": details}}, request=request
        )

    err = error_from_response(body("CONFLICT", {"reason": "already_decided", "approval_id": "appr_1", "status": "approved"}))
    assert isinstance(err, AlreadyDecidedError)
    assert err.current_status == "approved"
    assert isinstance(error_from_response(body("FORBIDDEN")), ForbiddenError)
    assert error_from_response(httpx.Response(502, text="bad gateway", request=request)).status_code == 502


@pytest.mark.asyncio
async def test_unreadable_body_is_transport_error():
    http = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>")))
    api = ApprovalsClient("http://test/api/v1", http=http)
    with pytest.raises(TransportError):
        await api.pending_count()
    await http.aclose()
