"""Async HTTP client for the AgencyFlow approvals API."""

from __future__ import annotations

from typing import Any

import httpx

from agencyflow.errors.exceptions import (
    AgencyFlowError,
    AlreadyDecidedError,
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    TransportError,
    ValidationError,
)


def error_from_response(response: httpx.Response) -> AgencyFlowError:
    """Rebuild the typed error from an error response body."""
    try:
        error = response.json().get("error") or {}
    except ValueError:
        error = {}
    code = error.get("code", "")
    message = error.get("message") or response.reason_phrase or "Request failed"
    details = error.get("details")

    if code == "CONFLICT":
        if isinstance(details, dict) and details.get("reason") == "already_decided":
            return AlreadyDecidedError(details.get("approval_id", ""), details.get("status"))
        return ConflictError(message, details)
    if code == "NOT_FOUND":
        return NotFoundError("Resource", "", message=message)
    if code == "FORBIDDEN":
        return ForbiddenError(message, details)
    if code == "VALIDATION_ERROR":
        return ValidationError(message, details)
    if code == "AUTHENTICATION_ERROR":
        return AuthenticationError(message)
    return AgencyFlowError(code or "INTERNAL_ERROR", message, details, status_code=response.status_code)


class ApprovalsClient:
    """Thin wrapper over the /api/v1 routes.

    Every call either returns the decoded JSON body or raises one of the
    AgencyFlowError subclasses; connection problems surface as TransportError.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8080/api/v1",
        token: str | None = None,
        http: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._http = http or httpx.AsyncClient(timeout=timeout)
        self._owns_http = http is None

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> ApprovalsClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._http.request(
                method, f"{self.base_url}{path}", headers=self._headers, **kwargs
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc
        if response.status_code >= 400:
            raise error_from_response(response)
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(f"{method} {path} returned an unreadable body") from exc

    async def create_approval(self, **body: Any) -> dict:
        return await self._request("POST", "/approvals", json=body)

    async def get_approval(self, approval_id: str) -> dict:
        return await self._request("GET", f"/approvals/{approval_id}")

    async def list_approvals(
        self,
        filters: dict | None = None,
        sort: str = "created_at",
        order: str = "desc",
        page: int = 1,
        page_size: int | None = None,
    ) -> dict:
        params = {k: v for k, v in (filters or {}).items() if v is not None}
        params.update(sort=sort, order=order, page=page)
        if page_size is not None:
            params["page_size"] = page_size
        return await self._request("GET", "/approvals", params=params)

    async def decide(self, approval_id: str, outcome: str, notes: str | None = None) -> dict:
        return await self._request(
            "POST", f"/approvals/{approval_id}/decide", json={"outcome": outcome, "notes": notes}
        )

    async def batch_decide(self, approval_ids: list[str], outcome: str, notes: str | None = None) -> dict:
        return await self._request(
            "POST",
            "/approvals/batch-decide",
            json={"approval_ids": approval_ids, "outcome": outcome, "notes": notes},
        )

    async def pending_count(self) -> int:
        data = await self._request("GET", "/approvals/pending/count")
        return data["count"]

    async def request_stage_advance(self, project_id: str, target_stage: str, **body: Any) -> dict:
        return await self._request(
            "POST",
            f"/projects/{project_id}/stage-transitions",
            json={"target_stage": target_stage, **body},
        )
