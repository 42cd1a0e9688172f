"""Optimistic decisions against a locally held page of approvals.

The reconciler removes or updates items as soon as the caller decides them.
A confirmed decision keeps the optimistic state. Any failure discards it and
refetches the authoritative page instead of retrying, since a retried
decision can only come back as a conflict.
"""

import copy
import logging
from dataclasses import dataclass, field

from agencyflow.client.api_client import ApprovalsClient
from agencyflow.config import settings
from agencyflow.errors.exceptions import AgencyFlowError

logger = logging.getLogger(__name__)

USER_MESSAGES = {
    "Conflict": "This item was already decided",
    "NotFound": "This item no longer exists",
    "Forbidden": "You are not allowed to decide this item",
    "ValidationError": "The decision was not accepted",
    "NetworkFailure": "Could not reach the server",
}

_DECIDED_STATUS = {"approve": "approved", "reject": "rejected"}


def user_message(error: AgencyFlowError) -> str:
    return USER_MESSAGES.get(error.error_kind, "Something went wrong")


@dataclass
class Reconciliation:
    """What one optimistic action did to the local view."""

    action: str
    before: list[dict]
    after: list[dict]
    confirmed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    refetched: bool = False
    messages: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class ClientReconciler:
    def __init__(
        self,
        client: ApprovalsClient,
        filters: dict | None = None,
        refetch_threshold: int | None = None,
        page_size: int | None = None,
    ):
        self.client = client
        self.filters = {k: v for k, v in (filters or {}).items() if v is not None}
        self.refetch_threshold = (
            settings.reconcile_refetch_threshold if refetch_threshold is None else refetch_threshold
        )
        self.page_size = page_size
        self.items: list[dict] = []
        self.total = 0

    async def refresh(self) -> list[dict]:
        page = await self.client.list_approvals(self.filters, page_size=self.page_size)
        self.items = page["items"]
        self.total = page["total"]
        return self.items

    def snapshot(self) -> list[dict]:
        return copy.deepcopy(self.items)

    async def decide(self, approval_id: str, outcome: str, notes: str | None = None) -> Reconciliation:
        result = Reconciliation(action="decide", before=self.snapshot(), after=[])
        removed = self._apply_optimistic([approval_id], outcome)
        try:
            confirmed = await self.client.decide(approval_id, outcome, notes)
        except AgencyFlowError as exc:
            result.failed[approval_id] = exc.error_kind
            result.messages.append(user_message(exc))
            logger.info("Decision on %s failed (%s); refetching", approval_id, exc.error_kind)
            await self._refetch(result)
            return result

        result.confirmed.append(approval_id)
        if confirmed.get("status") != _DECIDED_STATUS[outcome]:
            logger.warning(
                "Server confirmed %s as %s, expected %s; refetching",
                approval_id, confirmed.get("status"), _DECIDED_STATUS[outcome],
            )
            await self._refetch(result)
        elif removed and len(self.items) <= self.refetch_threshold:
            await self._refetch(result)
        result.after = self.snapshot()
        return result

    async def apply_batch(self, approval_ids: list[str], outcome: str, notes: str | None = None) -> Reconciliation:
        result = Reconciliation(action="batch", before=self.snapshot(), after=[])
        removed = self._apply_optimistic(approval_ids, outcome)
        try:
            report = await self.client.batch_decide(approval_ids, outcome, notes)
        except AgencyFlowError as exc:
            for approval_id in approval_ids:
                result.failed[approval_id] = exc.error_kind
            result.messages.append(user_message(exc))
            await self._refetch(result)
            return result

        result.confirmed.extend(report["succeeded"])
        for failure in report["failed"]:
            result.failed[failure["approval_id"]] = failure["error_kind"]
        if result.failed:
            kinds = sorted(set(result.failed.values()))
            result.messages.extend(USER_MESSAGES.get(kind, "Something went wrong") for kind in kinds)
            result.messages.append(report["summary"])
            await self._refetch(result)
        elif removed and len(self.items) <= self.refetch_threshold:
            await self._refetch(result)
        result.after = self.snapshot()
        return result

    def _apply_optimistic(self, approval_ids: list[str], outcome: str) -> int:
        """Update or drop the decided items locally; returns how many left the filtered view."""
        wanted = set(approval_ids)
        status = _DECIDED_STATUS[outcome]
        kept, removed = [], 0
        for item in self.items:
            if item["approval_id"] in wanted and item["status"] == "pending":
                item = {**item, "status": status}
                if not self._matches(item):
                    removed += 1
                    continue
            kept.append(item)
        self.items = kept
        self.total = max(self.total - removed, 0)
        return removed

    def _matches(self, item: dict) -> bool:
        return all(item.get(key) == value for key, value in self.filters.items())

    async def _refetch(self, result: Reconciliation) -> None:
        try:
            await self.refresh()
            result.refetched = True
        except AgencyFlowError as exc:
            self.total += len(result.before) - len(self.items)
            self.items = copy.deepcopy(result.before)
            result.messages.append(user_message(exc))
            logger.warning("Refetch after reconciliation failed: %s", exc.message)
        result.after = self.snapshot()
