"""Apply one decision to many approval requests with per-item isolation.

Each item runs ``ApprovalLifecycle.decide`` in its own session and
transaction. A failing item is recorded and never aborts the others; there
is no all-or-nothing mode.
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from agencyflow.config import settings
from agencyflow.errors.exceptions import AgencyFlowError, ValidationError
from agencyflow.models.actor import Actor
from agencyflow.models.enums import AuditAction, DecisionOutcome, EntityType
from agencyflow.repositories.audit_repo import AuditLogRepository
from agencyflow.services.approval_lifecycle import ApprovalLifecycle
from agencyflow.services.authorization import AuthorizationGate
from agencyflow.services.id_generator import generate_id
from agencyflow.services.notifications import NotificationFanout

logger = logging.getLogger(__name__)


@dataclass
class BatchItemFailure:
    approval_id: str
    error_kind: str
    message: str


@dataclass
class BatchResult:
    batch_id: str
    succeeded: list[str] = field(default_factory=list)
    failed: list[BatchItemFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    @property
    def summary(self) -> str:
        return f"{len(self.succeeded)} of {self.total} processed"

    def to_dict(self) -> dict:
        return {
            "batch_id": self.batch_id,
            "succeeded": list(self.succeeded),
            "failed": [vars(f) for f in self.failed],
            "total": self.total,
            "summary": self.summary,
        }


def batch_concurrency_for(engine: AsyncEngine, configured: int | None = None) -> int:
    """SQLite serialises writers on one connection, so batches run one item at a time there."""
    if engine.dialect.name == "sqlite":
        return 1
    return max(configured or settings.batch_max_concurrency, 1)


class BatchDecisionProcessor:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_concurrency: int | None = None,
        gate: AuthorizationGate | None = None,
        fanout: NotificationFanout | None = None,
        max_items: int | None = None,
    ):
        self.session_factory = session_factory
        self.max_concurrency = max(max_concurrency or settings.batch_max_concurrency, 1)
        self.gate = gate or AuthorizationGate()
        self.fanout = fanout or NotificationFanout()
        self.max_items = max_items or settings.batch_max_items

    async def apply_batch(
        self,
        approval_ids: Sequence[str],
        actor: Actor,
        outcome: DecisionOutcome,
        notes: str | None = None,
    ) -> BatchResult:
        if len(approval_ids) > self.max_items:
            raise ValidationError(
                f"At most {self.max_items} approvals may be decided in one batch",
                details={"requested": len(approval_ids), "max_items": self.max_items},
            )
        outcome = DecisionOutcome(outcome)
        result = BatchResult(batch_id=generate_id("batch_"))
        if not approval_ids:
            return result
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run(approval_id: str) -> BatchItemFailure | None:
            async with semaphore:
                return await self._decide_one(result.batch_id, approval_id, actor, outcome, notes)

        outcomes = await asyncio.gather(*(run(approval_id) for approval_id in approval_ids))
        for approval_id, failure in zip(approval_ids, outcomes):
            if failure is None:
                result.succeeded.append(approval_id)
            else:
                result.failed.append(failure)

        logger.info(
            "Batch %s by %s: %s (%d failed)",
            result.batch_id, actor.id, result.summary, len(result.failed),
        )
        return result

    async def _decide_one(
        self,
        batch_id: str,
        approval_id: str,
        actor: Actor,
        outcome: DecisionOutcome,
        notes: str | None,
    ) -> BatchItemFailure | None:
        failure = None
        try:
            async with self.session_factory() as session:
                lifecycle = ApprovalLifecycle(session, gate=self.gate, fanout=self.fanout)
                await lifecycle.decide(approval_id, actor, outcome, notes)
        except AgencyFlowError as exc:
            failure = BatchItemFailure(approval_id, exc.error_kind, exc.message)
        except Exception as exc:
            logger.exception("Batch %s: unexpected failure deciding %s", batch_id, approval_id)
            failure = BatchItemFailure(approval_id, AgencyFlowError.error_kind, str(exc) or type(exc).__name__)

        await self._record(batch_id, approval_id, actor, outcome, failure)
        return failure

    async def _record(
        self,
        batch_id: str,
        approval_id: str,
        actor: Actor,
        outcome: DecisionOutcome,
        failure: BatchItemFailure | None,
    ) -> None:
        metadata = {"batch_id": batch_id, "outcome": outcome}
        if failure is not None:
            metadata["error_kind"] = failure.error_kind
        try:
            async with self.session_factory() as session:
                await AuditLogRepository(session).append(
                    actor.id,
                    AuditAction.BATCH_ITEM_FAILED if failure else AuditAction.BATCH_ITEM_SUCCEEDED,
                    EntityType.APPROVAL_REQUEST,
                    approval_id,
                    metadata,
                )
                await session.commit()
        except Exception:
            logger.exception("Batch %s: could not record outcome for %s", batch_id, approval_id)
