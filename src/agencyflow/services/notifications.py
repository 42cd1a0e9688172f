"""Notification fan-out for approval events.

Fan-out runs after the decision it reports has been committed. Delivery is
best-effort: every failure is logged and swallowed, never retried here and
never surfaced to the caller whose decision triggered it.
"""

import hashlib
import hmac
import json
import logging
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from typing import Protocol

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from agencyflow.config import Settings, settings
from agencyflow.db.models.approval import ApprovalRequestRow
from agencyflow.db.models.notification import NotificationRow
from agencyflow.db.models.stage_transition import StageTransitionRow
from agencyflow.models.enums import ApprovalKind, ApprovalStatus, EntityType
from agencyflow.repositories.project_repo import ProjectMemberRepository
from agencyflow.services.id_generator import generate_id

logger = logging.getLogger(__name__)

# Event type constants
APPROVAL_REQUESTED = "approval.requested"
APPROVAL_DECIDED = "approval.decided"
PROJECT_STAGE_CHANGED = "project.stage_changed"

EVENT_TITLES = {
    APPROVAL_REQUESTED: "New approval request",
    APPROVAL_DECIDED: "Approval decision made",
    PROJECT_STAGE_CHANGED: "Project stage decision",
}


@dataclass
class NotificationPayload:
    event_type: str
    title: str
    body: str
    sender_id: str | None
    project_id: str | None
    related_entity_type: str
    related_entity_id: str
    link: str | None = None
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


class NotificationTransport(Protocol):
    async def deliver(self, recipient_id: str, payload: NotificationPayload) -> None: ...


class InboxTransport:
    """Stores notifications as rows, read back through the notifications API."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def deliver(self, recipient_id: str, payload: NotificationPayload) -> None:
        self.session.add(
            NotificationRow(
                notification_id=generate_id("notif_"),
                recipient_id=recipient_id,
                sender_id=payload.sender_id,
                project_id=payload.project_id,
                event_type=payload.event_type,
                title=payload.title,
                body=payload.body,
                related_entity_type=payload.related_entity_type,
                related_entity_id=payload.related_entity_id,
                is_read=False,
                link=payload.link,
                extra_data=payload.metadata or None,
            )
        )


def sign_payload(body: bytes, secret: str) -> str:
    """Compute HMAC-SHA256 signature over the raw JSON body."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


class WebhookTransport:
    """POSTs each notification as signed JSON to every configured URL (single attempt)."""

    def __init__(
        self,
        urls: Sequence[str],
        secret: str,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.urls = list(urls)
        self.secret = secret
        self.timeout = timeout
        self._client = client

    async def deliver(self, recipient_id: str, payload: NotificationPayload) -> None:
        body = json.dumps(
            {"recipient_id": recipient_id, **payload.to_dict()},
            separators=(",", ":"),
            default=str,
        ).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "X-AgencyFlow-Event": payload.event_type,
            "X-AgencyFlow-Signature": sign_payload(body, self.secret),
        }
        if self._client is not None:
            await self._post_all(self._client, body, headers)
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            await self._post_all(client, body, headers)

    async def _post_all(self, client: httpx.AsyncClient, body: bytes, headers: dict) -> None:
        for url in self.urls:
            response = await client.post(url, content=body, headers=headers)
            response.raise_for_status()


class NotificationFanout:
    """Works out who should hear about an approval event and delivers to them.

    The database inbox is always a transport; ``transports`` adds external
    ones such as webhooks.
    """

    def __init__(self, transports: Sequence[NotificationTransport] = ()):
        self.transports = list(transports)

    async def decision_recipients(self, session: AsyncSession, approval: ApprovalRequestRow) -> list[str]:
        recipients = {approval.requested_by}
        if approval.kind == ApprovalKind.STAGE_TRANSITION and approval.project_id:
            members = ProjectMemberRepository(session)
            recipients.update(await members.list_phase_subscribers(approval.project_id))
        return sorted(recipients)

    async def decision_made(
        self,
        session: AsyncSession,
        approval: ApprovalRequestRow,
        transition: StageTransitionRow | None = None,
    ) -> int:
        """Notify the requester (and phase subscribers for stage transitions). Returns deliveries made."""
        try:
            async with _own_session(session) as own:
                recipients = await self.decision_recipients(own, approval)
                payload = build_decision_payload(approval, transition)
                return await self._fan_out(own, recipients, payload)
        except Exception as exc:
            logger.warning("Notification fan-out failed for %s: %s", approval.approval_id, exc)
            return 0

    async def request_created(self, session: AsyncSession, approval: ApprovalRequestRow) -> int:
        """Tell the designated decider a request is waiting for them."""
        payload = NotificationPayload(
            event_type=APPROVAL_REQUESTED,
            title=EVENT_TITLES[APPROVAL_REQUESTED],
            body=f"{approval.requested_by} requested your approval: {approval.title}",
            sender_id=approval.requested_by,
            project_id=approval.project_id,
            related_entity_type=EntityType.APPROVAL_REQUEST,
            related_entity_id=approval.approval_id,
            link=f"/approvals/{approval.approval_id}",
            metadata={"kind": approval.kind, "priority": approval.priority},
        )
        try:
            async with _own_session(session) as own:
                return await self._fan_out(own, [approval.requested_to], payload)
        except Exception as exc:
            logger.warning("Notification fan-out failed for %s: %s", approval.approval_id, exc)
            return 0

    async def _fan_out(
        self, session: AsyncSession, recipients: Sequence[str], payload: NotificationPayload
    ) -> int:
        delivered = 0
        transports = [InboxTransport(session), *self.transports]
        for recipient_id in recipients:
            for transport in transports:
                try:
                    await transport.deliver(recipient_id, payload)
                    delivered += 1
                except Exception as exc:
                    logger.warning(
                        "Notification delivery to %s via %s failed: %s",
                        recipient_id,
                        type(transport).__name__,
                        exc,
                    )
        await session.commit()
        return delivered


def build_decision_payload(
    approval: ApprovalRequestRow, transition: StageTransitionRow | None = None
) -> NotificationPayload:
    verb = "approved" if approval.status == ApprovalStatus.APPROVED else "rejected"
    metadata = {"kind": approval.kind, "status": approval.status}
    if approval.status == ApprovalStatus.REJECTED and approval.rejection_reason:
        metadata["reason"] = approval.rejection_reason

    if transition is not None:
        metadata.update(
            from_stage=transition.from_stage,
            to_stage=transition.to_stage,
            transition_id=transition.transition_id,
        )
        return NotificationPayload(
            event_type=PROJECT_STAGE_CHANGED,
            title=EVENT_TITLES[PROJECT_STAGE_CHANGED],
            body=(
                f"Move from {transition.from_stage} to {transition.to_stage} "
                f"was {verb} by {approval.decided_by}"
            ),
            sender_id=approval.decided_by,
            project_id=approval.project_id,
            related_entity_type=EntityType.STAGE_TRANSITION,
            related_entity_id=transition.transition_id,
            link=f"/projects/{approval.project_id}/stage-transitions",
            metadata=metadata,
        )

    return NotificationPayload(
        event_type=APPROVAL_DECIDED,
        title=EVENT_TITLES[APPROVAL_DECIDED],
        body=f"'{approval.title}' was {verb} by {approval.decided_by}",
        sender_id=approval.decided_by,
        project_id=approval.project_id,
        related_entity_type=EntityType.APPROVAL_REQUEST,
        related_entity_id=approval.approval_id,
        link=f"/approvals/{approval.approval_id}",
        metadata=metadata,
    )


def _own_session(session: AsyncSession) -> AsyncSession:
    """A separate session on the caller's engine; fan-out never commits or rolls back the caller's work."""
    return AsyncSession(bind=session.bind, expire_on_commit=False)


def build_notification_fanout(config: Settings = settings) -> NotificationFanout:
    """Fan-out wired from settings: inbox always, webhooks when URLs are configured."""
    transports: list[NotificationTransport] = []
    if config.webhook_urls:
        transports.append(
            WebhookTransport(
                config.webhook_urls,
                secret=config.webhook_secret,
                timeout=config.webhook_timeout_seconds,
            )
        )
    return NotificationFanout(transports)
