"""Audit trail for a single entity."""

from fastapi import APIRouter

from agencyflow.dependencies import CurrentActor, DBSession, Gate
from agencyflow.errors.exceptions import ValidationError
from agencyflow.models.enums import EntityType
from agencyflow.models.notification import AuditLogEntryOut
from agencyflow.repositories.audit_repo import AuditLogRepository
from agencyflow.services.approval_lifecycle import ApprovalLifecycle
from agencyflow.services.projects import ProjectService

router = APIRouter(tags=["Audit"])


@router.get("/audit/{entity_type}/{entity_id}", response_model=list[AuditLogEntryOut])
async def list_audit_entries(
    entity_type: str, entity_id: str, db: DBSession, actor: CurrentActor, gate: Gate
):
    if entity_type not in {e.value for e in EntityType}:
        raise ValidationError(f"Unknown entity type '{entity_type}'")
    if not gate.is_admin(actor):
        # Anyone who may view the entity may read its trail
        lifecycle = ApprovalLifecycle(db, gate)
        if entity_type == EntityType.APPROVAL_REQUEST:
            await lifecycle.get(entity_id, actor)
        elif entity_type == EntityType.STAGE_TRANSITION:
            await lifecycle.coordinator.get(entity_id, actor)
        else:
            await ProjectService(db, gate).get(entity_id, actor)
    return await AuditLogRepository(db).list_for_entity(entity_type, entity_id)
