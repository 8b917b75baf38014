# services/audit_service.py
"""
Audit recorder.

Entries are added to the caller's session and flushed, never committed here:
they become durable with the mutation they describe or not at all.
"""

import logging

from backoffice.models.audit import AuditLog
from backoffice.models.base import _serialize


def _json_safe(value):
    if value is None:
        return None
    return {key: _serialize(item) for key, item in value.items()}


class AuditService:
    """Append-only writer of state-transition records."""

    logger = logging.getLogger('audit_service')

    @staticmethod
    def record(session, actor_id, action, entity, entity_id, old_value=None, new_value=None):
        """
        Add one audit entry inside the caller's transaction.

        Args:
            session: SQLAlchemy session with the open business transaction
            actor_id: ID of the user performing the change
            action: e.g. 'PAYMENT_APPROVED'
            entity: entity name, e.g. 'payment'
            entity_id: ID of the changed row
            old_value: dict snapshot before the change
            new_value: dict snapshot after the change

        Returns:
            AuditLog: the pending entry
        """
        entry = AuditLog(
            user_id=actor_id,
            action=action,
            entity=entity,
            entity_id=entity_id,
            old_value=_json_safe(old_value),
            new_value=_json_safe(new_value)
        )
        session.add(entry)
        session.flush()

        AuditService.logger.info(f"Audit entry {action} for {entity}:{entity_id} by {actor_id}")
        return entry

    @staticmethod
    def entity_history(session, entity, entity_id):
        """Get the audit trail of one entity, newest first."""
        entries = (
            session.query(AuditLog)
            .filter_by(entity=entity, entity_id=entity_id)
            .order_by(AuditLog.created_at.desc())
            .all()
        )
        return [entry.to_dict() for entry in entries]
