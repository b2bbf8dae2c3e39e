"""
Audit Log entity - append-only record of changes to ledger aggregates.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..exceptions import ValidationError
from ..value_objects import AuditAction, new_id, utc_now


@dataclass(frozen=True)
class AuditLog:
    """Entity - one audited action; never modified after creation."""
    user_id: str
    action: AuditAction
    entity_type: str
    entity_id: str
    id: str = field(default_factory=lambda: new_id("aud"))
    old_values: dict[str, Any] | None = None
    new_values: dict[str, Any] | None = None
    description: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        user_id: str,
        action: AuditAction,
        entity_type: str,
        entity_id: str,
        *,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        description: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> "AuditLog":
        if not user_id:
            raise ValidationError("user_id is required", field="user_id")
        if not entity_type or not entity_id:
            raise ValidationError("entity_type and entity_id are required", field="entity_id")
        return cls(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            old_values=old_values,
            new_values=new_values,
            description=description,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    def changed_fields(self) -> list[str]:
        old = self.old_values or {}
        new = self.new_values or {}
        return sorted(key for key in old.keys() | new.keys() if old.get(key) != new.get(key))
