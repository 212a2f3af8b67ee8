from __future__ import annotations
from typing import Any, Dict
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Index, Integer, String, JSON, DateTime, func

from .identity import Base


class AuditLog(Base):
    """One state-changing action. actor_user_id 0 marks work done by the system (expiry sweep)."""
    __tablename__ = 'audit_logs'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    actor_user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    entity: Mapped[str] = mapped_column(String(64), nullable=True)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=True)
    perms_snapshot: Mapped[dict] = mapped_column(JSON, default=dict)
    meta: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index('ix_audit_logs_entity', 'entity', 'entity_id'),)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'actor_user_id': self.actor_user_id,
            'action': self.action,
            'entity': self.entity,
            'entity_id': self.entity_id,
            'meta': self.meta,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
