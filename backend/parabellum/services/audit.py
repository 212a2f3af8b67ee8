from __future__ import annotations
from typing import Any, Dict, List, Optional, Tuple
from flask_jwt_extended import get_jwt_identity, get_jwt
from parabellum import get_db
from parabellum.models.audit import AuditLog


def _request_actor() -> Tuple[int, List[str]]:
    """Actor id and permission claims of the current request; (0, []) outside a JWT request."""
    try:
        ident = get_jwt_identity()
        claims = get_jwt() or {}
    except RuntimeError:
        return 0, []
    return (int(ident) if ident is not None else 0), list(claims.get('perms', []))


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[Any] = None,
              meta: Optional[Dict[str, Any]] = None, actor_user_id: Optional[int] = None) -> AuditLog:
    """Stage an audit entry in the current DB session; the caller commits.

    Parameters:
      action: action code e.g. QUOTE.SUBMIT, USER.PERMISSIONS.SET
      entity: entity label (Quote, User, Customer, Service)
      entity_id: primary key, stored as a string
      meta: JSON-safe details (shallow copied)
      actor_user_id: explicit actor for work done outside a request (0 = system)
    """
    if actor_user_id is None:
        actor, perms = _request_actor()
    else:
        actor, perms = actor_user_id, []
    log = AuditLog(
        actor_user_id=actor,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        perms_snapshot={'perms': perms},
        meta=dict(meta or {}),
    )
    get_db().add(log)
    return log
