from __future__ import annotations
"""Audit logging decorator for state-changing route handlers.

Usage examples:

@audit_log('QUOTE.CREATE', entity='Quote', entity_id_key='id', meta_keys=['quote_number'])
def create_quote():
    ... return {'success': True, 'data': {'id': quote.id, ...}}, 201

@audit_log('USER.PERMISSIONS.SET', entity='User', entity_id_arg='user_id',
           meta_builder=lambda data, rv, args, kwargs: {'count': len(data.get('permissions', []))})
def replace_user_permissions(user_id): ...

Parameters:
  action: required audit action code (e.g. QUOTE.SUBMIT)
  entity: optional entity label (Quote, User, Customer)
  entity_id_key: key in the returned record whose value becomes entity_id.
  entity_id_arg: name of the path parameter to use for entity_id (fallback if entity_id_key absent).
  meta_keys: keys to project from the returned record into the meta dict.
  meta_builder: callable returning a meta dict; receives (data, original_return_value, args, kwargs).
  diff_keys / pre_fetch: record before/after values of the listed keys under meta['changes'].

Return handling:
  Handlers return `{'success': True, 'data': record}` optionally followed by a
  status code. The record under `data` is inspected; the original return
  value is passed through untouched.
"""

import logging
from functools import wraps
from typing import Any, Callable, Iterable, Optional, Dict

from parabellum.services.audit import add_audit
from parabellum import get_db

logger = logging.getLogger(__name__)


def _extract_payload(rv: Any):
    """Return the record dict inside the response envelope (or None)."""
    body = rv[0] if isinstance(rv, tuple) and rv else rv
    if isinstance(body, dict) and isinstance(body.get('data'), dict):
        return body['data']
    return body if isinstance(body, dict) else None


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    meta_builder: Optional[Callable[[dict, Any, tuple, dict], dict]] = None,
    diff_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Dict[str, Any]]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before_snapshot = pre_fetch(args, kwargs) if diff_keys and pre_fetch else None
            rv = fn(*args, **kwargs)
            data = _extract_payload(rv)
            try:
                if data is None:
                    add_audit(action, entity, kwargs.get(entity_id_arg) if entity_id_arg else None, None)
                else:
                    entity_id = None
                    if entity_id_key and entity_id_key in data:
                        entity_id = data.get(entity_id_key)
                    elif entity_id_arg and entity_id_arg in kwargs:
                        entity_id = kwargs.get(entity_id_arg)
                    meta = None
                    if meta_builder:
                        meta = meta_builder(data, rv, args, kwargs)
                    elif meta_keys:
                        meta = {k: data.get(k) for k in meta_keys if k in data}
                    if diff_keys and before_snapshot:
                        changes = {
                            k: {'before': before_snapshot.get(k), 'after': data.get(k)}
                            for k in diff_keys
                            if k in before_snapshot and k in data and before_snapshot.get(k) != data.get(k)
                        }
                        if changes:
                            meta = dict(meta or {})
                            meta['changes'] = changes
                    add_audit(action, entity, entity_id, meta)
                get_db().commit()
            except Exception:
                # Main change is already committed; audit failures are only logged
                get_db().rollback()
                logger.exception('Audit write failed for %s', action)
            return rv
        return wrapper
    return outer
