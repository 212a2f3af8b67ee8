from __future__ import annotations
from typing import Dict, List
from flask import abort


def parse_sort(sort_expr: str | None) -> List[tuple]:
    """Split `-total_cents,quote_date` into [('total_cents', True), ('quote_date', False)]."""
    tokens = []
    for raw in (sort_expr or '').split(','):
        token = raw.strip()
        if token:
            tokens.append((token.lstrip('-'), token.startswith('-')))
    return tokens


def apply_multi_sort(query, sort_expr: str | None, allowed: Dict[str, object], tie_breaker, default=None):
    """Order a query by whitelisted fields.

    Unknown keys abort with 400. `tie_breaker` is always appended so paging is
    deterministic; `default` is used when no sort is requested.
    """
    clauses = []
    for key, desc in parse_sort(sort_expr):
        col = allowed.get(key)
        if col is None:
            abort(400, description=f'Invalid sort field {key}')
        clauses.append(col.desc() if desc else col.asc())
    if not clauses and default is not None:
        clauses.append(default)
    clauses.append(tie_breaker.asc())
    return query.order_by(*clauses)
