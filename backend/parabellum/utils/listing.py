from __future__ import annotations
from typing import Any, Dict, List, Tuple
from flask import request, abort
from sqlalchemy.orm import Query
from parabellum.config.pagination import normalize_pagination, page_offset, total_pages


def apply_pagination(q: Query) -> Tuple[Query, int, int, int]:
    """Count `q`, then slice it to the requested page. Returns (page_query, total, page, limit)."""
    try:
        page, limit = normalize_pagination(request.args.get('page'), request.args.get('limit'))
    except ValueError as e:
        abort(400, description=str(e))
    total = q.order_by(None).count()
    return q.offset(page_offset(page, limit)).limit(limit), total, page, limit


def build_list_payload(rows: List[Any], total: int, page: int, limit: int) -> Dict[str, Any]:
    return {
        'success': True,
        'data': rows,
        'pagination': {
            'page': page,
            'limit': limit,
            'total': total,
            'totalPages': total_pages(total, limit),
        }
    }
