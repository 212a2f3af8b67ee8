from typing import Tuple

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def normalize_pagination(page_raw, limit_raw) -> Tuple[int, int]:
    """Parse `page`/`limit` query values; page is 1-based, limit clamped to MAX_LIMIT."""
    try:
        page = int(page_raw) if page_raw not in (None, '') else 1
        limit = int(limit_raw) if limit_raw not in (None, '') else DEFAULT_LIMIT
    except ValueError:
        raise ValueError('page and limit must be integers')
    return max(1, page), max(1, min(limit, MAX_LIMIT))


def page_offset(page: int, limit: int) -> int:
    return (page - 1) * limit


def total_pages(total: int, limit: int) -> int:
    return (total + limit - 1) // limit
