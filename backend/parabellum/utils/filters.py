from __future__ import annotations
from typing import Any, Dict, List, Mapping
from flask import abort


def _split(raw: Any) -> List[str]:
    return [part.strip() for part in str(raw).split(',') if part.strip()]


def apply_filters(query, specs: Dict[str, Dict[str, Any]], params: Mapping[str, Any]):
    """Apply the query-string filters named in `specs`.

    Each spec may define:
      op(query, value) -> query   required
      coerce(raw) -> value        optional; TypeError/ValueError gives 400
      validate(value) -> bool     optional; False gives 400
      multi: bool                 comma separated values; `op` receives the list

    Missing or empty parameters are skipped.
    """
    for name, spec in specs.items():
        raw = params.get(name)
        if raw is None or raw == '':
            continue
        values = _split(raw) if spec.get('multi') else [raw]
        coerced = []
        for value in values:
            if 'coerce' in spec:
                try:
                    value = spec['coerce'](value)
                except (TypeError, ValueError):
                    abort(400, description=f'{name} invalid')
            if 'validate' in spec and not spec['validate'](value):
                abort(400, description=f'{name} invalid')
            coerced.append(value)
        if not coerced:
            continue
        query = spec['op'](query, coerced if spec.get('multi') else coerced[0])
    return query
