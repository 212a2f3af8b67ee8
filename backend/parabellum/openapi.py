"""Deterministic OpenAPI 3 document for the Parabellum API.

Built in code (no reflection over the url map) so the output is stable across
runs. Quote action endpoints are generated from the lifecycle table, so their
`x-required-permissions` always match what the server enforces.
"""
from typing import Any, Dict, List, Optional
from parabellum.services import quote_lifecycle as lifecycle

__all__ = ["build_openapi_spec"]

# (schema name, collection path, id param, read perm, create perm, sort fields)
ENTITIES = [
    ("User", "/users", "user_id", "users.read", "users.create", ["email", "last_name", "role", "id"]),
    ("Service", "/services", None, "users.read", "admin.system_settings", []),
    ("Customer", "/customers", "customer_id", "customers.read", "customers.create", ["name", "customer_number", "id"]),
    ("Quote", "/quotes", "quote_id", "quotes.read", "quotes.create",
     ["quote_number", "quote_date", "valid_until", "status", "total_cents", "created_at", "id"]),
]


def _ref(name: str) -> Dict[str, str]:
    return {"$ref": f"#/components/schemas/{name}"}


def _op(summary: str, perms: Optional[List[str]] = None, status: str = "200", body: bool = False,
        params: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    od: Dict[str, Any] = {
        "summary": summary,
        "responses": {
            status: {"description": "OK" if status == "200" else "Created"},
            "400": {"$ref": "#/components/responses/BadRequest"},
            "401": {"$ref": "#/components/responses/Unauthorized"},
            "403": {"$ref": "#/components/responses/Forbidden"},
        },
    }
    if perms is not None:
        od["x-required-permissions"] = perms
    if body:
        od["requestBody"] = {"content": {"application/json": {"schema": {"type": "object"}}}}
    if params:
        od["parameters"] = params
    return od


def _path_param(name: str) -> Dict[str, Any]:
    return {"name": name, "in": "path", "required": True, "schema": {"type": "integer"}}


def _schemas() -> Dict[str, Any]:
    schemas = {name: {"type": "object", "properties": {"id": {"type": "integer"}}} for name, *_ in ENTITIES}
    schemas["Quote"]["properties"]["status"] = {"type": "string", "enum": list(lifecycle.ALL_STATUSES)}
    schemas["Quote"]["x-transitions"] = [
        {"action": t.action, "from": t.source, "to": t.target, "permission": t.permission}
        for t in lifecycle.QUOTE_LIFECYCLE.transitions
    ]
    schemas["Quote"]["x-terminal-states"] = sorted(lifecycle.TERMINAL_STATUSES)
    schemas["Pagination"] = {
        "type": "object",
        "properties": {
            "page": {"type": "integer"},
            "limit": {"type": "integer"},
            "total": {"type": "integer"},
            "totalPages": {"type": "integer"},
        },
        "required": ["page", "limit", "total", "totalPages"],
    }
    schemas["Error"] = {
        "type": "object",
        "properties": {
            "success": {"type": "boolean"},
            "message": {"type": "string"},
            "error": {"type": "object"},
            "errors": {"type": "array", "items": {"type": "object"}},
        },
        "required": ["success", "message", "error"],
    }
    return schemas


def _entity_paths(paths: Dict[str, Any]):
    list_params = [
        {"$ref": "#/components/parameters/PageParam"},
        {"$ref": "#/components/parameters/LimitParam"},
    ]
    for name, coll, id_param, read_perm, create_perm, sort_fields in ENTITIES:
        params = list(list_params)
        if sort_fields:
            params.append({"name": "sort", "in": "query", "schema": {"type": "string"},
                           "description": "Comma separated; prefix '-' for descending. Fields: " + ", ".join(sort_fields)})
        paths[coll] = {
            "get": _op(f"List {name} records", [read_perm], params=params),
            "post": _op(f"Create {name}", [create_perm], status="201", body=True),
        }
        if id_param:
            paths[f"{coll}/{{{id_param}}}"] = {"get": _op(f"Get {name}", [read_perm], params=[_path_param(id_param)])}


def build_openapi_spec() -> Dict[str, Any]:
    paths: Dict[str, Any] = {
        "/auth/login": {"post": _op("Login", body=True)},
        "/auth/logout": {"post": _op("Logout")},
        "/auth/profile": {"get": _op("Current user and permissions")},
        "/auth/refresh": {"post": _op("Exchange a refresh token for an access token", body=True)},
        "/permissions/catalog": {"get": _op("Permission catalog and role defaults", ["users.manage_permissions"])},
        "/audit/logs": {"get": _op("List audit log entries", ["reports.audit"])},
    }
    _entity_paths(paths)

    user_param = [_path_param("user_id")]
    paths["/users/{user_id}"]["put"] = _op("Update user", ["users.update"], body=True, params=user_param)
    for verb in ("activate", "deactivate"):
        paths[f"/users/{{user_id}}/{verb}"] = {
            "post": _op(f"{verb.capitalize()} user (administrators only)", ["users.update"], params=user_param)
        }
    paths["/users/{user_id}/permissions"] = {
        "get": _op("Effective permissions of a user", ["users.manage_permissions"], params=user_param),
        "put": _op("Replace a user's permissions", ["users.manage_permissions"], body=True, params=user_param),
        "delete": _op("Reset a user to the role defaults", ["users.manage_permissions"], params=user_param),
    }

    quote_param = [_path_param("quote_id")]
    paths["/quotes/{quote_id}"]["put"] = _op("Update draft quote", ["quotes.update"], body=True, params=quote_param)
    paths["/quotes/{quote_id}"]["delete"] = _op("Delete draft quote", ["quotes.delete"], params=quote_param)
    for action in lifecycle.USER_ACTIONS:
        perm = lifecycle.required_permission(action)
        od = _op(lifecycle.ACTION_SUMMARIES[action], [perm] if perm else [], body=True, params=quote_param)
        od["x-transitions"] = [
            {"from": t.source, "to": t.target}
            for t in lifecycle.QUOTE_LIFECYCLE.transitions if t.action == action
        ]
        paths[f"/quotes/{{quote_id}}/{lifecycle.ACTION_SLUGS[action]}"] = {"post": od}
    paths["/quotes/expire"] = {"post": _op("Expire quotes past their validity date", ["admin.system_settings"], body=True)}

    components: Dict[str, Any] = {
        "schemas": _schemas(),
        "responses": {
            "BadRequest": {"description": "Bad Request", "content": {"application/json": {"schema": _ref("Error")}}},
            "Unauthorized": {"description": "Unauthorized"},
            "Forbidden": {"description": "Forbidden", "content": {"application/json": {"schema": _ref("Error")}}},
        },
        "securitySchemes": {"BearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}},
        "parameters": {
            "PageParam": {"name": "page", "in": "query", "schema": {"type": "integer", "default": 1}},
            "LimitParam": {"name": "limit", "in": "query", "schema": {"type": "integer", "default": 10, "maximum": 100}},
        },
    }

    # Add operationIds & tags
    tag_desc: Dict[str, str] = {}
    for path, ops in paths.items():
        tag = path.split("/")[1].capitalize()
        for method, od in ops.items():
            rid = path.strip("/").replace("/", "_").replace("-", "_").replace("{", "").replace("}", "")
            od["operationId"] = f"{method}_{rid}"
            od["tags"] = [tag]
        tag_desc[tag] = f"{tag} endpoints"

    return {
        "openapi": "3.0.3",
        "info": {"title": "Parabellum API", "version": "0.1.0"},
        "paths": paths,
        "components": components,
        "security": [{"BearerAuth": []}],
        "tags": [{"name": n, "description": d} for n, d in sorted(tag_desc.items())],
    }
