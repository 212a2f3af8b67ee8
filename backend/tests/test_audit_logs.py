from parabellum.constants.permissions import ROLE_ADMIN, ROLE_EMPLOYEE
from tests.test_utils_seed import ensure_user, auth_headers


def _logs(client, headers, **params):
    query = '&'.join(f'{k}={v}' for k, v in params.items())
    resp = client.get(f'/audit/logs?{query}', headers=headers)
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()


def test_permission_override_is_audited(client):
    admin = ensure_user('audit.admin@example.com', ROLE_ADMIN)
    target = ensure_user('audit.target@example.com')
    headers = auth_headers(client, admin.email)
    client.put(f'/users/{target.id}/permissions', json={'permissions': ['quotes.read', 'customers.read']}, headers=headers)
    body = _logs(client, headers, action='USER.PERMISSIONS.SET', entity_id=target.id)
    assert body['pagination']['total'] == 1
    entry = body['data'][0]
    assert entry['actor_user_id'] == admin.id
    assert entry['entity'] == 'User'
    assert entry['meta'] == {'count': 2}


def test_user_update_records_changes(client):
    admin = ensure_user('audit.admin@example.com', ROLE_ADMIN)
    target = ensure_user('audit.rename@example.com')
    headers = auth_headers(client, admin.email)
    client.put(f'/users/{target.id}', json={'last_name': 'Renamed', 'role': 'ACCOUNTANT'}, headers=headers)
    entry = _logs(client, headers, action='USER.UPDATE', entity_id=target.id)['data'][0]
    assert entry['meta']['changes'] == {
        'last_name': {'before': 'Test', 'after': 'Renamed'},
        'role': {'before': 'EMPLOYEE', 'after': 'ACCOUNTANT'},
    }


def test_failed_requests_are_not_audited(client):
    admin = ensure_user('audit.admin@example.com', ROLE_ADMIN)
    target = ensure_user('audit.rejected@example.com')
    headers = auth_headers(client, admin.email)
    resp = client.put(f'/users/{target.id}/permissions', json={'permissions': ['nope.nope']}, headers=headers)
    assert resp.status_code == 400
    assert _logs(client, headers, action='USER.PERMISSIONS.SET', entity_id=target.id)['pagination']['total'] == 0


def test_audit_filters_and_access(client):
    admin = ensure_user('audit.admin@example.com', ROLE_ADMIN)
    headers = auth_headers(client, admin.email)
    body = _logs(client, headers, actor_user_id=admin.id, limit=5)
    assert body['pagination']['limit'] == 5
    assert all(e['actor_user_id'] == admin.id for e in body['data'])
    assert client.get('/audit/logs?actor_user_id=abc', headers=headers).status_code == 400
    ensure_user('audit.employee@example.com', ROLE_EMPLOYEE)
    assert client.get('/audit/logs', headers=auth_headers(client, 'audit.employee@example.com')).status_code == 403
