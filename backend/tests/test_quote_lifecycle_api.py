from parabellum.constants.permissions import (
    ROLE_ADMIN, ROLE_EMPLOYEE, ROLE_SERVICE_MANAGER, ROLE_GENERAL_DIRECTOR,
)
from parabellum.models.quote import QuoteApproval
from parabellum.services import quote_lifecycle as lifecycle
from tests.test_utils_seed import (
    ensure_service, ensure_user, ensure_customer, auth_headers, make_quote, reload_quote,
)


def _team(tag: str):
    svc = ensure_service(f'Lifecycle {tag}')
    author = ensure_user(f'lc.{tag}.author@example.com', ROLE_EMPLOYEE, svc)
    manager = ensure_user(f'lc.{tag}.sm@example.com', ROLE_SERVICE_MANAGER, svc)
    director = ensure_user('lc.dg@example.com', ROLE_GENERAL_DIRECTOR)
    customer = ensure_customer(f'Lifecycle customer {tag}', svc, author)
    return author, manager, director, customer


def _act(client, quote_id, slug, email, **body):
    return client.post(f'/quotes/{quote_id}/{slug}', json=body, headers=auth_headers(client, email))


def test_full_approval_path(client):
    author, manager, director, customer = _team('happy')
    quote = make_quote(author, customer)

    resp = _act(client, quote.id, 'submit', author.email)
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()['data']['status'] == lifecycle.SUBMITTED_FOR_SERVICE_APPROVAL
    assert resp.get_json()['data']['available_actions'] == []

    resp = _act(client, quote.id, 'approve-service', manager.email, comments='ok for us')
    data = resp.get_json()['data']
    assert data['status'] == lifecycle.APPROVED_BY_SERVICE_MANAGER
    assert data['service_manager_decided_by'] == manager.id
    assert data['service_manager_comments'] == 'ok for us'

    assert _act(client, quote.id, 'submit-dg', author.email).get_json()['data']['status'] == lifecycle.SUBMITTED_FOR_DG_APPROVAL
    data = _act(client, quote.id, 'approve-dg', director.email).get_json()['data']
    assert data['status'] == lifecycle.APPROVED_BY_DG
    assert data['dg_decided_by'] == director.id

    data = _act(client, quote.id, 'client-accept', author.email).get_json()['data']
    assert data['status'] == lifecycle.ACCEPTED_BY_CLIENT
    assert data['available_actions'] == []

    approvals = {a['level']: a for a in data['approvals']}
    assert approvals[QuoteApproval.LEVEL_SERVICE_MANAGER]['status'] == QuoteApproval.STATUS_APPROVED
    assert approvals[QuoteApproval.LEVEL_SERVICE_MANAGER]['decided_by'] == manager.id
    assert approvals[QuoteApproval.LEVEL_GENERAL_DIRECTOR]['status'] == QuoteApproval.STATUS_APPROVED


def test_approve_twice_is_rejected(client):
    author, manager, _, customer = _team('twice')
    quote = make_quote(author, customer, status=lifecycle.SUBMITTED_FOR_SERVICE_APPROVAL)
    first = _act(client, quote.id, 'approve-service', manager.email)
    assert first.status_code == 200
    assert first.get_json()['data']['status'] == lifecycle.APPROVED_BY_SERVICE_MANAGER
    second = _act(client, quote.id, 'approve-service', manager.email)
    assert second.status_code == 400
    assert reload_quote(quote.id).status == lifecycle.APPROVED_BY_SERVICE_MANAGER


def test_terminal_state_rejects_every_action_even_for_admin(client):
    author, _, _, customer = _team('terminal')
    admin = ensure_user('lc.terminal.admin@example.com', ROLE_ADMIN)
    quote = make_quote(author, customer, status=lifecycle.REJECTED_BY_DG)
    for action in lifecycle.USER_ACTIONS:
        resp = _act(client, quote.id, lifecycle.ACTION_SLUGS[action], admin.email)
        assert resp.status_code == 400, action
    assert reload_quote(quote.id).status == lifecycle.REJECTED_BY_DG


def test_missing_permission_leaves_status_unchanged(client):
    author, _, _, customer = _team('gating')
    quote = make_quote(author, customer, status=lifecycle.SUBMITTED_FOR_SERVICE_APPROVAL)
    resp = _act(client, quote.id, 'approve-service', author.email)
    assert resp.status_code == 403
    assert 'quotes.approve_service' in resp.get_json()['message']
    assert reload_quote(quote.id).status == lifecycle.SUBMITTED_FOR_SERVICE_APPROVAL


def test_service_manager_of_other_service_cannot_decide(client):
    author, _, _, customer = _team('xsvc')
    other = ensure_service('Lifecycle xsvc-other')
    outsider = ensure_user('lc.xsvc.outsider@example.com', ROLE_SERVICE_MANAGER, other)
    quote = make_quote(author, customer, status=lifecycle.SUBMITTED_FOR_SERVICE_APPROVAL)
    assert _act(client, quote.id, 'approve-service', outsider.email).status_code == 403
    assert reload_quote(quote.id).status == lifecycle.SUBMITTED_FOR_SERVICE_APPROVAL


def test_only_author_submits(client):
    author, _, _, customer = _team('submitter')
    svc = ensure_service('Lifecycle submitter')
    colleague = ensure_user('lc.submitter.colleague@example.com', ROLE_SERVICE_MANAGER, svc,
                            overrides=['quotes.read', 'quotes.submit_for_approval'])
    quote = make_quote(author, customer)
    resp = _act(client, quote.id, 'submit', colleague.email)
    assert resp.status_code == 403
    assert resp.get_json()['message'] == 'Only the author can submit this quote'
    assert reload_quote(quote.id).status == lifecycle.DRAFT


def test_admin_may_submit_on_behalf_of_author(client):
    author, _, _, customer = _team('behalf')
    admin = ensure_user('lc.behalf.admin@example.com', ROLE_ADMIN)
    quote = make_quote(author, customer)
    assert _act(client, quote.id, 'submit', admin.email).get_json()['data']['status'] == lifecycle.SUBMITTED_FOR_SERVICE_APPROVAL


def test_reject_records_comments_and_is_terminal(client):
    author, manager, _, customer = _team('reject')
    quote = make_quote(author, customer, status=lifecycle.SUBMITTED_FOR_SERVICE_APPROVAL)
    data = _act(client, quote.id, 'reject-service', manager.email, comments='price too low').get_json()['data']
    assert data['status'] == lifecycle.REJECTED_BY_SERVICE_MANAGER
    assert data['service_manager_comments'] == 'price too low'
    assert data['available_actions'] == []
    assert _act(client, quote.id, 'submit', author.email).status_code == 400


def test_client_rejection_and_unknown_action(client):
    author, _, _, customer = _team('client')
    quote = make_quote(author, customer, status=lifecycle.APPROVED_BY_DG)
    detail = client.get(f'/quotes/{quote.id}', headers=auth_headers(client, author.email)).get_json()['data']
    assert detail['available_actions'] == [lifecycle.CLIENT_ACCEPT, lifecycle.CLIENT_REJECT]
    assert _act(client, quote.id, 'publish', author.email).status_code == 404
    assert _act(client, quote.id, 'client-reject', author.email).get_json()['data']['status'] == lifecycle.REJECTED_BY_CLIENT


def test_transitions_are_audited(client):
    author, _, _, customer = _team('audit')
    admin = ensure_user('lc.audit.admin@example.com', ROLE_ADMIN)
    quote = make_quote(author, customer)
    _act(client, quote.id, 'submit', author.email)
    body = client.get(f'/audit/logs?action=QUOTE.SUBMIT&entity_id={quote.id}',
                      headers=auth_headers(client, admin.email)).get_json()
    assert body['pagination']['total'] == 1
    entry = body['data'][0]
    assert entry['actor_user_id'] == author.id
    assert entry['meta']['from'] == lifecycle.DRAFT
    assert entry['meta']['to'] == lifecycle.SUBMITTED_FOR_SERVICE_APPROVAL


def test_manager_sees_decision_actions(client):
    author, manager, _, customer = _team('sm-actions')
    quote = make_quote(author, customer, status=lifecycle.SUBMITTED_FOR_SERVICE_APPROVAL)
    detail = client.get(f'/quotes/{quote.id}', headers=auth_headers(client, manager.email)).get_json()['data']
    assert detail['available_actions'] == [lifecycle.APPROVE_SERVICE, lifecycle.REJECT_SERVICE]


def test_manager_without_service_reaches_no_unassigned_quotes(client):
    author = ensure_user('lc.noservice.author@example.com', ROLE_EMPLOYEE)
    manager = ensure_user('lc.noservice.sm@example.com', ROLE_SERVICE_MANAGER)
    customer = ensure_customer('Lifecycle customer noservice', None, author)
    quote = make_quote(author, customer, status=lifecycle.SUBMITTED_FOR_SERVICE_APPROVAL)
    headers = auth_headers(client, manager.email)

    listed = client.get('/quotes?limit=100', headers=headers).get_json()['data']
    assert quote.id not in {q['id'] for q in listed}
    assert client.get(f'/quotes/{quote.id}', headers=headers).status_code == 403
    assert _act(client, quote.id, 'approve-service', manager.email).status_code == 403
    assert reload_quote(quote.id).status == lifecycle.SUBMITTED_FOR_SERVICE_APPROVAL

    own = make_quote(manager, customer)
    listed = client.get('/quotes?limit=100', headers=headers).get_json()['data']
    assert [q['id'] for q in listed] == [own.id]
