from datetime import date, timedelta
from parabellum.constants.permissions import (
    ROLE_ADMIN, ROLE_EMPLOYEE, ROLE_SERVICE_MANAGER, ROLE_ACCOUNTANT, ROLE_GENERAL_DIRECTOR,
)
from parabellum.models.quote import Quote
from parabellum.services import quote_lifecycle as lifecycle
from parabellum.services.quotes import line_amounts
from tests.test_utils_seed import ensure_service, ensure_user, ensure_customer, auth_headers, make_quote

ITEM = {'description': 'Annual maintenance', 'quantity': 2, 'unit_price_cents': 15000}


def _setup(tag: str):
    svc = ensure_service(f'Quotes {tag}')
    author = ensure_user(f'q.{tag}.author@example.com', ROLE_EMPLOYEE, svc)
    customer = ensure_customer(f'Customer {tag}', svc, author)
    return svc, author, customer


def test_line_amounts_round_half_up():
    assert line_amounts(2, 15000, 0, 18) == (30000, 5400)
    assert line_amounts(3, 999, 10, 18) == (2697, 486)
    assert line_amounts(1, 1, 50, 0) == (1, 0)


def test_create_quote_computes_totals_and_numbers(client):
    _, author, customer = _setup('create')
    headers = auth_headers(client, author.email)
    resp = client.post('/quotes', json={'customer_id': customer.id, 'items': [
        ITEM, {'description': 'Spare parts', 'quantity': 3, 'unit_price_cents': 999, 'discount_rate': 10},
    ]}, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    data = resp.get_json()['data']
    assert data['status'] == lifecycle.DRAFT
    assert data['editable'] is True
    assert data['subtotal_cents'] == 30000 + 2697
    assert data['vat_cents'] == 5400 + 486
    assert data['total_cents'] == data['subtotal_cents'] + data['vat_cents']
    assert [i['total_cents'] for i in data['items']] == [30000, 2697]
    assert data['quote_number'].startswith(f'DEV-{date.today().year}-')
    assert data['valid_until'] == (date.today() + timedelta(days=30)).isoformat()

    second = client.post('/quotes', json={'customer_id': customer.id, 'items': [ITEM]}, headers=headers).get_json()['data']
    assert int(second['quote_number'].rsplit('-', 1)[1]) == int(data['quote_number'].rsplit('-', 1)[1]) + 1


def test_create_quote_reports_item_errors(client):
    _, author, customer = _setup('invalid')
    headers = auth_headers(client, author.email)
    resp = client.post('/quotes', json={'customer_id': customer.id, 'items': [
        {'description': '', 'quantity': 0, 'unit_price_cents': 'abc'},
    ]}, headers=headers)
    assert resp.status_code == 400
    fields = {e['field'] for e in resp.get_json()['errors']}
    assert fields == {'items[0].description', 'items[0].quantity', 'items[0].unit_price_cents'}

    resp = client.post('/quotes', json={'customer_id': customer.id, 'items': []}, headers=headers)
    assert resp.get_json()['errors'][0]['field'] == 'items'

    resp = client.post('/quotes', json={'customer_id': customer.id, 'items': [ITEM],
                                        'quote_date': '2030-05-10', 'valid_until': '2030-05-01'}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['errors'][0]['field'] == 'valid_until'

    resp = client.post('/quotes', json={'customer_id': 999999, 'items': [ITEM]}, headers=headers)
    assert resp.get_json()['errors'][0]['field'] == 'customer_id'


def test_create_quote_rejects_non_finite_numbers(client):
    _, author, customer = _setup('nonfinite')
    headers = auth_headers(client, author.email)
    for raw in ('inf', 'nan', '-inf'):
        resp = client.post('/quotes', json={'customer_id': customer.id, 'items': [
            {'description': 'x', 'quantity': raw, 'unit_price_cents': 100},
        ]}, headers=headers)
        assert resp.status_code == 400, raw
        assert [e['field'] for e in resp.get_json()['errors']] == ['items[0].quantity']

    resp = client.post('/quotes', json={'customer_id': customer.id, 'items': [
        dict(ITEM, discount_rate='nan', vat_rate='inf'),
    ]}, headers=headers)
    assert resp.status_code == 400
    fields = {e['field'] for e in resp.get_json()['errors']}
    assert fields == {'items[0].discount_rate', 'items[0].vat_rate'}


def test_cannot_quote_for_customer_of_another_service(client):
    _, author, _ = _setup('xsvc-a')
    other_svc, other_author, other_customer = _setup('xsvc-b')
    resp = client.post('/quotes', json={'customer_id': other_customer.id, 'items': [ITEM]},
                       headers=auth_headers(client, author.email))
    assert resp.status_code == 403


def test_update_draft_quote_recomputes_totals(client):
    _, author, customer = _setup('update')
    quote = make_quote(author, customer)
    headers = auth_headers(client, author.email)
    resp = client.put(f'/quotes/{quote.id}', json={'items': [{'description': 'Audit', 'quantity': 1,
                                                              'unit_price_cents': 10000, 'vat_rate': 0}],
                                                   'notes': 'revised'}, headers=headers)
    assert resp.status_code == 200, resp.get_json()
    data = resp.get_json()['data']
    assert data['total_cents'] == 10000
    assert data['notes'] == 'revised'
    assert len(data['items']) == 1


def test_update_rejected_once_submitted(client):
    _, author, customer = _setup('readonly')
    quote = make_quote(author, customer, status=lifecycle.SUBMITTED_FOR_SERVICE_APPROVAL)
    before = quote.total_cents
    resp = client.put(f'/quotes/{quote.id}', json={'items': [ITEM, ITEM]}, headers=auth_headers(client, author.email))
    assert resp.status_code == 400
    assert 'read-only' in resp.get_json()['message']
    get = client.get(f'/quotes/{quote.id}', headers=auth_headers(client, author.email)).get_json()['data']
    assert get['total_cents'] == before
    assert get['editable'] is False


def test_invalid_update_leaves_quote_untouched(client):
    _, author, customer = _setup('atomic')
    quote = make_quote(author, customer)
    headers = auth_headers(client, author.email)
    resp = client.put(f'/quotes/{quote.id}', json={'notes': 'changed', 'items': [{'description': 'x'}]}, headers=headers)
    assert resp.status_code == 400
    data = client.get(f'/quotes/{quote.id}', headers=headers).get_json()['data']
    assert data['notes'] is None


def test_only_author_or_admin_edits(client):
    svc, author, customer = _setup('editor')
    colleague = ensure_user('q.editor.colleague@example.com', ROLE_SERVICE_MANAGER, svc)
    ensure_user('q.editor.admin@example.com', ROLE_ADMIN)
    quote = make_quote(author, customer)
    resp = client.put(f'/quotes/{quote.id}', json={'notes': 'sm'}, headers=auth_headers(client, colleague.email))
    assert resp.status_code == 403
    resp = client.put(f'/quotes/{quote.id}', json={'notes': 'admin'},
                      headers=auth_headers(client, 'q.editor.admin@example.com'))
    assert resp.status_code == 200


def test_delete_only_drafts(client):
    svc, author, customer = _setup('delete')
    admin = ensure_user('q.delete.admin@example.com', ROLE_ADMIN)
    headers = auth_headers(client, admin.email)
    draft = make_quote(author, customer)
    submitted = make_quote(author, customer, status=lifecycle.SUBMITTED_FOR_SERVICE_APPROVAL)
    assert client.delete(f'/quotes/{submitted.id}', headers=headers).status_code == 400
    assert client.delete(f'/quotes/{draft.id}', headers=headers).status_code == 200
    assert client.get(f'/quotes/{draft.id}', headers=headers).status_code == 404
    # employees lack quotes.delete
    assert client.delete(f'/quotes/{submitted.id}', headers=auth_headers(client, author.email)).status_code == 403


def test_visibility_by_role(client):
    svc, author, customer = _setup('vis')
    peer = ensure_user('q.vis.peer@example.com', ROLE_EMPLOYEE, svc)
    manager = ensure_user('q.vis.sm@example.com', ROLE_SERVICE_MANAGER, svc)
    other_svc = ensure_service('Quotes vis-other')
    outsider = ensure_user('q.vis.outsider@example.com', ROLE_SERVICE_MANAGER, other_svc)
    accountant = ensure_user('q.vis.accountant@example.com', ROLE_ACCOUNTANT)
    director = ensure_user('q.vis.dg@example.com', ROLE_GENERAL_DIRECTOR)
    draft = make_quote(author, customer)
    approved = make_quote(author, customer, status=lifecycle.APPROVED_BY_DG)

    def visible(email):
        body = client.get(f'/quotes?customer_id={customer.id}&limit=100', headers=auth_headers(client, email)).get_json()
        return {q['id'] for q in body['data']}

    assert visible(author.email) >= {draft.id, approved.id}
    assert visible(peer.email) == set()
    assert visible(manager.email) >= {draft.id, approved.id}
    assert visible(outsider.email) == set()
    assert approved.id in visible(accountant.email) and draft.id not in visible(accountant.email)
    assert visible(director.email) >= {draft.id, approved.id}

    assert client.get(f'/quotes/{draft.id}', headers=auth_headers(client, peer.email)).status_code == 403
    assert client.get(f'/quotes/{draft.id}', headers=auth_headers(client, outsider.email)).status_code == 403
    assert client.get(f'/quotes/{draft.id}', headers=auth_headers(client, accountant.email)).status_code == 403
    assert client.get(f'/quotes/{approved.id}', headers=auth_headers(client, accountant.email)).status_code == 200


def test_list_filters_sort_and_pagination(client):
    _, author, customer = _setup('listing')
    quotes = [make_quote(author, customer, items=[{'description': 'Line', 'quantity': n, 'unit_price_cents': 1000}])
              for n in (1, 2, 3)]
    make_quote(author, customer, status=lifecycle.SUBMITTED_FOR_SERVICE_APPROVAL)
    headers = auth_headers(client, author.email)

    body = client.get(f'/quotes?customer_id={customer.id}&status=DRAFT&sort=-total_cents&limit=2', headers=headers).get_json()
    assert body['pagination'] == {'page': 1, 'limit': 2, 'total': 3, 'totalPages': 2}
    assert [q['id'] for q in body['data']] == [quotes[2].id, quotes[1].id]
    page2 = client.get(f'/quotes?customer_id={customer.id}&status=DRAFT&sort=-total_cents&limit=2&page=2',
                       headers=headers).get_json()
    assert [q['id'] for q in page2['data']] == [quotes[0].id]

    assert client.get('/quotes?status=NOPE', headers=headers).status_code == 400
    assert client.get('/quotes?customer_id=abc', headers=headers).status_code == 400
    assert client.get('/quotes?sort=secret', headers=headers).status_code == 400
    assert client.get('/quotes?page=x', headers=headers).status_code == 400
    assert client.get('/quotes?limit=500', headers=headers).get_json()['pagination']['limit'] == 100


def test_get_quote_lists_available_actions(client):
    _, author, customer = _setup('actions')
    quote = make_quote(author, customer)
    data = client.get(f'/quotes/{quote.id}', headers=auth_headers(client, author.email)).get_json()['data']
    assert data['available_actions'] == [lifecycle.SUBMIT]
    assert data['items'][0]['description'] == 'Maintenance visit'


def test_quote_status_defaults_to_draft_in_model():
    assert Quote.STATUS_DRAFT == lifecycle.DRAFT


def test_status_filter_accepts_several_values(client):
    _, author, customer = _setup('multi-status')
    draft = make_quote(author, customer)
    submitted = make_quote(author, customer, status=lifecycle.SUBMITTED_FOR_SERVICE_APPROVAL)
    make_quote(author, customer, status=lifecycle.EXPIRED)
    headers = auth_headers(client, author.email)
    body = client.get(f'/quotes?customer_id={customer.id}&status=DRAFT,SUBMITTED_FOR_SERVICE_APPROVAL&sort=id',
                      headers=headers).get_json()
    assert [q['id'] for q in body['data']] == [draft.id, submitted.id]
    assert client.get('/quotes?status=DRAFT,NOPE', headers=headers).status_code == 400
