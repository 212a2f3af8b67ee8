import json
import pytest
from parabellum.client import (
    AuthContext, FileStorage, MemoryStorage, SessionStore, WriterAlreadyClaimed,
)

USER = {'id': 7, 'email': 'jane@example.com', 'role': 'EMPLOYEE'}


def test_single_writer():
    store = SessionStore()
    store.claim_writer()
    with pytest.raises(WriterAlreadyClaimed):
        store.claim_writer()


def test_establish_then_clear():
    storage = MemoryStorage()
    store = SessionStore(storage)
    writer = store.claim_writer()
    seen = []
    store.subscribe(seen.append)
    session = writer.establish(USER, ['quotes.read', 'quotes.read'], 'access', 'refresh')
    assert store.session is session
    assert session.permissions == frozenset({'quotes.read'})
    assert session.user_id == 7 and session.role == 'EMPLOYEE'
    assert storage.get('user')['permissions'] == ['quotes.read']
    writer.clear()
    assert store.session is None
    assert storage.snapshot() == {}
    assert seen == [session, None]


def test_session_is_read_only():
    store = SessionStore()
    session = store.claim_writer().establish(USER, ['quotes.read'], 'a', 'r')
    with pytest.raises(TypeError):
        session.user['role'] = 'ADMIN'
    with pytest.raises(AttributeError):
        session.permissions.add('users.read')
    with pytest.raises(Exception):
        session.token = 'forged'


def test_logout_is_observed_by_readers():
    store = SessionStore()
    auth = AuthContext(store)
    writer = store.claim_writer()
    writer.establish(USER, ['quotes.read'], 'a', 'r')
    assert auth.has_permission('quotes.read')
    writer.clear()
    assert not auth.is_authenticated
    assert not auth.has_permission('quotes.read')
    assert auth.permissions == frozenset()


def test_update_token_keeps_identity():
    store = SessionStore()
    writer = store.claim_writer()
    writer.establish(USER, ['quotes.read'], 'old', 'refresh')
    session = writer.update_token('new')
    assert session.token == 'new'
    assert session.refresh_token == 'refresh'
    assert session.permissions == frozenset({'quotes.read'})
    writer.clear()
    with pytest.raises(RuntimeError):
        writer.update_token('again')


def test_restore_requires_complete_state():
    store = SessionStore(MemoryStorage({'token': 't', 'user': dict(USER)}))
    writer = store.claim_writer()
    assert writer.restore() is None
    assert store.session is None


def test_restore_stays_loading_until_confirmed():
    stored = {'token': 't', 'refreshToken': 'r', 'user': dict(USER, permissions=['quotes.read'])}
    store = SessionStore(MemoryStorage(stored))
    writer = store.claim_writer()
    writer.begin_loading()
    session = writer.restore()
    assert session.permissions == frozenset({'quotes.read'})
    assert 'permissions' not in session.user
    assert store.loading is True


def test_file_storage_persists_and_clears(tmp_path):
    path = tmp_path / 'state' / 'session.json'
    writer = SessionStore(FileStorage(str(path))).claim_writer()
    writer.establish(USER, ['quotes.read'], 'a', 'r')
    on_disk = json.loads(path.read_text())
    assert on_disk['token'] == 'a' and on_disk['refreshToken'] == 'r'

    reopened = SessionStore(FileStorage(str(path)))
    assert reopened.claim_writer().restore().token == 'a'

    writer.clear()
    assert json.loads(path.read_text()) == {}
    assert [p.name for p in path.parent.iterdir()] == ['session.json']


def test_file_storage_missing_file_is_empty(tmp_path):
    assert FileStorage(str(tmp_path / 'absent.json')).snapshot() == {}
