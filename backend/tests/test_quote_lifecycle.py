import pytest
from parabellum.constants.permissions import ROLE_PERMISSIONS, ROLE_ADMIN, ROLE_EMPLOYEE, ROLE_ACCOUNTANT
from parabellum.services import quote_lifecycle as lifecycle
from parabellum.utils.fsm import InvalidTransition, TransitionForbidden

EVERYTHING = lambda _perm: True
NOTHING = lambda _perm: False
ALL_ACTIONS = lifecycle.USER_ACTIONS + (lifecycle.EXPIRE,)


def test_terminal_statuses():
    assert lifecycle.TERMINAL_STATUSES == {
        lifecycle.REJECTED_BY_SERVICE_MANAGER, lifecycle.REJECTED_BY_DG, lifecycle.REJECTED_BY_CLIENT,
        lifecycle.ACCEPTED_BY_CLIENT, lifecycle.EXPIRED,
    }


@pytest.mark.parametrize('status', sorted(lifecycle.TERMINAL_STATUSES))
def test_no_action_leaves_a_terminal_status(status):
    for action in ALL_ACTIONS:
        with pytest.raises(InvalidTransition):
            lifecycle.resolve(status, action, EVERYTHING)
    assert lifecycle.available_actions(status, EVERYTHING) == []


def test_every_path_from_draft_ends_in_a_terminal_status():
    seen, frontier = set(), [lifecycle.DRAFT]
    while frontier:
        status = frontier.pop()
        if status in seen:
            continue
        seen.add(status)
        targets = {t.target for t in lifecycle.QUOTE_LIFECYCLE.transitions_from(status)}
        if status in lifecycle.TERMINAL_STATUSES:
            assert not targets
        frontier.extend(targets)
    assert seen == set(lifecycle.ALL_STATUSES)


def test_expire_allowed_from_every_open_status():
    for status in lifecycle.NON_TERMINAL_STATUSES:
        assert lifecycle.resolve(status, lifecycle.EXPIRE, NOTHING).target == lifecycle.EXPIRED


def test_gated_transition_needs_its_permission():
    with pytest.raises(TransitionForbidden):
        lifecycle.resolve(lifecycle.SUBMITTED_FOR_DG_APPROVAL, lifecycle.APPROVE_DG, lambda p: p == 'quotes.approve_service')
    step = lifecycle.resolve(lifecycle.SUBMITTED_FOR_DG_APPROVAL, lifecycle.APPROVE_DG, lambda p: p == 'quotes.approve_dg')
    assert step.target == lifecycle.APPROVED_BY_DG


def test_available_actions_follow_role_defaults():
    employee = ROLE_PERMISSIONS[ROLE_EMPLOYEE].__contains__
    accountant = ROLE_PERMISSIONS[ROLE_ACCOUNTANT].__contains__
    admin = ROLE_PERMISSIONS[ROLE_ADMIN].__contains__
    assert lifecycle.available_actions(lifecycle.DRAFT, employee) == [lifecycle.SUBMIT]
    assert lifecycle.available_actions(lifecycle.DRAFT, accountant) == []
    assert lifecycle.available_actions(lifecycle.SUBMITTED_FOR_SERVICE_APPROVAL, admin) == [
        lifecycle.APPROVE_SERVICE, lifecycle.REJECT_SERVICE,
    ]


def test_required_permissions():
    assert lifecycle.required_permission(lifecycle.SUBMIT) == 'quotes.submit_for_approval'
    assert lifecycle.required_permission(lifecycle.REJECT_DG) == 'quotes.approve_dg'
    assert lifecycle.required_permission(lifecycle.CLIENT_ACCEPT) is None
    with pytest.raises(KeyError):
        lifecycle.required_permission('teleport')


def test_only_drafts_are_editable():
    assert lifecycle.assert_editable(lifecycle.DRAFT)
    for status in lifecycle.ALL_STATUSES:
        if status != lifecycle.DRAFT:
            with pytest.raises(lifecycle.QuoteReadOnly):
                lifecycle.assert_editable(status)


def test_action_slugs_round_trip():
    assert lifecycle.ACTION_SLUGS[lifecycle.APPROVE_SERVICE] == 'approve-service'
    assert all(lifecycle.SLUG_ACTIONS[slug] == action for action, slug in lifecycle.ACTION_SLUGS.items())
