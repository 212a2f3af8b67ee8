"""Quote approval lifecycle.

Single owner of quote status legality: routes, the expiry sweep and the
client helpers all go through `QUOTE_LIFECYCLE`.

    DRAFT -> SUBMITTED_FOR_SERVICE_APPROVAL -> APPROVED_BY_SERVICE_MANAGER
          -> SUBMITTED_FOR_DG_APPROVAL -> APPROVED_BY_DG -> ACCEPTED_BY_CLIENT
    with REJECTED_* exits at each decision and EXPIRED from any non-terminal state.
"""
from __future__ import annotations
from typing import Callable, Dict, List

from werkzeug.exceptions import BadRequest

from parabellum.utils.fsm import StateMachine, Transition

DRAFT = 'DRAFT'
SUBMITTED_FOR_SERVICE_APPROVAL = 'SUBMITTED_FOR_SERVICE_APPROVAL'
APPROVED_BY_SERVICE_MANAGER = 'APPROVED_BY_SERVICE_MANAGER'
REJECTED_BY_SERVICE_MANAGER = 'REJECTED_BY_SERVICE_MANAGER'
SUBMITTED_FOR_DG_APPROVAL = 'SUBMITTED_FOR_DG_APPROVAL'
APPROVED_BY_DG = 'APPROVED_BY_DG'
REJECTED_BY_DG = 'REJECTED_BY_DG'
ACCEPTED_BY_CLIENT = 'ACCEPTED_BY_CLIENT'
REJECTED_BY_CLIENT = 'REJECTED_BY_CLIENT'
EXPIRED = 'EXPIRED'

ALL_STATUSES = (
    DRAFT,
    SUBMITTED_FOR_SERVICE_APPROVAL,
    APPROVED_BY_SERVICE_MANAGER,
    REJECTED_BY_SERVICE_MANAGER,
    SUBMITTED_FOR_DG_APPROVAL,
    APPROVED_BY_DG,
    REJECTED_BY_DG,
    ACCEPTED_BY_CLIENT,
    REJECTED_BY_CLIENT,
    EXPIRED,
)

# Actions
SUBMIT = 'submit'
APPROVE_SERVICE = 'approve_service'
REJECT_SERVICE = 'reject_service'
SUBMIT_DG = 'submit_dg'
APPROVE_DG = 'approve_dg'
REJECT_DG = 'reject_dg'
CLIENT_ACCEPT = 'client_accept'
CLIENT_REJECT = 'client_reject'
EXPIRE = 'expire'

USER_ACTIONS = (SUBMIT, APPROVE_SERVICE, REJECT_SERVICE, SUBMIT_DG, APPROVE_DG, REJECT_DG, CLIENT_ACCEPT, CLIENT_REJECT)
SUBMIT_ACTIONS = (SUBMIT, SUBMIT_DG)
SERVICE_DECISIONS = (APPROVE_SERVICE, REJECT_SERVICE)
DG_DECISIONS = (APPROVE_DG, REJECT_DG)

_TERMINAL = (REJECTED_BY_SERVICE_MANAGER, REJECTED_BY_DG, ACCEPTED_BY_CLIENT, REJECTED_BY_CLIENT, EXPIRED)
NON_TERMINAL_STATUSES = tuple(s for s in ALL_STATUSES if s not in _TERMINAL)

_WORKFLOW = [
    Transition(SUBMIT, DRAFT, SUBMITTED_FOR_SERVICE_APPROVAL, 'quotes.submit_for_approval'),
    Transition(APPROVE_SERVICE, SUBMITTED_FOR_SERVICE_APPROVAL, APPROVED_BY_SERVICE_MANAGER, 'quotes.approve_service'),
    Transition(REJECT_SERVICE, SUBMITTED_FOR_SERVICE_APPROVAL, REJECTED_BY_SERVICE_MANAGER, 'quotes.approve_service'),
    Transition(SUBMIT_DG, APPROVED_BY_SERVICE_MANAGER, SUBMITTED_FOR_DG_APPROVAL, 'quotes.submit_for_approval'),
    Transition(APPROVE_DG, SUBMITTED_FOR_DG_APPROVAL, APPROVED_BY_DG, 'quotes.approve_dg'),
    Transition(REJECT_DG, SUBMITTED_FOR_DG_APPROVAL, REJECTED_BY_DG, 'quotes.approve_dg'),
    Transition(CLIENT_ACCEPT, APPROVED_BY_DG, ACCEPTED_BY_CLIENT),
    Transition(CLIENT_REJECT, APPROVED_BY_DG, REJECTED_BY_CLIENT),
]

QUOTE_LIFECYCLE = StateMachine(
    ALL_STATUSES,
    _WORKFLOW + [Transition(EXPIRE, s, EXPIRED) for s in NON_TERMINAL_STATUSES],
)

TERMINAL_STATUSES = frozenset(QUOTE_LIFECYCLE.terminal_states)

# URL slug <-> action name for POST /quotes/<id>/<slug>
ACTION_SLUGS: Dict[str, str] = {a: a.replace('_', '-') for a in USER_ACTIONS}
SLUG_ACTIONS: Dict[str, str] = {v: k for k, v in ACTION_SLUGS.items()}

ACTION_SUMMARIES = {
    SUBMIT: 'Submit quote for service approval',
    APPROVE_SERVICE: 'Approve quote (service manager)',
    REJECT_SERVICE: 'Reject quote (service manager)',
    SUBMIT_DG: 'Submit quote for general director approval',
    APPROVE_DG: 'Approve quote (general director)',
    REJECT_DG: 'Reject quote (general director)',
    CLIENT_ACCEPT: 'Record client acceptance',
    CLIENT_REJECT: 'Record client rejection',
}


class QuoteReadOnly(BadRequest):
    """Line items and amounts can only change while the quote is a draft."""


def is_editable(status: str) -> bool:
    return status == DRAFT


def assert_editable(status: str):
    if not is_editable(status):
        raise QuoteReadOnly(description=f"Quote is read-only in status {status}")
    return True


def resolve(status: str, action: str, can: Callable[[str], bool]) -> Transition:
    """Validate `action` from `status` for a caller whose permissions `can` answers."""
    return QUOTE_LIFECYCLE.resolve(status, action, can)


def available_actions(status: str, can: Callable[[str], bool]) -> List[str]:
    """User-facing actions that are legal now and permitted for the caller."""
    return [t.action for t in QUOTE_LIFECYCLE.available(status, can, exclude=(EXPIRE,))]


def required_permission(action: str):
    for t in _WORKFLOW:
        if t.action == action:
            return t.permission
    raise KeyError(action)


__all__ = [
    'ALL_STATUSES', 'NON_TERMINAL_STATUSES', 'TERMINAL_STATUSES', 'USER_ACTIONS',
    'QUOTE_LIFECYCLE', 'ACTION_SLUGS', 'SLUG_ACTIONS', 'ACTION_SUMMARIES', 'QuoteReadOnly',
    'is_editable', 'assert_editable', 'resolve', 'available_actions', 'required_permission',
]
