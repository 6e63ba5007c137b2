"""
Fulfilment state machine

  - forward path new → preparing → on_the_way → delivered
  - cancelled reachable from every non-terminal status
  - delivered and cancelled accept nothing
"""
import pytest

from fairway.models.status import (
    ALLOWED_TRANSITIONS,
    FulfillmentStatus,
    InvalidTransition,
    check_transition,
    is_terminal,
    next_statuses,
)

NEW = FulfillmentStatus.NEW
PREPARING = FulfillmentStatus.PREPARING
ON_THE_WAY = FulfillmentStatus.ON_THE_WAY
DELIVERED = FulfillmentStatus.DELIVERED
CANCELLED = FulfillmentStatus.CANCELLED


@pytest.mark.parametrize(
    "current,target",
    [
        (NEW, PREPARING),
        (PREPARING, ON_THE_WAY),
        (ON_THE_WAY, DELIVERED),
        (NEW, CANCELLED),
        (PREPARING, CANCELLED),
        (ON_THE_WAY, CANCELLED),
    ],
)
def test_allowed_edges(current, target):
    check_transition(current, target)


@pytest.mark.parametrize(
    "current,target",
    [
        (NEW, ON_THE_WAY),
        (NEW, DELIVERED),
        (PREPARING, NEW),
        (ON_THE_WAY, PREPARING),
        (NEW, NEW),
    ],
)
def test_skipping_or_reversing_is_rejected(current, target):
    with pytest.raises(InvalidTransition) as exc_info:
        check_transition(current, target)
    assert exc_info.value.current is current
    assert exc_info.value.target is target


@pytest.mark.parametrize("terminal", [DELIVERED, CANCELLED])
def test_terminal_orders_accept_no_change(terminal):
    assert is_terminal(terminal)
    assert next_statuses(terminal) == frozenset()
    for target in FulfillmentStatus:
        with pytest.raises(InvalidTransition, match="no further changes allowed"):
            check_transition(terminal, target)


def test_every_path_ends_in_a_terminal_status():
    """Walking any sequence of allowed edges stays inside the graph and terminates."""
    def walk(status, depth=0):
        assert depth <= len(FulfillmentStatus)
        if is_terminal(status):
            return
        for nxt in ALLOWED_TRANSITIONS[status]:
            walk(nxt, depth + 1)

    walk(NEW)


def test_accepts_raw_strings():
    check_transition("new", "preparing")
    assert next_statuses("preparing") == {ON_THE_WAY, CANCELLED}
