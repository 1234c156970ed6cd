"""Tests for the order status transition table."""

import itertools

import pytest

from shopdrop.models import OrderStatus
from shopdrop.transitions import (
    CANCELLABLE_STATES,
    TERMINAL_STATES,
    allowed_transitions,
    is_terminal,
    is_valid_transition,
)

S = OrderStatus

ALLOWED = {
    (S.PENDING, S.CONFIRMED),
    (S.PENDING, S.CANCELLED),
    (S.CONFIRMED, S.PREPARING),
    (S.CONFIRMED, S.CANCELLED),
    (S.PREPARING, S.OUT_FOR_DELIVERY),
    (S.OUT_FOR_DELIVERY, S.DELIVERED),
}


@pytest.mark.parametrize("current, requested", list(itertools.product(S, S)))
def test_every_pair_matches_table(current, requested):
    assert is_valid_transition(current, requested) == ((current, requested) in ALLOWED)


def test_no_self_transitions():
    for status in S:
        assert not is_valid_transition(status, status)


def test_terminal_states():
    assert TERMINAL_STATES == {S.DELIVERED, S.CANCELLED}
    assert is_terminal(S.DELIVERED)
    assert not is_terminal(S.PREPARING)
    assert allowed_transitions(S.CANCELLED) == frozenset()


def test_only_pending_is_cancellable():
    assert CANCELLABLE_STATES == {S.PENDING}
