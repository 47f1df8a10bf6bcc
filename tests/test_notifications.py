from __future__ import annotations

from raffle_tracker.errors import IndeterminateOutcome
from raffle_tracker.models import ContributionRecord
from raffle_tracker.notifications import NotificationKind, Notifier

from conftest import ADDRESS, DENOM


def test_broken_listener_does_not_stop_others():
    notifier = Notifier()
    received = []

    def broken(_n):
        raise ValueError("boom")

    notifier.subscribe(broken)
    notifier.subscribe(received.append)
    notifier.completed(ContributionRecord(DENOM, ADDRESS, 1, 5))

    assert len(received) == 1
    assert received[0].kind is NotificationKind.COMPLETED
    assert received[0].denom == DENOM


def test_unsubscribe():
    notifier = Notifier()
    received = []
    unsubscribe = notifier.subscribe(received.append)
    unsubscribe()
    unsubscribe()
    notifier.failed(DENOM, IndeterminateOutcome(DENOM, [1, 2], 3))
    assert received == []


def test_indeterminate_message_lists_tickets():
    error = IndeterminateOutcome(DENOM, [1, 2], 3)
    assert "1, 2" in str(error)
    assert error.tickets == (1, 2)
