from __future__ import annotations

from decimal import Decimal

import pytest

from raffle_tracker.models import ContributionRecord, TicketResult
from raffle_tracker.presentation import (
    Presentation,
    PresentationState,
    presentation_state,
    summarize,
)

from conftest import ADDRESS, DENOM

S = PresentationState


def _record(*results, ticket_count=2, was_closed=False):
    return ContributionRecord(
        DENOM, ADDRESS, ticket_count, 100, results=tuple(results), was_closed=was_closed
    )


def test_win_then_lose_then_summary():
    record = _record(TicketResult(0, True, Decimal(30)), TicketResult(1, False))
    assert [presentation_state(record, c) for c in range(3)] == [
        S.SHOWING_WIN,
        S.SHOWING_LOSE,
        S.SUMMARY,
    ]


def test_no_record_is_idle():
    assert presentation_state(None, 0) is S.IDLE


def test_closed_wins_over_everything():
    record = _record(TicketResult(0, True, Decimal(1)), TicketResult(1, False), was_closed=True)
    assert presentation_state(record, 0) is S.CLOSED
    assert presentation_state(record, 2) is S.CLOSED


def test_waiting_for_unresolved_tickets():
    assert presentation_state(_record(), 0) is S.WAITING
    record = _record(TicketResult(0, False))
    assert presentation_state(record, 0) is S.SHOWING_LOSE
    assert presentation_state(record, 1) is S.WAITING
    # past the end but incomplete is still waiting
    assert presentation_state(record, 5) is S.WAITING


def test_summary_totals():
    record = _record(
        TicketResult(0, True, Decimal("30.5")),
        TicketResult(1, False),
        TicketResult(2, True, Decimal(12)),
        ticket_count=3,
    )
    summary = summarize(record)
    assert summary.total_won == Decimal("42.5")
    assert summary.winners == 2
    assert summary.losers == 1


@pytest.mark.asyncio
async def test_presentation_follows_the_store(store):
    view = Presentation(store, DENOM)
    assert view.state is S.IDLE

    await store.create(DENOM, ADDRESS, 2, 100)
    assert view.state is S.WAITING

    await store.append_results(DENOM, [TicketResult(0, True, Decimal(30_000_000))])
    assert view.state is S.SHOWING_WIN
    assert view.current_amount() == Decimal(30)

    assert view.advance() is S.WAITING
    assert view.current_amount() is None

    await store.append_results(DENOM, [TicketResult(1, False)])
    assert view.state is S.SHOWING_LOSE
    assert view.advance() is S.SUMMARY
    assert view.summary().winners == 1

    await view.close()
    assert view.state is S.CLOSED
    # complete records are purged on close
    assert store.get_pending(DENOM) is None


@pytest.mark.asyncio
async def test_closing_while_incomplete_keeps_record(store):
    await store.create(DENOM, ADDRESS, 3, 100)
    view = Presentation(store, DENOM)
    await view.close()

    assert view.state is S.CLOSED
    record = store.get_pending(DENOM)
    assert record is not None and record.was_closed
    # a new view of the same record also sees it closed
    assert Presentation(store, DENOM).state is S.CLOSED


def test_summary_total_keeps_every_digit():
    big = Decimal("100000000000000000000000000000001")
    record = _record(TicketResult(0, True, big), TicketResult(1, True, big))
    summary = summarize(record)
    assert str(summary.total_won) == "200000000000000000000000000000002"
    assert summary.winners == 2
    assert summary.losers == 0
