from __future__ import annotations

from decimal import Decimal

import pytest

from raffle_tracker.errors import DecodeError
from raffle_tracker.models import ContributionRecord, TicketResult

from conftest import ADDRESS, DENOM


@pytest.mark.parametrize(
    "kwargs",
    [
        {"ticket_count": 0, "submission_height": 1},
        {"ticket_count": 1, "submission_height": 0},
        {"ticket_count": 1, "submission_height": 1, "results": (TicketResult(0, False), TicketResult(1, False))},
        {"ticket_count": 2, "submission_height": 1, "results": (TicketResult(1, False),)},
    ],
)
def test_invalid_records_cannot_be_built(kwargs):
    with pytest.raises(ValueError):
        ContributionRecord(DENOM, ADDRESS, **kwargs)


def test_with_results_extends_only_the_contiguous_prefix():
    record = ContributionRecord(DENOM, ADDRESS, 3, 1)
    record = record.with_results([TicketResult(2, False), TicketResult(0, True, Decimal(1))])
    assert [r.index for r in record.results] == [0]
    assert record.pending_tickets == (1, 2)
    record = record.with_results([TicketResult(1, False), TicketResult(2, False)])
    assert record.is_complete
    assert record.pending_tickets == ()


def test_loss_amount_is_not_serialized():
    assert TicketResult(0, False).to_dict() == {"index": 0, "has_won": False}
    assert TicketResult(0, True, Decimal("1.10")).to_dict()["amount"] == "1.10"


def test_from_dict_rejects_garbage():
    with pytest.raises(DecodeError):
        ContributionRecord.from_dict({"denom": DENOM})
    with pytest.raises(DecodeError):
        ContributionRecord.from_dict(
            {
                "denom": DENOM,
                "address": ADDRESS,
                "ticket_count": 1,
                "submission_height": 1,
                "results": [{"index": 0, "has_won": True, "amount": "1.5e"}],
            }
        )
