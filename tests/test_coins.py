from __future__ import annotations

from decimal import Decimal

import pytest

from raffle_tracker.coins import (
    aggregate_burned_coins,
    aggregate_coins,
    format_tokens,
    parse_amount,
    parse_coins,
    to_tokens,
)
from raffle_tracker.errors import DecodeError


def test_parse_coins_multiple_denoms():
    coins = parse_coins("1000ubze,25ibc/ABCDEF0123,7factory/bze1abc/token")
    assert [(c.denom, c.amount) for c in coins] == [
        ("ubze", Decimal(1000)),
        ("ibc/ABCDEF0123", Decimal(25)),
        ("factory/bze1abc/token", Decimal(7)),
    ]


def test_parse_coins_empty():
    assert parse_coins("") == []


@pytest.mark.parametrize("raw", ["ubze", "10", "1000ubze,,5uatom", "-5ubze", "10 ubze"])
def test_parse_coins_rejects_malformed(raw):
    with pytest.raises(DecodeError):
        parse_coins(raw)


def test_aggregation_is_exact_for_huge_amounts():
    big = "123456789012345678901234567890123456789"
    burns = [
        {"burned": f"{big}ubze,1ibc/X", "height": "1"},
        {"burned": f"{big}ubze,0uatom", "height": "2"},
        {"burned": "0.000000000000000001ubze", "height": "3"},
    ]
    totals = aggregate_burned_coins(burns)

    assert str(totals["ubze"]) == "246913578024691357802469135780246913578.000000000000000001"
    assert totals["ibc/X"] == Decimal(1)
    # zero amounts are dropped entirely
    assert "uatom" not in totals


def test_reaggregating_split_balances_reproduces_totals():
    combined = "9007199254740993ubze,300000000000000000001uatom"
    original = {c.denom: c.amount for c in parse_coins(combined)}

    parts = [
        {"burned": "9007199254740990ubze,100000000000000000000uatom"},
        {"burned": "3ubze,200000000000000000001uatom"},
    ]
    assert aggregate_burned_coins(parts) == original


def test_bad_burn_entry_is_skipped():
    burns = [{"burned": "garbage", "height": "1"}, {"burned": "10ubze", "height": "2"}]
    assert aggregate_burned_coins(burns) == {"ubze": Decimal(10)}


def test_burn_filter_by_denom():
    burns = [{"burned": "10ubze,3uatom"}, {"burned": "5ubze"}]
    assert aggregate_burned_coins(burns, denom="ubze") == {"ubze": Decimal(15)}


def test_aggregate_coins_empty():
    assert aggregate_coins([]) == {}


def test_parse_amount_refuses_floats_and_negatives():
    with pytest.raises(DecodeError):
        parse_amount(0.1)
    with pytest.raises(DecodeError):
        parse_amount("-1")
    with pytest.raises(DecodeError):
        parse_amount(None)
    assert parse_amount(42) == Decimal(42)


def test_to_tokens_and_format():
    assert to_tokens("1500000") == Decimal("1.5")
    assert format_tokens(to_tokens("1500000")) == "1.5"
    assert format_tokens(to_tokens(100000000)) == "100"
    assert format_tokens(to_tokens("1", decimals=18)) == "0.000000000000000001"
