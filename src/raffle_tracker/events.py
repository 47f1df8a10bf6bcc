from __future__ import annotations

import base64
import binascii
import json
import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from .errors import DecodeError
from .models import LedgerEvent
from .project_constants import RAFFLE_LOST_EVENT, RAFFLE_WINNER_EVENT

log = logging.getLogger(__name__)


class RaffleEventKind(Enum):
    LOST = RAFFLE_LOST_EVENT
    WINNER = RAFFLE_WINNER_EVENT

    @staticmethod
    def of(event_type: str) -> Optional["RaffleEventKind"]:
        """Exact type match only; "MyRaffleLostEventV2" is not a raffle event."""
        try:
            return RaffleEventKind(event_type)
        except ValueError:
            return None


def _b64(text: str) -> str:
    try:
        return base64.b64decode(text, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise DecodeError(f"Attribute is not base64/utf-8: {text!r} ({e})")


def _unquote(value: str) -> str:
    # Typed events JSON-encode their fields, so strings arrive as "\"bze1...\"".
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        try:
            decoded = json.loads(value)
        except ValueError as e:
            raise DecodeError(f"Malformed quoted attribute {value!r}: {e}")
        return decoded
    return value


def map_event_attributes(
    attributes: Iterable[Dict[str, Any]],
    base64_encoded: bool = False,
) -> Dict[str, str]:
    """
    Turn a raw [{"key": ..., "value": ...}, ...] list into a name -> value map.

    Business logic must only look at the returned map, never at positions in
    the raw list. A repeated key keeps its first value.
    """
    out: Dict[str, str] = {}
    for attr in attributes:
        if not isinstance(attr, dict) or "key" not in attr:
            raise DecodeError(f"Malformed attribute: {attr!r}")

        key = attr["key"]
        value = attr.get("value")
        if value is None:
            value = ""
        if not isinstance(key, str) or not isinstance(value, str):
            raise DecodeError(f"Malformed attribute: {attr!r}")

        if base64_encoded:
            key = _b64(key)
            value = _b64(value) if value else ""

        out.setdefault(key, _unquote(value))
    return out


def decode_event(raw: Dict[str, Any], base64_encoded: bool = False) -> LedgerEvent:
    if not isinstance(raw, dict) or not isinstance(raw.get("type"), str):
        raise DecodeError(f"Malformed event: {raw!r}")
    return LedgerEvent(
        type=raw["type"],
        attributes=map_event_attributes(raw.get("attributes") or [], base64_encoded),
    )


def block_events(block_results: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Raw block-level events of a `block_results` response, in log order.

    CometBFT >= 0.38 reports them as finalize_block_events; older nodes split
    them into begin/end block events.
    """
    result = block_results.get("result", block_results) if block_results else {}
    if not isinstance(result, dict):
        return []

    finalize = result.get("finalize_block_events")
    if finalize is not None:
        return list(finalize)

    out: List[Dict[str, Any]] = []
    out.extend(result.get("begin_block_events") or [])
    out.extend(result.get("end_block_events") or [])
    return out


def decode_block_events(
    block_results: Dict[str, Any],
    base64_encoded: bool = False,
) -> List[LedgerEvent]:
    """Decode every event, skipping (and logging) the ones that are malformed."""
    decoded: List[LedgerEvent] = []
    for raw in block_events(block_results):
        try:
            decoded.append(decode_event(raw, base64_encoded))
        except DecodeError as e:
            log.warning("Skipping undecodable event: %s", e)
    return decoded


def raffle_events(events: Iterable[LedgerEvent]) -> List[LedgerEvent]:
    return [ev for ev in events if RaffleEventKind.of(ev.type) is not None]
