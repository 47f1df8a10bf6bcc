from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from .coins import format_tokens, parse_amount, to_tokens
from .config import Settings
from .epochs import EpochInfo, format_time_remaining, raffle_end_time
from .errors import DecodeError, NetworkError, RaffleTrackerError
from .notifications import Notification, NotificationKind
from .presentation import Presentation, PresentationState
from .service import Contributions, open_contributions

log = logging.getLogger(__name__)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _settings(args: argparse.Namespace) -> Settings:
    return Settings.from_env(
        rpc_url_override=args.rpc_url,
        rest_url_override=args.rest_url,
        store_path_override=args.store,
        timeout_s=args.timeout,
    )


def _tokens(raw: object, decimals: int) -> str:
    return format_tokens(to_tokens(parse_amount(raw), decimals))


def _print_notification(n: Notification) -> None:
    if n.kind is NotificationKind.COMPLETED and n.record is not None:
        won = sum(1 for r in n.record.results if r.has_won)
        print(f"🔔 {n.denom}: contribution resolved in the background ({won} winning ticket(s)).")
    elif n.kind is NotificationKind.FAILED:
        print(f"⚠️  {n.denom}: {n.error}")
        print(f"   Run `raffle-tracker retry {n.denom}` to try again.")


def _win_line(view: Presentation, denom: str, decimals: int) -> str:
    amount = view.current_amount(decimals)
    if amount is None:
        # A win recorded without its payout amount.
        return f"🎉 Ticket #{view.cursor + 1}: YOU WON ({denom})"
    return f"🎉 Ticket #{view.cursor + 1}: YOU WON {format_tokens(amount)} {denom}"


async def _reveal(contributions: Contributions, denom: str, decimals: int, poll_s: float) -> int:
    """Print tickets in order as their outcomes arrive, then the summary."""
    view = contributions.presentation(denom)
    while True:
        state = view.state
        if state is PresentationState.IDLE:
            print(f"No pending contribution for {denom}.")
            return 1
        if state is PresentationState.CLOSED:
            print(f"{denom}: presentation closed; resolution continues in the background.")
            return 0

        if state is PresentationState.SHOWING_WIN:
            print(_win_line(view, denom, decimals))
            view.advance()
        elif state is PresentationState.SHOWING_LOSE:
            print(f"🔥 Ticket #{view.cursor + 1}: not this time")
            view.advance()
        elif state is PresentationState.WAITING:
            if not contributions.resolver.is_running(denom):
                if view.state is not PresentationState.WAITING:
                    continue
                error = contributions.resolver.last_error(denom)
                print(f"⚠️  {error or denom + ': resolution is not running.'}")
                return 2
            await asyncio.sleep(poll_s)
        else:
            summary = view.summary()
            print("----------------------------------------")
            print(f"Winning tickets : {summary.winners}")
            print(f"Losing tickets  : {summary.losers}")
            if summary.total_won > 0:
                print(f"Total won       : {_tokens(summary.total_won, decimals)} {denom}")
            print("----------------------------------------")
            await view.close()
            return 0


def _ends(end_at: object, hour_epoch: Optional[EpochInfo]) -> str:
    if hour_epoch is None:
        return f"epoch {end_at}"
    try:
        ends = raffle_end_time(end_at, hour_epoch).strftime("%Y-%m-%d %H:%M UTC")
        left = format_time_remaining(end_at, hour_epoch.current_epoch)
        return f"{ends} ({left if left == 'ending' else 'in ' + left})"
    except DecodeError:
        return f"epoch {end_at}"


async def _raffles(args: argparse.Namespace) -> int:
    async with open_contributions(_settings(args)) as contributions:
        raffles = await contributions.queries.raffles()
        try:
            hour_epoch = await contributions.queries.current_epoch()
        except (NetworkError, DecodeError) as e:
            log.warning("Epoch info unavailable, showing raw end epochs: %s", e)
            hour_epoch = None
    if not raffles:
        print("No active raffles.")
        return 0
    for raffle in raffles:
        denom = raffle.get("denom", "?")
        print(f"{denom}")
        print(f"  Pot          : {_tokens(raffle.get('pot', 0), args.decimals)}")
        print(f"  Ticket price : {_tokens(raffle.get('ticket_price', 0), args.decimals)}")
        print(f"  Chances      : {raffle.get('chances')}")
        print(f"  Ends         : {_ends(raffle.get('end_at'), hour_epoch)}")
    return 0


async def _winners(args: argparse.Namespace) -> int:
    async with open_contributions(_settings(args)) as contributions:
        winners = await contributions.queries.raffle_winners(args.denom)
    if not winners:
        print(f"No winners yet for {args.denom}.")
    for w in winners:
        print(f"{w.get('winner')}  {_tokens(w.get('amount', 0), args.decimals)}  (index {w.get('index')})")
    return 0


async def _burned(args: argparse.Namespace) -> int:
    async with open_contributions(_settings(args)) as contributions:
        totals = await contributions.queries.burned_totals(args.denom)
        try:
            next_burn = await contributions.queries.next_burn_time()
        except (NetworkError, DecodeError) as e:
            log.warning("Next burn time unavailable: %s", e)
            next_burn = None
    for denom in sorted(totals):
        print(f"{denom:<40} {_tokens(totals[denom], args.decimals)}")
    if next_burn is not None:
        print(f"🔥 Next burn: {next_burn.strftime('%Y-%m-%d %H:%M UTC')}")
    return 0


async def _track(args: argparse.Namespace) -> int:
    settings = _settings(args)
    async with open_contributions(settings) as contributions:
        contributions.notifier.subscribe(_print_notification)
        height = args.height
        if height is None:
            height = await contributions.queries.ledger.get_tx_height(args.tx)
        await contributions.track(args.denom, args.address, args.tickets, height, args.tx or "")
        print(f"Tracking {args.tickets} ticket(s) for {args.denom} at height {height}.")
        if args.no_wait:
            return 0
        print("Blockchain is deciding...")
        return await _reveal(contributions, args.denom, args.decimals, settings.poll_interval_s)


async def _watch(args: argparse.Namespace) -> int:
    settings = _settings(args)
    async with open_contributions(settings) as contributions:
        contributions.notifier.subscribe(_print_notification)
        contributions.resume()
        if args.denom:
            return await _reveal(contributions, args.denom, args.decimals, settings.poll_interval_s)
        await contributions.resolver.wait_all()
    return 0


async def _retry(args: argparse.Namespace) -> int:
    settings = _settings(args)
    async with open_contributions(settings) as contributions:
        contributions.notifier.subscribe(_print_notification)
        contributions.retry(args.denom)
        return await _reveal(contributions, args.denom, args.decimals, settings.poll_interval_s)


async def _pending(args: argparse.Namespace) -> int:
    async with open_contributions(_settings(args)) as contributions:
        records = contributions.store.all()
    if not records:
        print("No pending contributions.")
    for r in records:
        created = datetime.fromtimestamp(r.created_at, timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        status = "complete" if r.is_complete else "pending"
        closed = ", closed" if r.was_closed else ""
        print(
            f"{r.denom:<30} {len(r.results)}/{r.ticket_count} {status}{closed}  "
            f"height={r.submission_height}  created={created} UTC"
        )
    return 0


async def _close(args: argparse.Namespace) -> int:
    async with open_contributions(_settings(args)) as contributions:
        await contributions.presentation(args.denom).close()
    return 0


async def _remove(args: argparse.Namespace) -> int:
    async with open_contributions(_settings(args)) as contributions:
        await contributions.remove_pending_contribution(args.denom)
    print(f"Removed {args.denom}.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="raffle-tracker",
        description="Track burner raffle contributions until every ticket is decided.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--rpc-url", default=None, help="Override CometBFT RPC URL (else use env).")
    p.add_argument("--rest-url", default=None, help="Override REST/LCD URL (else use env).")
    p.add_argument("--store", default=None, help="Pending contributions file (else use env); one tracker process per file.")
    p.add_argument("--timeout", type=float, default=30.0, help="HTTP timeout seconds.")
    p.add_argument("--decimals", type=int, default=6, help="Display decimals of the denom.")

    sub = p.add_subparsers(dest="cmd", required=True)

    r = sub.add_parser("raffles", help="List active raffles.")
    r.set_defaults(func=_raffles)

    w = sub.add_parser("winners", help="List the latest winners of a raffle.")
    w.add_argument("denom")
    w.set_defaults(func=_winners)

    b = sub.add_parser("burned", help="Total burned coins per denom.")
    b.add_argument("--denom", default=None, help="Only this denom.")
    b.set_defaults(func=_burned)

    t = sub.add_parser("track", help="Track an accepted contribution and reveal its tickets.")
    t.add_argument("--denom", required=True)
    t.add_argument("--address", required=True, help="Participant address.")
    t.add_argument("--tickets", required=True, type=int, help="Tickets in the contribution.")
    src = t.add_mutually_exclusive_group(required=True)
    src.add_argument("--height", type=int, help="Height the contribution tx was included at.")
    src.add_argument("--tx", help="Contribution tx hash; its height is looked up.")
    t.add_argument("--no-wait", action="store_true", help="Record only, do not reveal.")
    t.set_defaults(func=_track)

    wa = sub.add_parser("watch", help="Resume resolution of every pending contribution.")
    wa.add_argument("--denom", default=None, help="Reveal this denom's tickets.")
    wa.set_defaults(func=_watch)

    rt = sub.add_parser("retry", help="Retry a contribution whose resolution gave up.")
    rt.add_argument("denom")
    rt.set_defaults(func=_retry)

    pe = sub.add_parser("pending", help="Show stored contributions.")
    pe.set_defaults(func=_pending)

    c = sub.add_parser("close", help="Close a contribution (removed if complete).")
    c.add_argument("denom")
    c.set_defaults(func=_close)

    rm = sub.add_parser("remove", help="Forget a contribution and stop resolving it.")
    rm.add_argument("denom")
    rm.set_defaults(func=_remove)

    return p


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.verbose)
    try:
        code = asyncio.run(args.func(args))
    except RaffleTrackerError as e:
        raise SystemExit(f"error: {e}")
    raise SystemExit(code)
