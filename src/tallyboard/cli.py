"""Command-line entry point: print dashboard rollups and filtered account lists."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import sys
from contextlib import AsyncExitStack
from typing import Sequence

import structlog

from tallyboard.aggregation import DateRange
from tallyboard.auth import AuthenticationError, IdentityClient
from tallyboard.config import configure_logging
from tallyboard.filters import ALL, STATUS_FILTERS, TYPE_FILTERS, AccountCriteria, FilterResult
from tallyboard.seed import apply_seed, load_seed_file
from tallyboard.services import (
    AccountService,
    AccountView,
    AdminDashboard,
    DashboardService,
)
from tallyboard.services.forms import ValidationError
from tallyboard.store import EntityStore, FirestoreStore, InMemoryStore, StoreError

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tallyboard",
        description="Tallyboard account and entry rollups",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --store memory --seed scripts/demo_seed.yaml dashboard --range week
  %(prog)s --email admin@example.com accounts --search john --status active
        """,
    )
    parser.add_argument(
        "--store",
        choices=["firestore", "memory"],
        default="firestore",
        help="Entity store backend (default: firestore)",
    )
    parser.add_argument("--seed", metavar="FILE", help="YAML seed file to write first")
    parser.add_argument(
        "--email",
        help="Sign in to the identity service as this user (password is prompted)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    dashboard = commands.add_parser("dashboard", help="Admin dashboard totals")
    dashboard.add_argument(
        "--range",
        dest="range_name",
        choices=[r.value for r in DateRange],
        default=DateRange.TODAY.value,
        help="Entry window (default: today)",
    )

    accounts = commands.add_parser("accounts", help="List accounts with filters")
    accounts.add_argument("--search", default="", help="Match account, agent or player name")
    accounts.add_argument(
        "--status",
        choices=[ALL, *sorted(STATUS_FILTERS), *sorted(TYPE_FILTERS)],
        default=ALL,
        help="Status or account type (default: all)",
    )
    accounts.add_argument("--agent", default=ALL, help="Agent id (default: all)")
    return parser


def format_dashboard(dashboard: AdminDashboard) -> str:
    summary = dashboard.summary
    counts = dashboard.status_counts
    lines = [
        f"Dashboard ({dashboard.range_name.value}: {dashboard.start} to {dashboard.end})",
        f"  Agents:        {summary.total_agents}",
        f"  Accounts:      {summary.total_accounts} "
        f"(active {counts.active}, inactive {counts.inactive}, "
        f"unused {counts.unused}, locked {counts.locked})",
        f"  Players:       {summary.total_players}",
        f"  Transactions:  {summary.total_transactions}",
        f"  Total profit:  {summary.total_profit:,.2f}",
        f"  Avg profit:    {summary.average_profit:,.2f}",
        f"  Utilization:   {summary.utilization:.1f}%",
    ]
    if dashboard.agent_stats:
        lines.append("")
        lines.append("Agents:")
        for stats in sorted(dashboard.agent_stats, key=lambda s: s.total_profit, reverse=True):
            lines.append(
                f"  {stats.name:<24} accounts {stats.account_count:>3}  "
                f"profit {stats.total_profit:>12,.2f}  "
                f"commission {stats.commission_earned:>10,.2f} "
                f"(+{stats.flat_commission:,.2f} flat)"
            )
    if dashboard.player_stats:
        lines.append("")
        lines.append("Players:")
        for player in dashboard.player_stats:
            lines.append(
                f"  {player.name:<24} accounts {player.account_count:>3}  "
                f"entries {player.total_entries:>4}  profit {player.total_profit:>12,.2f}"
            )
    return "\n".join(lines)


def format_accounts(result: FilterResult[AccountView]) -> str:
    if not result.has_data:
        return "No accounts yet."
    if result.no_results:
        return "No accounts match the filters."
    lines = [f"{len(result.items)} of {result.source_count} accounts"]
    for view in result.items:
        account = view.account
        lines.append(
            f"  {account.display_name:<24} {account.account_type.value:<5} "
            f"{account.status.value:<8} agent {view.agent_name:<20} "
            f"player {view.player_name or '-'}"
        )
    return "\n".join(lines)


async def _run_command(args: argparse.Namespace, store: EntityStore) -> int:
    if args.command == "dashboard":
        dashboard = await DashboardService(store).admin_dashboard(args.range_name)
        if not dashboard.success or dashboard.value is None:
            print(f"Error: {dashboard.error_message}", file=sys.stderr)
            return 1
        print(format_dashboard(dashboard.value))
        return 0

    criteria = AccountCriteria(text=args.search, status=args.status, agent_id=args.agent)
    found = await AccountService(store).find_accounts(criteria)
    if not found.success or found.value is None:
        print(f"Error: {found.error_message}", file=sys.stderr)
        return 1
    print(format_accounts(found.value))
    return 0


async def main(argv: Sequence[str] | None = None) -> int:
    """Run the CLI and return the process exit code."""
    configure_logging()
    args = build_parser().parse_args(argv)

    async with AsyncExitStack() as stack:
        identity: IdentityClient | None = None
        store: EntityStore
        try:
            if args.store == "memory":
                store = InMemoryStore()
            else:
                identity = await stack.enter_async_context(IdentityClient())
                if args.email:
                    await identity.sign_in(args.email, getpass.getpass("Password: "))
                store = await stack.enter_async_context(FirestoreStore(tokens=identity))

            if args.seed:
                seed = load_seed_file(args.seed)
                await apply_seed(store, seed, identity=identity)

            return await _run_command(args, store)
        except (AuthenticationError, StoreError, ValidationError, ValueError, OSError) as e:
            logger.error("command_failed", command=args.command, error=str(e))
            print(f"Error: {e}", file=sys.stderr)
            return 1


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("interrupted")
        sys.exit(130)


if __name__ == "__main__":
    run()
