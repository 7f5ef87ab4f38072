#!/usr/bin/env python3
"""
Command-line entry point for the SnapBet job runner.

Usage:
    snapbet-jobs expire --dry-run --verbose
    snapbet-jobs settle-games --limit 10
    snapbet-jobs reset-bankrolls --force
    snapbet-jobs settle-bets --game-id abc123 --home-score 112 --away-score 108
    snapbet-jobs all --dry-run
    snapbet-jobs schedule

Exit code is 0 when every executed job succeeded, 1 otherwise.
"""
import argparse
import asyncio
import json
import sys
from typing import List, Optional

from snapbet_jobs.core.config import Settings, settings as default_settings
from snapbet_jobs.core.database import SessionFactory
from snapbet_jobs.core.exceptions import SettlementError
from snapbet_jobs.core.logging import configure_logging
from snapbet_jobs.core.scheduler import JobScheduler
from snapbet_jobs.jobs import build_jobs
from snapbet_jobs.jobs.base import JobOptions, JobResult
from snapbet_jobs.services.betting.settlement_service import SettlementService

# subcommand -> job name
COMMANDS = {
    "expire": "content-expiration",
    "game-updates": "game-updates",
    "settle-games": "game-settlement",
    "odds-updates": "odds-updates",
    "badges": "badge-calculation",
    "stats": "stats-rollup",
    "notifications": "notifications",
    "reset-bankrolls": "bankroll-reset",
    "cleanup": "cleanup",
    "media-cleanup": "media-cleanup",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="snapbet-jobs",
        description="Run SnapBet background jobs"
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--dry-run", action="store_true", help="Preview changes without applying")
    common.add_argument("--verbose", "-v", action="store_true", help="Log per-item detail")
    common.add_argument("--limit", type=int, default=None, metavar="N", help="Process at most N items")

    subparsers = parser.add_subparsers(dest="command", required=True)

    for command, job_name in COMMANDS.items():
        sub = subparsers.add_parser(command, parents=[common], help=f"Run the {job_name} job")
        if command == "reset-bankrolls":
            sub.add_argument("--force", action="store_true", help="Skip the confirmation prompt")

    settle = subparsers.add_parser("settle-bets", parents=[common], help="Record a final score and settle a game")
    settle.add_argument("--game-id", required=True, help="Game to settle")
    settle.add_argument("--home-score", type=int, required=True)
    settle.add_argument("--away-score", type=int, required=True)
    settle.add_argument("--force", action="store_true", help="Overwrite an existing final score")

    subparsers.add_parser("all", parents=[common], help="Run every job except bankroll reset")
    subparsers.add_parser("schedule", help="Show the job schedule")

    return parser


def print_result(result: JobResult, verbose: bool = False) -> None:
    icon = "✅" if result.success else "❌"
    mode = " [DRY RUN]" if result.dry_run else ""
    print(f"{icon} {result.job_name}{mode}: {result.message}")
    print(f"   Affected: {result.affected} | Duration: {result.duration_ms}ms")
    if verbose and result.details:
        print(json.dumps(result.details, indent=2, default=str))


def print_schedule(scheduler: JobScheduler) -> None:
    print("=" * 60)
    print("SNAPBET JOB SCHEDULE")
    print("=" * 60)
    for job in scheduler.jobs:
        print(f"📋 {job.name:<20} {job.schedule:<16} {job.config.description}")
    print("=" * 60)


def confirm_bankroll_reset() -> bool:
    print("⚠️  This will reset EVERY bankroll to its weekly starting balance.")
    answer = input("Type 'yes' to continue: ")
    return answer.strip().lower() == "yes"


async def settle_bets(session_factory: SessionFactory, args) -> bool:
    db = session_factory()
    try:
        service = SettlementService(db)
        if args.dry_run:
            preview = service.preview_settlement(args.game_id, final_score=(args.home_score, args.away_score))
            print(f"✅ [DRY RUN] Would settle {preview.total_bets} bets on game {args.game_id}")
            print(f"   {preview.wins}W / {preview.losses}L / {preview.pushes}P, "
                  f"total winnings {preview.total_winnings}")
            if preview.errors:
                print(f"   ⚠️ {len(preview.errors)} bets could not be resolved")
            if args.verbose:
                print(json.dumps(preview.to_dict(), indent=2))
            db.rollback()
            return True

        result = await service.settle_manually(
            args.game_id, args.home_score, args.away_score, force=args.force
        )
        icon = "✅" if not result.errors else "❌"
        print(f"{icon} Settled {result.settled_count} bets on game {args.game_id}")
        print(f"   {result.wins}W / {result.losses}L / {result.pushes}P, paid out {result.total_paid_out}")
        for error in result.errors:
            print(f"   ⚠️ {error}")
        if args.verbose:
            print(json.dumps(result.to_dict(), indent=2))
        return not result.errors
    except SettlementError as e:
        db.rollback()
        print(f"❌ {e}")
        return False
    finally:
        db.close()


async def run_command(args, session_factory: SessionFactory, app_settings: Settings) -> bool:
    scheduler = JobScheduler(build_jobs(session_factory, app_settings), timezone=app_settings.SCHEDULER_TIMEZONE)

    if args.command == "schedule":
        print_schedule(scheduler)
        return True

    if args.command == "settle-bets":
        return await settle_bets(session_factory, args)

    options = JobOptions(
        dry_run=args.dry_run,
        verbose=args.verbose,
        limit=args.limit,
        force=getattr(args, "force", False),
    )

    if args.command == "reset-bankrolls" and not options.dry_run and not options.force:
        if not confirm_bankroll_reset():
            print("❌ Bankroll reset cancelled")
            return False
        options = options.model_copy(update={"force": True})

    if args.command == "all":
        results = await scheduler.run_once(options=options, include_destructive=False)
    else:
        results = await scheduler.run_once(COMMANDS[args.command], options)

    for result in results:
        print_result(result, verbose=args.verbose)

    if len(results) > 1:
        failed = [result.job_name for result in results if not result.success]
        print()
        print(f"📊 {len(results) - len(failed)}/{len(results)} jobs succeeded")
        if failed:
            print(f"   Failed: {', '.join(failed)}")

    return all(result.success for result in results)


def main(
    argv: Optional[List[str]] = None,
    session_factory: Optional[SessionFactory] = None,
    app_settings: Optional[Settings] = None,
) -> int:
    args = build_parser().parse_args(argv)
    app_settings = app_settings or default_settings

    configure_logging(app_settings.LOG_LEVEL, json_output=False)

    missing = app_settings.missing_required()
    if missing:
        print(f"❌ Missing required settings: {', '.join(missing)}")
        return 1

    limit = getattr(args, "limit", None)
    if limit is not None and limit < 1:
        print("❌ --limit must be a positive integer")
        return 1

    if session_factory is None:
        from snapbet_jobs.core.database import SessionLocal
        session_factory = SessionLocal

    try:
        ok = asyncio.run(run_command(args, session_factory, app_settings))
    except KeyboardInterrupt:
        print("🛑 Interrupted")
        return 1

    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
