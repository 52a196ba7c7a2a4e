"""Survivor pool administration from the command line.

Usage:
    python -m tools.survivor_admin show <user_id>
    python -m tools.survivor_admin recompute [--through-week N] [--concurrency 8]
    python -m tools.survivor_admin audit [--through-week N] [--mismatches-only]
    python -m tools.survivor_admin override <user_id> --alive --admin <admin_id> [--reason TEXT]
    python -m tools.survivor_admin override <user_id> --eliminated-week N --admin <admin_id> [--reason TEXT]
    python -m tools.survivor_admin clear-override <user_id> --admin <admin_id>
    python -m tools.survivor_admin eliminate <user_id> --week N --admin <admin_id> [--reason TEXT]
    python -m tools.survivor_admin remove <user_id> --admin <admin_id>
    python -m tools.survivor_admin import-legacy <user_id> [<user_id> ...]
"""

import argparse
import asyncio
import logging
import os
import sys

from fastapi import HTTPException

sys.path.insert(0, "backend")

if "MONGO_URI" not in os.environ:
    os.environ["MONGO_URI"] = "mongodb://localhost:27017"

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-7s %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger("survivor_admin")


def _print_status(view) -> None:
    stored, computed = view.stored, view.computed
    print(f"{view.display_name} ({view.user_id})  week={view.current_week}  survivor={'yes' if view.in_survivor else 'no'}")
    print(f"  stored:   alive={stored['alive']} week={stored['elimination_week']} reason={stored['elimination_reason']}"
          f" picks={stored['total_picks']} override={'yes' if view.manual_override else 'no'}")
    print(f"  computed: alive={computed['alive']} week={computed['elimination_week']} reason={computed['elimination_reason']}"
          f" resolved_through={computed['resolved_through']} pending={computed['pending_weeks']}")
    for verdict in computed["weeks"]:
        outcome = verdict["outcome"].value if verdict["outcome"] else "-"
        print(f"    week {verdict['week']:>2}: {verdict['team'] or 'no pick':<24} {outcome:<12} {verdict['note'] or ''}")
    print("  MATCH" if view.matches else "  MISMATCH")


def _print_audit(report, mismatches_only: bool) -> None:
    for row in report.rows:
        if mismatches_only and not row.mismatch:
            continue
        flag = "MISMATCH" if row.mismatch else "ok"
        override = " [override]" if row.manual_override else ""
        print(f"{row.display_name:<28} stored={row.stored_alive:>2} computed={row.computed_alive:>2} "
              f"{row.category:<22} {flag}{override}  {', '.join(row.pick_history)}")
    print(f"\nSummary through week {report.through_week}: {report.summary}")
    if report.invalid_members:
        print(f"Invalid member records: {', '.join(report.invalid_members)}")


async def run(args: argparse.Namespace) -> int:
    import nerdfootball.database as _db
    from nerdfootball.services import audit_service, survivor_service
    from nerdfootball.workers.survivor_resolver import recompute_all

    await _db.connect_db()
    try:
        if args.command == "show":
            _print_status(await survivor_service.get_status_view(args.user_id))
        elif args.command == "recompute":
            report = await recompute_all(args.through_week, concurrency=args.concurrency)
            print(report.model_dump_json(indent=2))
            return 0 if report.ok else 2
        elif args.command == "audit":
            report = await audit_service.build_verification_report(args.through_week)
            _print_audit(report, args.mismatches_only)
        elif args.command == "override":
            if not args.alive and args.eliminated_week is None:
                log.error("Pass --alive or --eliminated-week")
                return 1
            record = await survivor_service.set_override(
                args.user_id,
                alive=args.alive,
                elimination_week=args.eliminated_week,
                reason=args.reason,
                admin_id=args.admin,
            )
            log.info("Override set: alive=%d week=%s", record.alive, record.elimination_week)
        elif args.command == "clear-override":
            outcome = await survivor_service.clear_override(args.user_id, args.admin)
            log.info("Override cleared: action=%s written=%s", outcome.action, outcome.written)
        elif args.command == "eliminate":
            record = await survivor_service.force_eliminate(args.user_id, args.week, args.admin, args.reason)
            log.info("Eliminated: week=%s reason=%s", record.elimination_week, record.elimination_reason)
        elif args.command == "remove":
            await survivor_service.remove_from_survivor(args.user_id, args.admin)
            log.info("Removed %s from survivor", args.user_id)
        elif args.command == "import-legacy":
            failed = 0
            for user_id in args.user_ids:
                try:
                    counts = await survivor_service.import_legacy_picks(user_id)
                    log.info("%s: %s", user_id, counts)
                except HTTPException as exc:
                    failed += 1
                    log.error("%s: %s", user_id, exc.detail)
            return 2 if failed else 0
    except HTTPException as exc:
        log.error("%s", exc.detail)
        return 1
    finally:
        await _db.close_db()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Survivor pool administration")
    sub = parser.add_subparsers(dest="command", required=True)

    show = sub.add_parser("show", help="Stored vs computed status for one member")
    show.add_argument("user_id")

    recompute = sub.add_parser("recompute", help="Recompute and persist status for all members")
    recompute.add_argument("--through-week", type=int, default=None)
    recompute.add_argument("--concurrency", type=int, default=None)

    audit = sub.add_parser("audit", help="Compare stored and computed status for all members")
    audit.add_argument("--through-week", type=int, default=None)
    audit.add_argument("--mismatches-only", action="store_true")

    override = sub.add_parser("override", help="Force a status and protect it from recomputes")
    override.add_argument("user_id")
    target = override.add_mutually_exclusive_group()
    target.add_argument("--alive", action="store_true")
    target.add_argument("--eliminated-week", type=int, default=None)
    override.add_argument("--reason", default=None)
    override.add_argument("--admin", required=True)

    clear = sub.add_parser("clear-override", help="Drop the override and recompute")
    clear.add_argument("user_id")
    clear.add_argument("--admin", required=True)

    eliminate = sub.add_parser("eliminate", help="Force-eliminate a member (sets the override)")
    eliminate.add_argument("user_id")
    eliminate.add_argument("--week", type=int, required=True)
    eliminate.add_argument("--reason", default=None)
    eliminate.add_argument("--admin", required=True)

    remove = sub.add_parser("remove", help="Remove a member from survivor participation")
    remove.add_argument("user_id")
    remove.add_argument("--admin", required=True)

    legacy = sub.add_parser("import-legacy", help="Fold legacy survivor_picks documents into member records")
    legacy.add_argument("user_ids", nargs="+")

    args = parser.parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
