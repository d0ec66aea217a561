"""CLI for Site Risk Audit: bootstrap tenants and run analysis by hand."""

from __future__ import annotations

import argparse
import asyncio
import sys


async def cmd_init_db(args):
    """Create all tables."""
    from riskaudit.db.engine import create_all

    await create_all()
    print("Database initialized")


async def cmd_create_org(args):
    """Create an organization with an admin user and default settings."""
    from riskaudit.config import get_settings
    from riskaudit.db import crud
    from riskaudit.db.engine import async_session_factory, create_all

    await create_all()
    settings = get_settings()

    async with async_session_factory() as db:
        if await crud.get_user_by_email(db, args.admin_email):
            print(f"A user with email {args.admin_email} already exists")
            sys.exit(1)
        org = await crud.create_organization(db, args.name)
        admin = await crud.create_user(
            db, org.id, args.admin_email,
            first_name=args.first_name, last_name=args.last_name, role="admin",
        )
        await crud.get_or_create_organization_settings(db, org.id, settings.image_defaults)

    print(f"Organization created: {org.name} (id={org.id})")
    print(f"Admin user: {admin.email} (id={admin.id})")


async def cmd_add_company(args):
    """Register an affiliated company under an organization."""
    from riskaudit.db import crud
    from riskaudit.db.engine import async_session_factory

    async with async_session_factory() as db:
        if not await crud.get_organization(db, args.org_id):
            print(f"Organization {args.org_id} not found")
            sys.exit(1)
        company = await crud.create_affiliated_company(
            db, args.org_id, args.name, tax_id=args.tax_id or None, email=args.email or None,
        )
    print(f"Affiliated company created: {company.name} (id={company.id})")


async def cmd_analyze(args):
    """Run the orchestrator inline for an inspection's pending photos."""
    from riskaudit.analysis.analyzer import get_image_analyzer
    from riskaudit.analysis.orchestrator import AnalysisOrchestrator
    from riskaudit.config import get_settings
    from riskaudit.db import crud
    from riskaudit.db.engine import async_session_factory
    from riskaudit.logging_config import configure_logging
    from riskaudit.main import build_image_store
    from riskaudit.services.email import EmailNotifier

    settings = get_settings()
    configure_logging(settings.log_level)

    async with async_session_factory() as db:
        inspection = await crud.load_inspection_with_photos(db, args.inspection_id)
        if inspection is None:
            print(f"Inspection {args.inspection_id} not found")
            sys.exit(1)
        photo_ids = args.photo_id or [p.id for p in inspection.photos if not p.is_analyzed]
        owner_id = inspection.user_id

    if not photo_ids:
        print("No pending photos to analyze")
        return

    orchestrator = AnalysisOrchestrator(
        session_factory=async_session_factory,
        image_store=build_image_store(settings),
        analyzer=get_image_analyzer(settings),
        notifier=EmailNotifier(settings.email),
        settings=settings,
    )
    result = await orchestrator.analyze_inspection_photos(args.inspection_id, photo_ids, owner_id)
    print(
        f"Status: {result.status}  analyzed={result.analyzed} failed={result.failed} "
        f"skipped={result.skipped} notified={result.notified}"
    )


async def cmd_status(args):
    """Print the analysis status of an inspection."""
    from riskaudit.db.engine import async_session_factory
    from riskaudit.errors import NotFoundError
    from riskaudit.services import inspection_service

    async with async_session_factory() as db:
        try:
            status = await inspection_service.get_analysis_status(db, args.inspection_id)
        except NotFoundError:
            print(f"Inspection {args.inspection_id} not found")
            sys.exit(1)

    print(f"Inspection {status.inspection_id}: {status.status}")
    print(f"  photos: {status.total_photos} total, {status.analyzed_photos} analyzed, {status.pending_photos} pending")
    print(f"  started: {status.started_at}")
    if status.completed_at:
        print(f"  completed: {status.completed_at}")


def main():
    parser = argparse.ArgumentParser(description="Site Risk Audit CLI")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("init-db", help="Create database tables")

    co = subparsers.add_parser("create-org", help="Create an organization with an admin user")
    co.add_argument("name", help="Organization name")
    co.add_argument("--admin-email", required=True, help="Admin email")
    co.add_argument("--first-name", default="", help="Admin first name")
    co.add_argument("--last-name", default="", help="Admin last name")

    ac = subparsers.add_parser("add-company", help="Add an affiliated company")
    ac.add_argument("org_id", help="Organization id")
    ac.add_argument("name", help="Company name")
    ac.add_argument("--tax-id", default="", help="Tax id")
    ac.add_argument("--email", default="", help="Contact email")

    an = subparsers.add_parser("analyze", help="Analyze pending photos of an inspection now")
    an.add_argument("inspection_id")
    an.add_argument("--photo-id", action="append", default=[], help="Photo id (repeatable; default: all pending)")

    st = subparsers.add_parser("status", help="Show inspection analysis status")
    st.add_argument("inspection_id")

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "init-db": cmd_init_db,
        "create-org": cmd_create_org,
        "add-company": cmd_add_company,
        "analyze": cmd_analyze,
        "status": cmd_status,
    }
    asyncio.run(commands[args.command](args))


if __name__ == "__main__":
    main()
