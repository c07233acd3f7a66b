#!/usr/bin/env python3
"""CLI tool for CRM operator tasks.

Usage:
    # Store the default CRM settings document (no-op if one exists)
    uv run python -m contractor_crm.cli init-settings

    # Print the effective CRM settings
    uv run python -m contractor_crm.cli show-settings

    # List recent leads
    uv run python -m contractor_crm.cli list-leads --status new --limit 20

    # Check whether an email is on the admin allowlist
    uv run python -m contractor_crm.cli check-admin owner@example.com
"""

import argparse
import asyncio
import sys

from sqlalchemy.ext.asyncio import AsyncSession

from contractor_crm.core.auth import is_allowed_admin
from contractor_crm.core.database import get_session_factory
from contractor_crm.services.crm_settings_service import create_crm_settings_if_missing, get_crm_settings
from contractor_crm.services.lead_service import LeadService


async def cmd_init_settings(args: argparse.Namespace, session: AsyncSession) -> int:
    """
    Create the CRM settings document from defaults.

    Args:
        args: Parsed command-line arguments
        session: Database session

    Returns:
        Exit code (0 for success)
    """
    crm_settings, created = await create_crm_settings_if_missing(session)
    if created:
        print("✅ Created CRM settings with defaults")
    else:
        print("CRM settings already exist; left unchanged")
    print(f"   Pipeline stages: {', '.join(stage.key for stage in crm_settings.pipeline_stages)}")
    print(f"   Deal statuses:   {', '.join(option.key for option in crm_settings.deal_statuses)}")
    return 0


async def cmd_show_settings(args: argparse.Namespace, session: AsyncSession) -> int:
    """Print the effective settings (stored or defaults)."""
    crm_settings = await get_crm_settings(session)
    print("Pipeline stages:")
    for stage in crm_settings.pipeline_stages:
        print(f"  {stage.key:<15} {stage.label:<20} {stage.color}")
    print("Deal statuses:")
    for option in crm_settings.deal_statuses:
        print(f"  {option.key:<15} {option.label:<20} {option.color}")
    print(f"Lead sources:    {', '.join(crm_settings.lead_sources)}")
    print(f"Service types:   {', '.join(crm_settings.service_types)}")
    print(f"Default priority: {crm_settings.default_priority.value}")
    print(f"Page size:       {crm_settings.leads_page_size}")
    return 0


async def cmd_list_leads(args: argparse.Namespace, session: AsyncSession) -> int:
    """
    List leads, newest first.

    Contact details are not printed; use the admin UI for those.

    Returns:
        Exit code (0 for success)
    """
    crm_settings = await get_crm_settings(session)
    page = await LeadService(session).list_leads(
        crm_settings,
        status_filter=args.status,
        limit=args.limit,
        offset=args.offset,
    )

    if not page.leads:
        print("No leads found")
        return 0

    print(f"Showing {len(page.leads)} of {page.total} lead(s):")
    print()
    for lead in page.leads:
        received = f"{lead.received_at:%Y-%m-%d %H:%M}"
        print(f"  {lead.id}  {received}  {lead.status:<12} {lead.origin.value:<18} {lead.full_name}")
    print()
    counts = ", ".join(f"{key}={count}" for key, count in page.status_counts.items())
    print(f"Status counts: {counts}")
    return 0


async def cmd_check_admin(args: argparse.Namespace, session: AsyncSession) -> int:
    """
    Report whether an email is on the ADMIN_EMAILS allowlist.

    Returns:
        Exit code (0 if allowed, 1 if not)
    """
    if is_allowed_admin(args.email):
        print(f"✅ {args.email} is an admin")
        return 0
    print(f"❌ {args.email} is not on the admin allowlist", file=sys.stderr)
    return 1


def main() -> int:
    """
    Main entry point for the CLI tool.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = argparse.ArgumentParser(
        description="Contractor CRM operator CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  uv run python -m contractor_crm.cli init-settings
  uv run python -m contractor_crm.cli list-leads --status quoted
  uv run python -m contractor_crm.cli check-admin owner@example.com
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser(
        "init-settings",
        help="Store the default CRM settings document",
        description="Create the CRM settings document from defaults unless one already exists.",
    )

    subparsers.add_parser(
        "show-settings",
        help="Print the effective CRM settings",
    )

    list_leads_parser = subparsers.add_parser(
        "list-leads",
        help="List leads, newest first",
    )
    list_leads_parser.add_argument("--status", type=str, default=None, help="Pipeline stage key (default: all)")
    list_leads_parser.add_argument("--limit", type=int, default=None, help="Maximum leads to show")
    list_leads_parser.add_argument("--offset", type=int, default=0, help="Number of leads to skip (default: 0)")

    check_admin_parser = subparsers.add_parser(
        "check-admin",
        help="Check an email against ADMIN_EMAILS",
    )
    check_admin_parser.add_argument("email", type=str, help="Email address to check")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    command_handlers = {
        "init-settings": cmd_init_settings,
        "show-settings": cmd_show_settings,
        "list-leads": cmd_list_leads,
        "check-admin": cmd_check_admin,
    }

    if handler := command_handlers.get(args.command):

        async def run_with_session() -> int:
            async with get_session_factory()() as session:
                try:
                    return await handler(args, session)
                except Exception as e:
                    print(f"❌ Unexpected error: {e}", file=sys.stderr)
                    return 1

        return asyncio.run(run_with_session())

    print(f"❌ Unknown command: {args.command}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
