"""Utility script to create tenant settings and default templates."""

from __future__ import annotations

import argparse
from datetime import time

from sqlalchemy.exc import SQLAlchemyError

from notifyq.application.use_cases.templates import seed_default_templates
from notifyq.application.use_cases.tenant_settings import update_tenant_settings
from notifyq.domain.errors import ValidationError
from notifyq.infrastructure.database import SessionLocal, initialize_database


def _parse_time(value: str) -> time:
    try:
        return time.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid time {value!r}, expected HH:MM") from exc


def parse_args() -> argparse.Namespace:
    """Parse command line arguments for tenant seeding."""

    parser = argparse.ArgumentParser(
        description="Create delivery settings and default templates for a tenant.",
    )
    parser.add_argument("tenant_id", help="Identifier of the tenant to seed")
    parser.add_argument("--timezone", default=None, help="IANA timezone of the tenant")
    parser.add_argument(
        "--quiet-start",
        type=_parse_time,
        default=None,
        help="Start of quiet hours (HH:MM, tenant timezone)",
    )
    parser.add_argument(
        "--quiet-end",
        type=_parse_time,
        default=None,
        help="End of quiet hours (HH:MM, tenant timezone)",
    )
    parser.add_argument("--messages-per-second", type=int, default=None)
    parser.add_argument("--daily-limit", type=int, default=None)
    parser.add_argument(
        "--system-templates",
        action="store_true",
        help="Also store the built-in templates as system-wide defaults",
    )
    return parser.parse_args()


def main() -> None:
    """Seed the tenant using the provided command line arguments."""

    args = parse_args()
    initialize_database()

    session = SessionLocal()
    try:
        quiet_enabled = None
        if args.quiet_start is not None and args.quiet_end is not None:
            quiet_enabled = True
        settings = update_tenant_settings(
            session,
            args.tenant_id,
            timezone=args.timezone,
            quiet_hours_enabled=quiet_enabled,
            quiet_hours_start=args.quiet_start,
            quiet_hours_end=args.quiet_end,
            messages_per_second=args.messages_per_second,
            daily_limit=args.daily_limit,
        )
        seeded = seed_default_templates(session, args.tenant_id)
        if args.system_templates:
            seeded += seed_default_templates(session, None)
    except ValidationError as exc:
        session.rollback()
        raise SystemExit(f"Could not seed tenant: {exc}") from exc
    except SQLAlchemyError as exc:
        session.rollback()
        raise SystemExit(f"Database error while seeding tenant: {exc}") from exc
    else:
        print(
            "Tenant seeded:\n"
            f"  Tenant: {settings.tenant_id}\n"
            f"  Timezone: {settings.timezone}\n"
            f"  Quiet hours: {settings.quiet_hours.start or '-'} - {settings.quiet_hours.end or '-'}\n"
            f"  Templates created: {len(seeded)}"
        )
    finally:
        session.close()


if __name__ == "__main__":
    main()
