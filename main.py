#!/usr/bin/env python3
"""
imagegate admin -- Operator commands against the account store.

Usage:
  python main.py show alice@example.com
  python main.py set-tier alice@example.com premium
  python main.py deactivate alice@example.com
  python main.py reactivate alice@example.com
  python main.py --db sqlite:///data/imagegate.db show alice@example.com

Reads DATABASE_URL from the environment (or .env) unless --db is given.
Tier changes are not available over HTTP; this is the only way to upgrade an
account.
"""

import argparse
import sys
from typing import Optional

from auth.models import TIERS, Account
from auth.store import CredentialStore
from catalog.quota import TIER_LIMITS
from core.config import get_settings


def _print_account(account: Account) -> None:
    limit = TIER_LIMITS.get(account.tier, TIER_LIMITS["free"])
    print(f"  id          {account.id}")
    print(f"  email       {account.email}")
    print(f"  name        {account.name}")
    print(f"  tier        {account.tier} ({account.artifact_count}/{limit} images)")
    print(f"  active      {'yes' if account.is_active else 'no'}")
    print(f"  created     {account.created_at}")
    print(f"  last login  {account.last_login or 'never'}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="imagegate-admin",
        description="Inspect and manage imagegate accounts.",
    )
    parser.add_argument(
        "--db",
        metavar="URL",
        default=None,
        help="SQLAlchemy database URL (default: DATABASE_URL from settings)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    show = sub.add_parser("show", help="Print an account summary")
    show.add_argument("email")

    set_tier = sub.add_parser("set-tier", help="Assign a subscription tier")
    set_tier.add_argument("email")
    set_tier.add_argument("tier", choices=TIERS)

    for name, text in (("deactivate", "Soft-delete an account"), ("reactivate", "Restore a deactivated account")):
        cmd = sub.add_parser(name, help=text)
        cmd.add_argument("email")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    db_url = args.db or get_settings().database_url
    store = CredentialStore(db_url)
    try:
        account = store.find_by_email(args.email)
        if account is None:
            print(f"  [!] No account registered for '{args.email}'.")
            return 1

        if args.command == "set-tier":
            account = store.update_profile(account.id, tier=args.tier)
            print(f"  Tier set to {account.tier}.")
        elif args.command == "deactivate":
            account = store.set_active(account.id, False)
            print("  Account deactivated.")
        elif args.command == "reactivate":
            account = store.set_active(account.id, True)
            print("  Account reactivated.")

        _print_account(account)
        return 0
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
