#!/usr/bin/env python3
"""
LeaseDesk -- admin command line.

Usage:
  python main.py serve [--host 127.0.0.1] [--port 8000] [--reload]
  python main.py create-org "Acme QA"
  python main.py list-orgs
  python main.py leases --org 1
  python main.py delete-org 3
  python main.py delete-user bob@acme.io
  python main.py purge-sessions

Environment variables (see core/config.py):
  DATABASE_URL  SQLAlchemy URL of the LeaseDesk database.
  SECRET_KEY    Required unless DEBUG=true.
"""

import argparse
import sys
from datetime import datetime, timezone

from auth.store import AccountStore
from core.errors import ConflictError
from vault.store import TestUserStore, held_by


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _cmd_create_org(args: argparse.Namespace) -> int:
    name = args.name.strip()
    if not name:
        print("  [!] Organization name is required.")
        return 1
    store = AccountStore()
    try:
        org_id = store.create_organization(name)
    finally:
        store.close()
    print(f"  Created organization {org_id}: {name}")
    return 0


def _cmd_list_orgs(args: argparse.Namespace) -> int:
    store = AccountStore()
    try:
        orgs = store.list_organizations()
        if not orgs:
            print("  No organizations.")
            return 0
        for org in orgs:
            print(f"  {org.id:>5}  {org.name}  ({store.count_users(org.id)} members, created {org.created_at})")
    finally:
        store.close()
    return 0


def _cmd_leases(args: argparse.Namespace) -> int:
    """Print who holds what in one organization, oldest lease first."""
    accounts = AccountStore()
    vault = TestUserStore()
    try:
        if accounts.get_organization(args.org) is None:
            print(f"  [!] Organization {args.org} not found.")
            return 1
        held = [r for r in vault.list_test_users(args.org) if r.is_checked_out]
        if not held:
            print("  Nothing is checked out.")
            return 0
        holders = accounts.get_users_by_ids({r.checked_out_by for r in held})
        now = datetime.now(timezone.utc)
        for record in sorted(held, key=lambda r: r.checked_out_at or ""):
            holder = holders.get(record.checked_out_by)
            age = now - datetime.fromisoformat(record.checked_out_at)
            print(
                f"  {record.id:>5}  {record.first_name} {record.last_name} <{record.email}>"
                f"  held by {holder.email if holder else record.checked_out_by}"
                f"  for {age.days}d {age.seconds // 3600}h"
            )
    finally:
        vault.close()
        accounts.close()
    return 0


def _cmd_delete_org(args: argparse.Namespace) -> int:
    """Delete an empty organization. Refuses while members or records remain."""
    accounts = AccountStore()
    vault = TestUserStore()
    try:
        if accounts.count_users(args.org_id) or vault.count_test_users(args.org_id):
            print(f"  [!] Organization {args.org_id} still has members or test users.")
            return 1
        if not accounts.delete_organization(args.org_id):
            print(f"  [!] Organization {args.org_id} not found.")
            return 1
    finally:
        vault.close()
        accounts.close()
    print(f"  Deleted organization {args.org_id}.")
    return 0


def _cmd_delete_user(args: argparse.Namespace) -> int:
    """Delete an account and its sessions. Refuses while it holds a lease.

    The lease check runs in the delete's own write transaction, so a
    checkout cannot land between the check and the delete.
    """
    accounts = AccountStore()
    # Opened for its schema: held_by needs the test_users table to exist.
    vault = TestUserStore()
    try:
        user = accounts.get_user_by_email(args.email)
        if user is None:
            print(f"  [!] No account for {args.email}.")
            return 1

        def _holds_nothing(conn) -> None:
            held = held_by(conn, user.id)
            if held:
                raise ConflictError(detail=", ".join(str(r.id) for r in held))

        try:
            accounts.delete_user(user.id, precondition=_holds_nothing)
        except ConflictError as exc:
            print(f"  [!] {args.email} still holds test user(s) {exc.detail}. Check them in first.")
            return 1
    finally:
        vault.close()
        accounts.close()
    print(f"  Deleted account {args.email}.")
    return 0


def _cmd_purge_sessions(args: argparse.Namespace) -> int:
    store = AccountStore()
    try:
        removed = store.purge_expired_sessions()
    finally:
        store.close()
    print(f"  Removed {removed} expired session(s).")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="leasedesk",
        description="Administer the LeaseDesk test-user checkout service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --reload
  python main.py create-org "Acme QA"
  python main.py leases --org 1
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    serve.set_defaults(func=_cmd_serve)

    create_org = sub.add_parser("create-org", help="Create an organization")
    create_org.add_argument("name", help="Organization name")
    create_org.set_defaults(func=_cmd_create_org)

    list_orgs = sub.add_parser("list-orgs", help="List organizations with member counts")
    list_orgs.set_defaults(func=_cmd_list_orgs)

    leases = sub.add_parser("leases", help="Show checked-out test users of an organization")
    leases.add_argument("--org", type=int, required=True, metavar="ID", help="Organization ID")
    leases.set_defaults(func=_cmd_leases)

    delete_org = sub.add_parser("delete-org", help="Delete an organization with no members or test users")
    delete_org.add_argument("org_id", type=int, metavar="ID")
    delete_org.set_defaults(func=_cmd_delete_org)

    delete_user = sub.add_parser("delete-user", help="Delete an account that holds no leases")
    delete_user.add_argument("email")
    delete_user.set_defaults(func=_cmd_delete_user)

    purge = sub.add_parser("purge-sessions", help="Delete expired sessions")
    purge.set_defaults(func=_cmd_purge_sessions)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
