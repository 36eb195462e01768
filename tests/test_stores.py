"""
tests/test_stores.py -- Unit tests for auth/store.py and vault/store.py.

Covers:
  - Organization create/get/list/delete
  - Unique email enforced by the database (DuplicateEmail)
  - Account lookups, batch lookup for holder embedding, org-scoped listing
  - delete_user removes the account's sessions with it, and a failing
    precondition rolls the whole delete back
  - Test-user records: always created AVAILABLE, org-scoped newest-first
    listing, list_held_by and held_by on a caller connection, counts
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from auth.models import SessionRecord
from auth.store import AccountStore
from conftest import make_account, make_record
from core.errors import ConflictError, DuplicateEmail
from core.models import Principal
from vault.leases import LeaseManager
from vault.models import TestUser
from vault.store import TestUserStore, held_by


class TestAccountStore:
    def test_ping(self, account_store: AccountStore) -> None:
        assert account_store.ping() is True

    def test_organizations(self, account_store: AccountStore) -> None:
        first = account_store.create_organization("Acme QA")
        second = account_store.create_organization("Globex QA")

        assert account_store.get_organization(first).name == "Acme QA"
        assert account_store.get_organization(999) is None
        assert {o.id for o in account_store.list_organizations()} == {first, second}

        assert account_store.delete_organization(second) is True
        assert account_store.delete_organization(second) is False
        assert [o.id for o in account_store.list_organizations()] == [first]

    def test_duplicate_email(self, account_store: AccountStore) -> None:
        org_a = account_store.create_organization("Acme QA")
        org_b = account_store.create_organization("Globex QA")
        make_account(account_store, "user1@acme.io", org_a)

        # Unique across organizations, not per organization.
        with pytest.raises(DuplicateEmail):
            make_account(account_store, "user1@acme.io", org_b)
        assert account_store.count_users(org_b) == 0

    def test_user_lookups(self, account_store: AccountStore) -> None:
        org_id = account_store.create_organization("Acme QA")
        user = make_account(account_store, "user1@acme.io", org_id)

        by_email = account_store.get_user_by_email("user1@acme.io")
        assert by_email.id == user.id
        assert by_email.hashed_password.startswith("$2")
        assert account_store.get_user_by_id(user.id).email == "user1@acme.io"
        assert account_store.get_user_by_email("nobody@acme.io") is None

    def test_get_users_by_ids(self, account_store: AccountStore) -> None:
        org_id = account_store.create_organization("Acme QA")
        u1 = make_account(account_store, "user1@acme.io", org_id)
        u2 = make_account(account_store, "user2@acme.io", org_id)

        found = account_store.get_users_by_ids({u1.id, u2.id, 999})
        assert set(found) == {u1.id, u2.id}
        assert found[u2.id].email == "user2@acme.io"
        assert account_store.get_users_by_ids(set()) == {}

    def test_list_users_is_scoped(self, account_store: AccountStore) -> None:
        org_a = account_store.create_organization("Acme QA")
        org_b = account_store.create_organization("Globex QA")
        make_account(account_store, "zed@acme.io", org_a)
        make_account(account_store, "amy@acme.io", org_a)
        make_account(account_store, "bob@globex.io", org_b)

        assert [u.email for u in account_store.list_users(org_a)] == ["amy@acme.io", "zed@acme.io"]
        assert account_store.count_users(org_a) == 2
        assert account_store.count_users(org_b) == 1

    def test_delete_user_removes_sessions(self, account_store: AccountStore) -> None:
        org_id = account_store.create_organization("Acme QA")
        user = make_account(account_store, "user1@acme.io", org_id)
        future = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()
        account_store.create_session(
            SessionRecord(token_hash="a" * 64, user_id=user.id, organization_id=org_id, expires_at=future)
        )

        assert account_store.delete_user(user.id) is True
        assert account_store.get_user_by_id(user.id) is None
        assert account_store.get_session("a" * 64) is None
        assert account_store.delete_user(user.id) is False

    def test_delete_user_precondition_failure_keeps_everything(self, account_store: AccountStore) -> None:
        org_id = account_store.create_organization("Acme QA")
        user = make_account(account_store, "user1@acme.io", org_id)
        future = (datetime.now(timezone.utc) + timedelta(days=1)).isoformat()
        account_store.create_session(
            SessionRecord(token_hash="b" * 64, user_id=user.id, organization_id=org_id, expires_at=future)
        )

        def refuse(conn) -> None:
            raise ConflictError(detail="still holding")

        with pytest.raises(ConflictError):
            account_store.delete_user(user.id, precondition=refuse)
        assert account_store.get_user_by_id(user.id) is not None
        assert account_store.get_session("b" * 64) is not None

        seen = []
        assert account_store.delete_user(user.id, precondition=seen.append) is True
        assert len(seen) == 1
        assert account_store.get_user_by_id(user.id) is None

    def test_purge_expired_sessions(self, account_store: AccountStore) -> None:
        org_id = account_store.create_organization("Acme QA")
        user = make_account(account_store, "user1@acme.io", org_id)
        now = datetime.now(timezone.utc)
        for token_hash, delta in (("a" * 64, -60), ("b" * 64, -1), ("c" * 64, 3600)):
            account_store.create_session(
                SessionRecord(
                    token_hash=token_hash,
                    user_id=user.id,
                    organization_id=org_id,
                    expires_at=(now + timedelta(seconds=delta)).isoformat(),
                )
            )

        assert account_store.purge_expired_sessions() == 2
        assert account_store.get_session("c" * 64) is not None


class TestTestUserStore:
    def test_created_available(self, vault_store: TestUserStore) -> None:
        """Lease fields on the input are ignored."""
        record_id = vault_store.create_test_user(
            TestUser(
                first_name="Alice",
                last_name="Tester",
                email="alice@staging.example",
                password="pw",
                organization_id=1,
                is_checked_out=True,
                checked_out_by=5,
                checked_out_at="2024-01-01T00:00:00+00:00",
            )
        )
        record = vault_store.get_test_user(record_id)
        assert record.is_checked_out is False
        assert record.checked_out_by is None
        assert record.checked_out_at is None
        assert record.created_at

    def test_get_missing(self, vault_store: TestUserStore) -> None:
        assert vault_store.get_test_user(12345) is None

    def test_list_is_scoped_newest_first(self, vault_store: TestUserStore) -> None:
        first = make_record(vault_store, 1, "First")
        second = make_record(vault_store, 1, "Second")
        make_record(vault_store, 2, "Foreign")

        records = vault_store.list_test_users(1)
        assert [r.id for r in records] == [second.id, first.id]
        assert vault_store.list_test_users(3) == []
        assert vault_store.count_test_users(1) == 2
        assert vault_store.count_test_users(2) == 1

    def test_list_held_by(self, vault_store: TestUserStore) -> None:
        leases = LeaseManager(vault_store)
        held = make_record(vault_store, 1, "Held")
        make_record(vault_store, 1, "Free")
        holder = Principal(user_id=7, organization_id=1)
        leases.checkout(held.id, holder)

        assert [r.id for r in vault_store.list_held_by(7)] == [held.id]
        assert vault_store.list_held_by(8) == []

    def test_held_by_reads_on_given_connection(self, vault_store: TestUserStore) -> None:
        held = make_record(vault_store, 1, "Held")
        LeaseManager(vault_store).checkout(held.id, Principal(user_id=7, organization_id=1))

        with vault_store.engine.connect() as conn:
            assert [r.id for r in held_by(conn, 7)] == [held.id]
            assert held_by(conn, 8) == []
