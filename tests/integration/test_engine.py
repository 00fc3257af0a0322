"""Integration tests for the reconciliation engine against a real session."""

import logging
from datetime import datetime
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from budget_app.models.user import User
from budget_app.reconciliation.engine import ReconciliationEngine
from budget_app.reconciliation.fingerprint import FINGERPRINT_VERSION, fingerprint
from budget_app.reconciliation.window import resolve_window
from budget_app.repositories.transaction import TransactionRepository
from budget_app.schemas.transaction import TransactionCandidate


def candidate(date: str, description: str, amount, account_id: str | None = "acc-a", **extra):
    return TransactionCandidate(
        account_id=account_id, date=date, description=description, amount=amount, **extra
    )


def snapshot(rows) -> list[tuple]:
    """Order-independent view of rows: fingerprint plus annotation fields."""
    return sorted(
        (
            fingerprint(r),
            r.category_id,
            r.user_description,
            r.status,
            r.type,
            r.savings_target_id,
            r.corrected_amount,
            r.is_manually_changed,
        )
        for r in rows
    )


@pytest.fixture
def repo(db_session: AsyncSession) -> TransactionRepository:
    return TransactionRepository(db_session)


@pytest.fixture
def engine(repo: TransactionRepository) -> ReconciliationEngine:
    return ReconciliationEngine(repo)


class TestReconcile:
    """Test the replace-window merge."""

    async def test_okq8_annotation_survives_reimport(
        self, db_session, repo, engine, test_user: User, make_transaction
    ):
        fuel = uuid4()
        db_session.add(
            make_transaction(test_user, category_id=fuel, is_manually_changed=True)
        )
        await db_session.commit()

        batch = [candidate("2025-01-02T00:00:00Z", "okq8 ", -300)]
        window = resolve_window(
            batch,
            account_id="acc-a",
            start=datetime(2025, 1, 1),
            end=datetime(2025, 1, 3),
        )
        stats = await engine.reconcile(test_user.id, window, batch)
        await db_session.commit()

        assert (stats.deleted, stats.created, stats.restored, stats.skipped) == (1, 1, 1, 0)
        rows = await repo.get_all_for_user(test_user.id)
        assert len(rows) == 1
        assert rows[0].category_id == fuel
        assert rows[0].is_manually_changed is True

    async def test_unannotated_rows_get_defaults(
        self, db_session, repo, engine, test_user, make_transaction
    ):
        db_session.add(make_transaction(test_user, description="ICA", amount=-120))
        await db_session.commit()

        batch = [candidate("2025-01-02", "ICA", -120)]
        stats = await engine.reconcile(test_user.id, resolve_window(batch), batch)
        await db_session.commit()

        assert stats.restored == 0
        (row,) = await repo.get_all_for_user(test_user.id)
        assert row.status == "unreviewed"
        assert row.category_id is None
        assert row.is_manually_changed is False

    async def test_all_annotation_fields_restored(
        self, db_session, repo, engine, test_user, make_transaction
    ):
        values = {
            "category_id": uuid4(),
            "subcategory_id": uuid4(),
            "user_description": "Birthday present",
            "status": "reviewed",
            "type": "Transfer",
            "linked_transaction_id": uuid4(),
            "savings_target_id": "goal-7",
            "corrected_amount": -150,
        }
        db_session.add(make_transaction(test_user, **values))
        await db_session.commit()

        batch = [candidate("2025-01-02 09:15", "OKQ8", -300)]
        await engine.reconcile(test_user.id, resolve_window(batch), batch)
        await db_session.commit()

        (row,) = await repo.get_all_for_user(test_user.id)
        for name, value in values.items():
            assert getattr(row, name) == value, name
        assert row.is_manually_changed is True

    async def test_duplicate_rows_in_batch_inserted_once(self, db_session, repo, engine, test_user):
        batch = [
            candidate("2025-01-02", "Swish Anna", 15000),
            candidate("2025-01-02T12:00:00", "swish  anna", 15000.0),
            candidate("2025-01-03", "Swish Anna", 15000),
        ]
        stats = await engine.reconcile(test_user.id, resolve_window(batch), batch)
        await db_session.commit()

        assert stats.created == 2
        assert stats.skipped == 1
        assert len(await repo.get_all_for_user(test_user.id)) == 2

    async def test_first_occurrence_wins(self, db_session, repo, engine, test_user):
        batch = [
            candidate("2025-01-02", "Hyra", -950000, balance_after=100),
            candidate("2025-01-02", "Hyra", -950000, balance_after=200),
        ]
        await engine.reconcile(test_user.id, resolve_window(batch), batch)
        await db_session.commit()

        (row,) = await repo.get_all_for_user(test_user.id)
        assert row.balance_after == 100

    async def test_rows_missing_from_batch_are_removed(
        self, db_session, repo, engine, test_user, make_transaction
    ):
        db_session.add_all(
            [
                make_transaction(test_user, description="Kept", date=datetime(2025, 1, 2)),
                make_transaction(test_user, description="Gone", date=datetime(2025, 1, 3)),
            ]
        )
        await db_session.commit()

        batch = [candidate("2025-01-02", "Kept", -300), candidate("2025-01-04", "New", -10)]
        stats = await engine.reconcile(test_user.id, resolve_window(batch), batch)
        await db_session.commit()

        assert stats.deleted == 2
        descriptions = sorted(r.description for r in await repo.get_all_for_user(test_user.id))
        assert descriptions == ["Kept", "New"]

    async def test_rows_outside_window_untouched(
        self, db_session, repo, engine, test_user, other_user, make_transaction
    ):
        outside = [
            make_transaction(test_user, description="Before", date=datetime(2024, 12, 31, 23, 59, 59)),
            make_transaction(test_user, description="After", date=datetime(2025, 1, 4)),
            make_transaction(test_user, description="Other account", account_id="acc-b"),
            make_transaction(other_user, description="Other user"),
        ]
        db_session.add_all(outside)
        await db_session.commit()
        outside_ids = {row.id for row in outside}

        batch = [candidate("2025-01-02", "Inside", -1)]
        window = resolve_window(
            batch, account_id="acc-a", start=datetime(2025, 1, 1), end=datetime(2025, 1, 3)
        )
        stats = await engine.reconcile(test_user.id, window, batch)
        await db_session.commit()

        assert stats.deleted == 0
        remaining = await repo.get_all_for_user(test_user.id)
        remaining += await repo.get_all_for_user(other_user.id)
        assert outside_ids <= {row.id for row in remaining}
        assert len(remaining) == 5

    async def test_end_of_day_row_is_inside_window(
        self, db_session, repo, engine, test_user, make_transaction
    ):
        db_session.add(
            make_transaction(test_user, description="Late", date=datetime(2025, 1, 3, 23, 59, 59, 500000))
        )
        await db_session.commit()

        batch = [candidate("2025-01-01", "Early", -1)]
        window = resolve_window(
            batch, account_id="acc-a", start=datetime(2025, 1, 1), end=datetime(2025, 1, 3)
        )
        stats = await engine.reconcile(test_user.id, window, batch)

        assert stats.deleted == 1

    async def test_reconcile_is_idempotent(
        self, db_session, repo, engine, test_user, make_transaction
    ):
        db_session.add(
            make_transaction(test_user, user_description="Fika", status="reviewed")
        )
        await db_session.commit()
        batch = [
            candidate("2025-01-02", "OKQ8", -300),
            candidate("2025-01-02", "Pressbyrån", -45),
            candidate("2025-01-02", "pressbyrån", -45),
        ]
        window = resolve_window(batch)

        await engine.reconcile(test_user.id, window, batch)
        await db_session.commit()
        first = await repo.get_all_for_user(test_user.id)
        first_ids = {row.id for row in first}
        first_view = snapshot(first)

        second_stats = await engine.reconcile(test_user.id, window, batch)
        await db_session.commit()
        second = await repo.get_all_for_user(test_user.id)

        assert snapshot(second) == first_view
        assert second_stats.deleted == 2
        assert second_stats.created == 2
        assert first_ids.isdisjoint({row.id for row in second})

    @pytest.mark.parametrize(
        "extra",
        [{"type": "Transfer"}, {"status": "reviewed"}, {"type": "Transfer", "status": "flagged"}],
    )
    async def test_reimport_of_rule_assigned_fields_is_idempotent(
        self, db_session, repo, engine, test_user, extra
    ):
        batch = [candidate("2025-01-02", "Transfer to savings", -5000, **extra)]
        window = resolve_window(batch)

        first_stats = await engine.reconcile(test_user.id, window, batch)
        await db_session.commit()
        first = snapshot(await repo.get_all_for_user(test_user.id))

        second_stats = await engine.reconcile(test_user.id, window, batch)
        await db_session.commit()
        rows = await repo.get_all_for_user(test_user.id)

        assert first_stats.restored == 0
        assert second_stats.restored == 0
        assert snapshot(rows) == first
        assert rows[0].is_manually_changed is False

    async def test_user_change_over_rule_type_is_restored(
        self, db_session, repo, engine, test_user, make_transaction
    ):
        db_session.add(
            make_transaction(test_user, type="Savings", is_manually_changed=True)
        )
        await db_session.commit()

        batch = [candidate("2025-01-02", "OKQ8", -300, type="Transfer")]
        stats = await engine.reconcile(test_user.id, resolve_window(batch), batch)
        await db_session.commit()

        (row,) = await repo.get_all_for_user(test_user.id)
        assert stats.restored == 1
        assert row.type == "Savings"
        assert row.is_manually_changed is True

    async def test_logs_fingerprint_version(self, caplog, engine, test_user):
        batch = [candidate("2025-01-02", "OKQ8", -300)]

        with caplog.at_level(logging.INFO, logger="budget_app.reconciliation.engine"):
            await engine.reconcile(test_user.id, resolve_window(batch), batch)

        (record,) = [r for r in caplog.records if r.getMessage() == "Reconciling window"]
        assert record.fingerprint_version == FINGERPRINT_VERSION

    async def test_empty_batch_changes_nothing(
        self, db_session, repo, engine, test_user, make_transaction
    ):
        db_session.add(make_transaction(test_user))
        await db_session.commit()

        window = resolve_window(
            [], account_id="acc-a", start=datetime(2025, 1, 1), end=datetime(2025, 1, 31)
        )
        stats = await engine.reconcile(test_user.id, window, [])

        assert (stats.deleted, stats.created) == (0, 0)
        assert len(await repo.get_all_for_user(test_user.id)) == 1

    async def test_stored_row_takes_window_account(self, db_session, repo, engine, test_user):
        batch = [candidate("2025-01-02", "OKQ8", -300, account_id=None)]
        window = resolve_window(
            batch, account_id="acc-z", start=datetime(2025, 1, 1), end=datetime(2025, 1, 3)
        )
        await engine.reconcile(test_user.id, window, batch)
        await db_session.commit()

        (row,) = await repo.get_all_for_user(test_user.id)
        assert row.account_id == "acc-z"
