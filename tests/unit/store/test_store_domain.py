"""Unit tests for transaction record models."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from relay_queue.store import (
    TERMINAL_STATUSES,
    NewTransaction,
    Transaction,
    TransactionStatus,
    TransactionType,
    TransactionUpdate,
)

NOW = datetime(2026, 1, 1, tzinfo=UTC)


def make_transaction(**fields: object) -> Transaction:
    values: dict[str, object] = {
        "transaction_id": "tx-1",
        "type": "gasless",
        "status": "queued",
        "request": {"request": {"from": "0x1"}, "signature": "0xsig"},
        "created_at": NOW,
        "updated_at": NOW,
        **fields,
    }
    return Transaction.model_validate(values)


class TestTransaction:
    """Tests for Transaction."""

    def test_request_decoded_from_json_text(self) -> None:
        """Test JSONB returned as text becomes a dict."""
        transaction = make_transaction(request='{"to": "0xabc"}')

        assert transaction.request == {"to": "0xabc"}

    def test_request_decoded_from_bytes(self) -> None:
        """Test JSONB returned as bytes becomes a dict."""
        assert make_transaction(request=b'{"to": "0xabc"}').request == {"to": "0xabc"}

    def test_legacy_record_without_retry_flag(self) -> None:
        """Test retry_on_failure may be NULL."""
        assert make_transaction().retry_on_failure is None

    @pytest.mark.parametrize("status", list(TransactionStatus))
    def test_terminal_statuses(self, status: TransactionStatus) -> None:
        """Test only confirmed and failed are terminal."""
        transaction = make_transaction(status=status)

        assert transaction.is_terminal is (status in {TransactionStatus.CONFIRMED, TransactionStatus.FAILED})

    def test_terminal_set(self) -> None:
        """Test the terminal set is exactly confirmed and failed."""
        assert TERMINAL_STATUSES == {TransactionStatus.CONFIRMED, TransactionStatus.FAILED}

    def test_unknown_status_rejected(self) -> None:
        """Test statuses outside the lifecycle fail validation."""
        with pytest.raises(ValidationError):
            make_transaction(status="mined")

    def test_records_are_frozen(self) -> None:
        """Test records cannot be mutated in place."""
        with pytest.raises(ValidationError):
            make_transaction().status = TransactionStatus.FAILED  # type: ignore[misc]


class TestNewTransaction:
    """Tests for NewTransaction."""

    def test_defaults(self) -> None:
        """Test generated id and retry flag default."""
        new = NewTransaction(type=TransactionType.DIRECT, request={"to": "0xabc"})

        assert len(new.transaction_id) == 36
        assert new.retry_on_failure is False

    def test_ids_are_unique(self) -> None:
        """Test every insert payload gets its own id."""
        first = NewTransaction(type=TransactionType.DIRECT, request={})
        second = NewTransaction(type=TransactionType.DIRECT, request={})

        assert first.transaction_id != second.transaction_id


class TestTransactionUpdate:
    """Tests for TransactionUpdate.changes."""

    def test_only_set_fields(self) -> None:
        """Test fields left out are not part of the changes."""
        update = TransactionUpdate(status=TransactionStatus.SUBMITTED, external_submission_id="ext-1")

        assert update.changes() == {"status": TransactionStatus.SUBMITTED, "external_submission_id": "ext-1"}

    def test_explicit_none_is_kept(self) -> None:
        """Test an explicit None clears a nullable column."""
        assert TransactionUpdate(error_message=None).changes() == {"error_message": None}

    def test_none_status_is_dropped(self) -> None:
        """Test status=None never nulls the NOT NULL column."""
        assert TransactionUpdate(status=None, assigned_endpoint="http://r:8080").changes() == {
            "assigned_endpoint": "http://r:8080"
        }

    def test_unknown_fields_rejected(self) -> None:
        """Test columns owned elsewhere cannot be updated."""
        with pytest.raises(ValidationError):
            TransactionUpdate(transaction_hash="0xfeed")  # type: ignore[call-arg]
