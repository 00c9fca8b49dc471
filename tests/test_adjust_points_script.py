"""
Tests for the operator adjustment script.
"""
import pytest

from scripts import adjust_points as script
from app.services.ledger_service import get_point_balance, get_transactions


@pytest.fixture(autouse=True)
def script_session(monkeypatch, session_factory):
    monkeypatch.setattr(script, "SessionLocal", session_factory)


def test_credit_then_debit(db, capsys):
    assert script.main(["--user-id", "user_1", "--amount", "25", "--reason", "refund", "--note", "ticket 42"]) == 0
    assert script.main(["--user-id", "user_1", "--amount", "-10"]) == 0

    assert get_point_balance(db, "user_1") == 15
    latest, first = get_transactions(db, "user_1")
    assert (latest.delta, latest.reason) == (-10, "manual_adjustment")
    assert first.metadata_ == {"source": "adjust_points", "note": "ticket 42"}
    assert "balance=15 ledger_total=15" in capsys.readouterr().out


def test_debit_beyond_balance_fails(db):
    assert script.main(["--user-id", "user_1", "--amount", "-5"]) == 1
    assert get_point_balance(db, "user_1") == 0
