"""
Operator script: credit or debit a user's points with a ledger entry.

Run: python -m scripts.adjust_points --user-id <id> --amount 25 --reason manual_adjustment
     python -m scripts.adjust_points --user-id <id> --amount -10 --reason refund_reversal
"""
import argparse
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.db.session import SessionLocal
from app.services.ledger_service import credit_points, get_point_balance, ledger_total
from app.services.spend_service import deduct_points
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def adjust_points(user_id: str, amount: int, reason: str, note: str = None) -> bool:
    """Apply a signed adjustment. Debits never take the balance below zero."""
    metadata = {"source": "adjust_points"}
    if note:
        metadata["note"] = note

    db = SessionLocal()
    try:
        if amount > 0:
            balance = credit_points(db, user_id, amount, reason, metadata)
        elif amount < 0:
            result = deduct_points(db, user_id, -amount, reason, metadata)
            if not result.ok:
                logger.error(
                    f"Cannot debit {-amount} points from {user_id}: {result.message} "
                    f"(balance={result.balance})"
                )
                return False
            balance = result.balance
        else:
            balance = get_point_balance(db, user_id)

        total = ledger_total(db, user_id)
        print(f"user_id={user_id} balance={balance} ledger_total={total}")
        if total != balance:
            logger.warning(f"Ledger total {total} does not match balance {balance} for {user_id}")
        return True
    finally:
        db.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Credit or debit a user's points balance")
    parser.add_argument("--user-id", required=True)
    parser.add_argument("--amount", type=int, required=True, help="positive to credit, negative to debit")
    parser.add_argument("--reason", default="manual_adjustment")
    parser.add_argument("--note", default=None)
    args = parser.parse_args(argv)

    return 0 if adjust_points(args.user_id, args.amount, args.reason, args.note) else 1


if __name__ == "__main__":
    sys.exit(main())
