"""
Seeds ~90 days of realistic sample transactions for one user.

Spending is drawn from weighted categories, plus monthly subscriptions on the
15th and two paychecks a month.
"""

from __future__ import annotations

import argparse
import logging
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.db import DbClient
from backend.dependencies import get_db_client
from backend.records import TransactionRecord

logger = logging.getLogger(__name__)

DAYS_BACK = 90
MAX_EXISTING = 50

MERCHANTS = {
    "Groceries": ["Whole Foods", "Trader Joe's", "Costco", "Safeway", "Kroger", "Walmart Grocery"],
    "Dining": ["Starbucks", "Chipotle", "McDonald's", "Local Restaurant", "Uber Eats", "DoorDash"],
    "Transportation": ["Shell Gas", "Uber", "Lyft", "Public Transit", "Parking Garage", "BP Gas"],
    "Entertainment": ["Netflix", "Spotify", "AMC Theaters", "Steam", "Apple Music", "Hulu"],
    "Utilities": ["Electric Company", "Water Utility", "Internet Provider", "Phone Bill", "Gas Company"],
    "Shopping": ["Amazon", "Target", "Best Buy", "Nike", "Apple Store", "Nordstrom"],
    "Healthcare": ["CVS Pharmacy", "Doctor Visit", "Dentist", "Gym Membership", "Walgreens"],
    "Travel": ["Airbnb", "Delta Airlines", "Marriott Hotel", "Hertz Car Rental", "United Airlines"],
}

# (min, max, weight)
CATEGORY_PROFILE = {
    "Groceries": (25, 200, 25),
    "Dining": (8, 85, 25),
    "Transportation": (15, 80, 15),
    "Entertainment": (10, 50, 10),
    "Utilities": (50, 200, 5),
    "Shopping": (20, 300, 10),
    "Healthcare": (15, 150, 5),
    "Travel": (150, 800, 5),
}

SUBSCRIPTIONS = (
    ("Netflix", "Entertainment", -15.99),
    ("Spotify", "Entertainment", -10.99),
    ("Gym Membership", "Healthcare", -49.99),
    ("Internet Provider", "Utilities", -79.99),
    ("Phone Bill", "Utilities", -85.00),
)


def _months_back(now: datetime, months: int, day: int, hour: int) -> datetime:
    year, month = now.year, now.month - months
    while month < 1:
        month += 12
        year -= 1
    return now.replace(year=year, month=month, day=day, hour=hour, minute=0, second=0, microsecond=0)


def build_transactions(user_id: str, rng: random.Random, now: datetime) -> list[TransactionRecord]:
    categories = list(CATEGORY_PROFILE)
    weights = [CATEGORY_PROFILE[c][2] for c in categories]
    transactions = []

    for _ in range(150 + rng.randrange(30)):
        category = rng.choices(categories, weights=weights)[0]
        low, high, _ = CATEGORY_PROFILE[category]
        merchant = rng.choice(MERCHANTS[category])
        when = (now - timedelta(days=rng.randrange(DAYS_BACK))).replace(
            hour=8 + rng.randrange(14), minute=rng.randrange(60), second=0, microsecond=0
        )
        transactions.append(
            TransactionRecord(
                user_id=user_id,
                amount=-round(rng.uniform(low, high), 2),
                merchant=merchant,
                category=category,
                transaction_date=when.isoformat(),
                notes=f"{merchant} purchase",
            )
        )

    for month in range(3):
        for merchant, category, amount in SUBSCRIPTIONS:
            transactions.append(
                TransactionRecord(
                    user_id=user_id,
                    amount=amount,
                    merchant=merchant,
                    category=category,
                    transaction_date=_months_back(now, month, 15, 12).isoformat(),
                    is_recurring=True,
                    notes=f"{merchant} monthly subscription",
                )
            )
        for day in (1, 15):
            transactions.append(
                TransactionRecord(
                    user_id=user_id,
                    amount=float(2450 + rng.randrange(200)),
                    merchant="Employer Direct Deposit",
                    category="Income",
                    transaction_date=_months_back(now, month, day, 9).isoformat(),
                    is_recurring=True,
                    notes="Payroll deposit",
                )
            )

    transactions.sort(key=lambda t: t.transaction_date, reverse=True)
    return transactions


def seed(db: DbClient, user_id: str, *, rng: random.Random, force: bool = False) -> dict:
    existing = db.count("transactions", user_id=user_id)
    if existing > MAX_EXISTING and not force:
        raise ValueError(
            f"User already has {existing} transactions; pass --force to seed anyway"
        )
    transactions = build_transactions(user_id, rng, datetime.now(timezone.utc))
    for transaction in transactions:
        db.insert("transactions", transaction)

    expenses = [t.amount for t in transactions if t.amount < 0]
    income = [t.amount for t in transactions if t.amount > 0]
    return {
        "totalTransactions": len(transactions),
        "expenseTransactions": len(expenses),
        "incomeTransactions": len(income),
        "totalExpenses": round(-sum(expenses), 2),
        "totalIncome": round(sum(income), 2),
        "dateRange": f"{DAYS_BACK} days",
    }


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed sample transactions for a user")
    parser.add_argument("user_id", help="User to seed transactions for")
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for reproducible data",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Seed even when the user already has transactions",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")

    try:
        summary = seed(get_db_client(), args.user_id, rng=random.Random(args.seed), force=args.force)
    except ValueError as exc:
        logger.error("%s", exc)
        return 1
    logger.info(
        "Seeded %d transactions (%d expenses, %d income) for %s",
        summary["totalTransactions"],
        summary["expenseTransactions"],
        summary["incomeTransactions"],
        args.user_id,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
