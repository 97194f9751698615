"""Dashboard aggregations over stored transactions."""

import calendar
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from .models import CategoryBreakdown, MonthlyOverview, StoredTransaction, TransactionStats

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
               "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
CATEGORY_COLORS = ["#ef4444", "#f97316", "#eab308", "#22c55e", "#3b82f6", "#8b5cf6"]
OVERVIEW_MONTHS = 6


def _start_of_month(now: datetime) -> datetime:
    return datetime(now.year, now.month, 1)


def months_ago(now: datetime, months: int) -> datetime:
    """Same day and time `months` calendar months earlier, clamped to month end."""
    month_index = now.year * 12 + (now.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(now.day, calendar.monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day)


def compute_stats(
    transactions: Iterable[StoredTransaction], now: Optional[datetime] = None
) -> TransactionStats:
    now = now or datetime.now()
    month_start = _start_of_month(now)
    balance = 0.0
    monthly_income = 0.0
    monthly_expenses = 0.0

    for t in transactions:
        balance += t.amount if t.type == "income" else -t.amount
        if t.date >= month_start:
            if t.type == "income":
                monthly_income += t.amount
            else:
                monthly_expenses += t.amount

    if monthly_income > 0:
        savings_rate = f"{(monthly_income - monthly_expenses) / monthly_income * 100:.1f}"
    else:
        savings_rate = "0.0"

    return TransactionStats(
        total_balance=f"{balance:.2f}",
        monthly_income=f"{monthly_income:.2f}",
        monthly_expenses=f"{monthly_expenses:.2f}",
        savings_rate=savings_rate,
    )


def monthly_overview(
    transactions: Iterable[StoredTransaction], now: Optional[datetime] = None
) -> List[MonthlyOverview]:
    """Income and expense totals per month over the last six months, oldest first."""
    now = now or datetime.now()
    since = months_ago(now, OVERVIEW_MONTHS)
    totals: Dict[Tuple[int, int], Dict[str, float]] = {}

    for t in transactions:
        if t.date < since:
            continue
        bucket = totals.setdefault((t.date.year, t.date.month), {"income": 0.0, "expenses": 0.0})
        if t.type == "income":
            bucket["income"] += t.amount
        else:
            bucket["expenses"] += t.amount

    return [
        MonthlyOverview(month=MONTH_NAMES[month - 1], income=bucket["income"], expenses=bucket["expenses"])
        for (year, month), bucket in sorted(totals.items())
    ]


def category_breakdown(
    transactions: Iterable[StoredTransaction], now: Optional[datetime] = None
) -> List[CategoryBreakdown]:
    """Current-month expense totals per category, in order of first appearance."""
    now = now or datetime.now()
    month_start = _start_of_month(now)
    totals: Dict[str, float] = {}

    for t in transactions:
        if t.type != "expense" or t.date < month_start:
            continue
        totals[t.category] = totals.get(t.category, 0.0) + t.amount

    return [
        CategoryBreakdown(name=name, value=value, color=CATEGORY_COLORS[i % len(CATEGORY_COLORS)])
        for i, (name, value) in enumerate(totals.items())
    ]
