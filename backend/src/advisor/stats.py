from __future__ import annotations

from typing import Dict

from .schemas import FinancialData, SimulationStats, TaggedTransaction, UserProfile


def calculate_financial_summary(financial_data: FinancialData) -> Dict[str, float]:
    total_income = sum(item.amount for item in financial_data.income)
    total_expenses = sum(item.amount for item in financial_data.expenses)
    return {
        "total_income": round(total_income, 2),
        "total_expenses": round(total_expenses, 2),
        "balance": round(total_income - total_expenses, 2),
        "income_count": len(financial_data.income),
        "expense_count": len(financial_data.expenses),
    }


def aggregate_stats(profile: UserProfile) -> SimulationStats:
    """Reduce a profile ledger into the end-of-run summary. Pure."""
    data = profile.financial_data
    summary = calculate_financial_summary(data)
    transactions = [
        TaggedTransaction(**income.model_dump(), type="income") for income in data.income
    ] + [
        TaggedTransaction(**expense.model_dump(), type="expense") for expense in data.expenses
    ]
    return SimulationStats(
        income_count=len(data.income),
        expense_count=len(data.expenses),
        name_detected=bool(profile.name),
        total_income=summary["total_income"],
        total_expenses=summary["total_expenses"],
        balance=summary["balance"],
        transactions=transactions,
    )
