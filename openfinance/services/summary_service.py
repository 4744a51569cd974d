"""Financial summary over stored transactions.

Positive amounts count as income and negative amounts as expenses. Expenses are grouped by category to find where
most of the money went.
"""

import pandas as pd

from openfinance.core.models import CategoryShare, FinancialSummary, Transaction, TransactionFilters
from openfinance.services.transaction_store import TransactionStore

TOP_CATEGORY_COUNT = 5
UNCATEGORIZED = "Uncategorized"


def summarize_transactions(transactions: list[Transaction]) -> FinancialSummary:
    """Compute income, expenses, balance, savings rate and top expense categories."""
    if not transactions:
        return FinancialSummary()
    data_frame = pd.DataFrame(
        [{"amount": tx.amount, "category": tx.category or UNCATEGORIZED} for tx in transactions],
    )
    income = float(data_frame.loc[data_frame["amount"] > 0, "amount"].sum())
    expenses_frame = data_frame.loc[data_frame["amount"] < 0].assign(amount=lambda df: df["amount"].abs())
    expenses = float(expenses_frame["amount"].sum())
    balance = income - expenses
    savings_rate = round(balance / income * 100, 2) if income > 0 else 0.0
    by_category = expenses_frame.groupby("category")["amount"].sum().sort_values(ascending=False)
    top_categories = [
        CategoryShare(
            category=str(category),
            amount=round(float(amount), 2),
            percentage=round(float(amount) / expenses * 100, 2) if expenses else 0.0,
        )
        for category, amount in by_category.head(TOP_CATEGORY_COUNT).items()
    ]
    return FinancialSummary(
        total_income=round(income, 2),
        total_expenses=round(expenses, 2),
        balance=round(balance, 2),
        savings_rate=savings_rate,
        top_categories=top_categories,
    )


class SummaryService:
    """Service computing financial summaries from the primary store."""

    def __init__(self, store: TransactionStore) -> None:
        """Initialize SummaryService with the transaction store."""
        self.store = store

    async def summarize(self, filters: TransactionFilters | None = None) -> FinancialSummary:
        """Summarize every transaction matching the equality filters; pagination is ignored."""
        filters = filters or TransactionFilters()
        unpaged = filters.model_copy(update={"limit": None, "offset": None})
        transactions = await self.store.find_many(unpaged)
        return summarize_transactions(transactions)
