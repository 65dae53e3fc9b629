"""SQLAlchemy models."""

from ledger_analytics.models.account import Account
from ledger_analytics.models.base import Base
from ledger_analytics.models.budget import Budget, SavingsGoal
from ledger_analytics.models.transaction import Transaction
from ledger_analytics.models.workspace import Workspace

__all__ = [
    "Base",
    "Workspace",
    "Account",
    "Transaction",
    "Budget",
    "SavingsGoal",
]
