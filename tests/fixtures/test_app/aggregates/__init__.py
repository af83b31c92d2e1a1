"""Test aggregates."""

from .bank_account import (
    AccountOpened,
    BankAccount,
    MoneyDeposited,
    MoneyWithdrawn,
    StatementRequested,
)
from .order import Order, OrderEvents
from .tally import Incremented, Tally, TallyFactory
from .user import EmailChanged, User, UserDeactivated, UsernameChanged, UserRegistered

__all__ = [
    "BankAccount",
    "AccountOpened",
    "MoneyDeposited",
    "MoneyWithdrawn",
    "StatementRequested",
    "Order",
    "OrderEvents",
    "Tally",
    "TallyFactory",
    "Incremented",
    "User",
    "UserRegistered",
    "UsernameChanged",
    "EmailChanged",
    "UserDeactivated",
]
