"""Test application package."""

from .aggregates import (
    AccountOpened,
    BankAccount,
    EmailChanged,
    Incremented,
    MoneyDeposited,
    MoneyWithdrawn,
    Order,
    OrderEvents,
    StatementRequested,
    Tally,
    TallyFactory,
    User,
    UserDeactivated,
    UsernameChanged,
    UserRegistered,
)
from .transport import FailingMessageBus, SlowMessageBus

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
    "FailingMessageBus",
    "SlowMessageBus",
]
