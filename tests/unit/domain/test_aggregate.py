from decimal import Decimal
from uuid import uuid4

import pytest

from chronicle.domain import Aggregate, EventSourced, EventValidationError
from tests.fixtures.test_app import (
    BankAccount,
    MoneyDeposited,
    StatementRequested,
    User,
    UsernameChanged,
    UserRegistered,
)


def test_raise_event_stamps_aggregate_id_and_next_version():
    user = User.register("alice", "alice@example.com")

    (event,) = user.pending_events
    assert isinstance(event, UserRegistered)
    assert event.aggregate_id == user.id
    assert event.version == 1
    assert event.raised_at.tzinfo is not None


def test_raise_event_applies_event_and_advances_version():
    user = User.register("alice", "alice@example.com")
    user.change_username("alicia")

    assert user.username == "alicia"
    assert user.version == 2
    assert [e.version for e in user.pending_events] == [1, 2]


def test_raise_event_returns_stamped_copy():
    user = User.register("alice", "alice@example.com")
    original = UsernameChanged(username="bob")

    stamped = user.raise_event(original)

    assert original.version == 0
    assert stamped.version == 2
    assert stamped is user.pending_events[-1]


def test_apply_does_not_record_pending_events():
    source = User.register("alice", "alice@example.com")
    source.change_email("new@example.com")

    replica = User(id=source.id)
    replica.replay_events(source.pending_events)

    assert replica.pending_events == []
    assert replica.version == 2
    assert replica.email == "new@example.com"
    assert replica.email_changes == 1


def test_apply_rejects_event_out_of_sequence():
    user = User(id=uuid4())
    event = UserRegistered(aggregate_id=user.id, version=2, username="a", email="a@b.c")

    with pytest.raises(EventValidationError):
        user.apply(event)

    assert user.version == 0


def test_apply_rejects_event_of_another_aggregate():
    user = User(id=uuid4())
    event = UserRegistered(aggregate_id=uuid4(), version=1, username="a", email="a@b.c")

    with pytest.raises(EventValidationError):
        user.apply(event)


def test_event_without_applier_still_advances_version():
    account = BankAccount()
    account.open("alice")
    account.raise_event(StatementRequested())

    assert account.version == 2
    assert account.owner == "alice"


def test_applier_uses_event_fields():
    account = BankAccount()
    account.open("alice")
    account.deposit(Decimal("10.50"))
    account.withdraw(Decimal("0.50"))

    assert account.balance == Decimal("10.00")
    assert isinstance(account.pending_events[1], MoneyDeposited)


def test_clear_pending_events():
    user = User.register("alice", "alice@example.com")
    user.clear_pending_events()

    assert user.pending_events == []
    assert user.version == 1


def test_aggregate_type_defaults_to_class_name():
    assert User.aggregate_type == "User"


def test_aggregate_type_can_be_overridden():
    assert BankAccount.aggregate_type == "Account"


def test_unique_indexed_properties_reports_current_values():
    user = User.register("alice", "alice@example.com")

    assert user.unique_indexed_properties() == {"username": "alice"}


def test_unique_indexed_properties_reports_empty_values_as_none():
    assert User().unique_indexed_properties() == {"username": None}


def test_aggregate_without_unique_properties():
    assert BankAccount().unique_indexed_properties() == {}


def test_model_json_excludes_pending_events():
    user = User.register("alice", "alice@example.com")

    restored = User.model_validate_json(user.model_dump_json())

    assert restored.pending_events == []
    assert restored.username == "alice"
    assert restored.version == 1
    assert restored.id == user.id


def test_aggregate_satisfies_event_sourced_protocol():
    assert isinstance(User(), EventSourced)


def test_base_aggregate_has_its_own_type_tag():
    assert Aggregate.aggregate_type == "Aggregate"
