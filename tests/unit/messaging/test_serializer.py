import json
from decimal import Decimal
from uuid import uuid4

import pytest

from chronicle.domain import DomainEvent, EventValidationError
from chronicle.messaging import JsonMessageSerializer
from tests.fixtures.test_app import MoneyDeposited, OrderEvents, UserDeactivated, UsernameChanged


@pytest.fixture
def serializer() -> JsonMessageSerializer:
    return JsonMessageSerializer()


def test_payload_records_event_class(serializer: JsonMessageSerializer):
    payload = serializer.serialize(UsernameChanged(username="alice"))

    document = json.loads(payload)
    assert document["$type"] == "tests.fixtures.test_app.aggregates.user:UsernameChanged"
    assert document["username"] == "alice"


def test_deserialize_restores_event_class_and_fields(serializer: JsonMessageSerializer):
    event = UsernameChanged(aggregate_id=uuid4(), version=3, username="alice")

    restored = serializer.deserialize(serializer.serialize(event))

    assert type(restored) is UsernameChanged
    assert restored == event


def test_decimal_fields_keep_their_precision(serializer: JsonMessageSerializer):
    event = MoneyDeposited(aggregate_id=uuid4(), version=2, amount=Decimal("10.10"))

    restored = serializer.deserialize(serializer.serialize(event))

    assert restored.amount == Decimal("10.10")
    assert restored.raised_at == event.raised_at


def test_event_without_fields(serializer: JsonMessageSerializer):
    event = UserDeactivated(aggregate_id=uuid4(), version=4)

    assert serializer.deserialize(serializer.serialize(event)) == event


def test_unknown_event_class_fails(serializer: JsonMessageSerializer):
    payload = json.dumps({"$type": "tests.fixtures.test_app.aggregates.user:Missing"})

    with pytest.raises(AttributeError):
        serializer.deserialize(payload)


def test_nested_event_class_round_trips(serializer: JsonMessageSerializer):
    event = OrderEvents.Placed(aggregate_id=uuid4(), version=1, sku="SKU-1", quantity=2)

    payload = serializer.serialize(event)
    restored = serializer.deserialize(payload)

    assert json.loads(payload)["$type"] == (
        "tests.fixtures.test_app.aggregates.order:OrderEvents.Placed"
    )
    assert type(restored) is OrderEvents.Placed
    assert restored == event


def test_event_class_defined_in_function_is_rejected(serializer: JsonMessageSerializer):
    class Ephemeral(DomainEvent):
        note: str

    with pytest.raises(EventValidationError, match="<locals>"):
        serializer.serialize(Ephemeral(aggregate_id=uuid4(), version=1, note="gone"))
