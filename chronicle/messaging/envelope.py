from pydantic import BaseModel, ConfigDict, Field
from ulid import ULID

from ..domain import DomainEvent


class Envelope(BaseModel):
    """A domain event together with the metadata it travels with.

    Attributes:
        message_id: Unique identifier of this message, assigned when the
            event was stored. Consumers use it to deduplicate redeliveries.
        operation_id: Optional identifier of the operation that produced the
            event (for example an HTTP request id).
        correlation_id: Optional ID tracing the whole logical operation.
        contributor: Optional identity of whoever caused the change.
        message: The domain event itself.
    """

    model_config = ConfigDict(frozen=True)

    message_id: ULID = Field(default_factory=ULID)
    operation_id: str | None = None
    correlation_id: ULID | None = None
    contributor: str | None = None
    message: DomainEvent
