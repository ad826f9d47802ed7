"""DomainEvent: record of something that already happened.

Події публікуються після того, як стан уже змінився (mutation confirmed,
rolled back, rejected), тому handlers лише реагують і нічого не скасовують.
"""

from abc import ABC
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID, uuid4


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DomainEvent(ABC):
    """Immutable, past-tense, timestamped.

    event_id and occurred_at are filled automatically and are not
    constructor arguments, so subclasses declare only their payload:

        >>> @dataclass(frozen=True)
        ... class MutationConfirmedEvent(DomainEvent):
        ...     mutation_id: str
        ...     action: str
    """

    event_id: UUID = field(default_factory=uuid4, init=False)
    occurred_at: datetime = field(default_factory=_now, init=False)

    @property
    def event_name(self) -> str:
        return type(self).__name__
