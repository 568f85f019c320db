"""
Staking Events

Immutable records emitted after every committed mutation. The engine hands
them to an event sink (any callable); EventLog is the in-memory default.
"""

from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TypeVar


@dataclass(frozen=True)
class StakingEvent:
    """Base event. `height` is the logical time of the mutation."""
    height: int

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"event": self.name}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Decimal):
                value = str(value)
            elif isinstance(value, tuple):
                value = list(value)
            parts = f.name.split("_")
            data[parts[0] + "".join(p.title() for p in parts[1:])] = value
        return data


# ══════════════════════════════════════════════════════════════════════
#  BUCKET LIFECYCLE
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Staked(StakingEvent):
    bucket_id: int
    holder: str
    delegate: str
    amount: Decimal
    duration: int


@dataclass(frozen=True)
class Locked(StakingEvent):
    bucket_id: int
    duration: int


@dataclass(frozen=True)
class Unlocked(StakingEvent):
    bucket_id: int


@dataclass(frozen=True)
class Unstaked(StakingEvent):
    bucket_id: int


@dataclass(frozen=True)
class Withdrawn(StakingEvent):
    bucket_id: int
    recipient: str
    amount: Decimal


@dataclass(frozen=True)
class EmergencyWithdrawn(StakingEvent):
    bucket_id: int
    recipient: str
    amount: Decimal
    penalty: Decimal


@dataclass(frozen=True)
class BucketExpanded(StakingEvent):
    bucket_id: int
    amount: Decimal
    duration: int


@dataclass(frozen=True)
class DelegateChanged(StakingEvent):
    bucket_id: int
    delegate: str


@dataclass(frozen=True)
class Merged(StakingEvent):
    bucket_ids: Tuple[int, ...]
    amount: Decimal
    duration: int


@dataclass(frozen=True)
class Transferred(StakingEvent):
    bucket_id: int
    sender: str
    recipient: str


# ══════════════════════════════════════════════════════════════════════
#  ADMINISTRATION
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class BucketTypeAdded(StakingEvent):
    index: int
    amount: Decimal
    duration: int


@dataclass(frozen=True)
class BucketTypeActivated(StakingEvent):
    index: int
    amount: Decimal
    duration: int


@dataclass(frozen=True)
class BucketTypeDeactivated(StakingEvent):
    index: int
    amount: Decimal
    duration: int


@dataclass(frozen=True)
class Paused(StakingEvent):
    account: str


@dataclass(frozen=True)
class Unpaused(StakingEvent):
    account: str


@dataclass(frozen=True)
class PenaltyRateChanged(StakingEvent):
    rate: int


@dataclass(frozen=True)
class FeeWithdrawn(StakingEvent):
    recipient: str
    amount: Decimal


EventSink = Callable[[StakingEvent], None]
E = TypeVar("E", bound=StakingEvent)


class EventLog:
    """Collects events in emission order."""

    def __init__(self):
        self.events: List[StakingEvent] = []

    def __call__(self, event: StakingEvent) -> None:
        self.events.append(event)

    def __len__(self) -> int:
        return len(self.events)

    def of_type(self, event_type: Type[E]) -> List[E]:
        return [e for e in self.events if isinstance(e, event_type)]

    def last(self, event_type: Optional[Type[E]] = None) -> Optional[StakingEvent]:
        events = self.of_type(event_type) if event_type else self.events
        return events[-1] if events else None

    def clear(self) -> None:
        self.events.clear()
