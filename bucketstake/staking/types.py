"""
Bucket Staking Types

Core data types for buckets and bucket types.

Timestamps are logical time (block heights). A timestamp of None stands for
"never", i.e. infinity: a bucket with unlocked_at=None is locked, one with
unstaked_at=None has not been unstaked.
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import List, Optional, Union

from ..exceptions import InvalidAmountError

AmountLike = Union[Decimal, int, str]


def as_amount(value: AmountLike) -> Decimal:
    """Normalize an amount to a finite Decimal."""
    if isinstance(value, bool):
        raise InvalidAmountError(f"Invalid amount: {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise InvalidAmountError(f"Invalid amount: {value!r}") from e
    if not amount.is_finite():
        raise InvalidAmountError(f"Invalid amount: {value!r}")
    return amount


class BucketState(Enum):
    """Bucket lifecycle state, derived from its timestamps."""
    LOCKED = "locked"
    UNLOCKED = "unlocked"
    UNSTAKED = "unstaked"

    @property
    def is_staked(self) -> bool:
        """Locked and Unlocked buckets still count towards votes."""
        return self is not BucketState.UNSTAKED


@dataclass
class BucketType:
    """
    A registered (amount, duration) class.

    Attributes:
        index: Stable registry index, assigned once at creation
        amount: Stake amount of every bucket of this type
        duration: Lock duration in blocks
        activated_at: Block of the most recent activation
        deactivated_at: Block of the most recent deactivation, None while active
    """
    index: int
    amount: Decimal
    duration: int
    activated_at: int
    deactivated_at: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.deactivated_at is None

    @property
    def key(self) -> tuple:
        return (self.amount, self.duration)

    def copy(self) -> "BucketType":
        return replace(self)

    def to_dict(self) -> dict:
        return {
            'index': self.index,
            'amount': str(self.amount),
            'duration': self.duration,
            'activatedAt': self.activated_at,
            'deactivatedAt': self.deactivated_at,
            'active': self.is_active,
        }


@dataclass
class Bucket:
    """
    A single stake position.

    Attributes:
        id: Bucket identifier (also the id of its transferable handle)
        amount: Staked amount
        duration: Lock duration in blocks
        delegate: Account the bucket's votes are attributed to
        type_index: Registry index of the (amount, duration) type
        unlocked_at: Block the bucket was unlocked at, None while locked
        unstaked_at: Block the bucket was unstaked at, None while staked
        created_at: Block the bucket was created at
    """
    id: int
    amount: Decimal
    duration: int
    delegate: str
    type_index: int
    unlocked_at: Optional[int] = None
    unstaked_at: Optional[int] = None
    created_at: int = 0

    @property
    def state(self) -> BucketState:
        if self.unstaked_at is not None:
            return BucketState.UNSTAKED
        if self.unlocked_at is None:
            return BucketState.LOCKED
        return BucketState.UNLOCKED

    @property
    def is_locked(self) -> bool:
        return self.state is BucketState.LOCKED

    @property
    def is_unlocked(self) -> bool:
        return self.state is BucketState.UNLOCKED

    @property
    def is_unstaked(self) -> bool:
        return self.state is BucketState.UNSTAKED

    @property
    def unstakable_at(self) -> Optional[int]:
        """Earliest block unstake is allowed, None while locked."""
        if self.unlocked_at is None:
            return None
        return self.unlocked_at + self.duration

    def copy(self) -> "Bucket":
        return replace(self)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'amount': str(self.amount),
            'duration': self.duration,
            'delegate': self.delegate,
            'typeIndex': self.type_index,
            'unlockedAt': self.unlocked_at,
            'unstakedAt': self.unstaked_at,
            'state': self.state.value,
            'createdAt': self.created_at,
        }


@dataclass
class VoteCounts:
    """
    Bucket counts for one delegate, indexed by bucket type index.

    Attributes:
        delegate: Delegate the counts belong to
        locked: Locked bucket count per type index
        unlocked: Unlocked bucket count per type index
    """
    delegate: str
    locked: List[int] = field(default_factory=list)
    unlocked: List[int] = field(default_factory=list)

    @property
    def total_locked(self) -> int:
        return sum(self.locked)

    @property
    def total_unlocked(self) -> int:
        return sum(self.unlocked)

    def to_dict(self) -> dict:
        return {
            'delegate': self.delegate,
            'locked': list(self.locked),
            'unlocked': list(self.unlocked),
        }
