"""
Bucket Type Registry

Append-only registry of valid (amount, duration) pairs. Each type gets a
stable index at creation that is never reassigned; types are never removed,
only toggled between active and inactive.
"""

from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from ..config import StakingConfig
from ..exceptions import (
    BucketTypeStateError,
    DuplicateBucketTypeError,
    InactiveBucketTypeError,
    InvalidAmountError,
    InvalidBucketTypeError,
    InvalidDurationError,
    InvalidRangeError,
    UnknownBucketTypeError,
)
from ..logger import get_logger
from .types import AmountLike, BucketType, as_amount

logger = get_logger(__name__)


class BucketTypeRegistry:
    """
    Registry of bucket types.

    Lookups by (amount, duration) and by index are O(1). Every toggle is
    recorded as an activation interval so past activity can be queried with
    was_active_at().
    """

    def __init__(self, config: StakingConfig = None):
        """
        Args:
            config: Staking configuration (amount and duration policy)
        """
        self.config = config or StakingConfig()

        self._types: List[BucketType] = []
        self._index: Dict[Tuple[Decimal, int], int] = {}
        # index -> [(activated_at, deactivated_at or None)]
        self._history: Dict[int, List[Tuple[int, Optional[int]]]] = {}

    def __len__(self) -> int:
        return len(self._types)

    def __contains__(self, key) -> bool:
        amount, duration = key
        return self.index_of(amount, duration) is not None

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def add(self, amount: AmountLike, duration: int, now: int) -> BucketType:
        """
        Register a new bucket type, active from `now`.

        Raises:
            InvalidAmountError: amount not positive, below minimum or off-unit
            InvalidDurationError: duration not positive or outside bounds
            DuplicateBucketTypeError: pair already registered
        """
        amount = as_amount(amount)
        self._check_amount(amount)
        self._check_duration(duration)

        key = (amount, duration)
        if key in self._index:
            raise DuplicateBucketTypeError(amount, duration)

        index = len(self._types)
        bucket_type = BucketType(
            index=index,
            amount=amount,
            duration=duration,
            activated_at=now,
        )
        self._types.append(bucket_type)
        self._index[key] = index
        self._history[index] = [(now, None)]

        logger.info(f"Bucket type #{index} added: {amount} units / {duration} blocks")
        return bucket_type.copy()

    def activate(self, amount: AmountLike, duration: int, now: int) -> BucketType:
        """
        Re-activate a deactivated type. The index is unchanged.

        Raises:
            UnknownBucketTypeError: pair not registered
            BucketTypeStateError: type already active
        """
        bucket_type = self._lookup(amount, duration)
        if bucket_type.is_active:
            raise BucketTypeStateError(bucket_type.amount, bucket_type.duration, active=True)

        bucket_type.activated_at = now
        bucket_type.deactivated_at = None
        self._history[bucket_type.index].append((now, None))

        logger.info(f"Bucket type #{bucket_type.index} activated at block {now}")
        return bucket_type.copy()

    def deactivate(self, amount: AmountLike, duration: int, now: int) -> BucketType:
        """
        Deactivate a type. Existing buckets of the type are unaffected.

        Raises:
            UnknownBucketTypeError: pair not registered
            BucketTypeStateError: type already inactive
        """
        bucket_type = self._lookup(amount, duration)
        if not bucket_type.is_active:
            raise BucketTypeStateError(bucket_type.amount, bucket_type.duration, active=False)

        bucket_type.deactivated_at = now
        history = self._history[bucket_type.index]
        history[-1] = (history[-1][0], now)

        logger.info(f"Bucket type #{bucket_type.index} deactivated at block {now}")
        return bucket_type.copy()

    # =========================================================================
    # QUERIES
    # =========================================================================

    def count(self) -> int:
        return len(self._types)

    def index_of(self, amount: AmountLike, duration: int) -> Optional[int]:
        return self._index.get((as_amount(amount), duration))

    def get(self, amount: AmountLike, duration: int) -> Optional[BucketType]:
        index = self.index_of(amount, duration)
        if index is None:
            return None
        return self._types[index].copy()

    def by_index(self, index: int) -> BucketType:
        if not 0 <= index < len(self._types):
            raise InvalidRangeError(index, 1, len(self._types))
        return self._types[index].copy()

    def is_active(self, amount: AmountLike, duration: int) -> bool:
        index = self.index_of(amount, duration)
        return index is not None and self._types[index].is_active

    def was_active_at(self, amount: AmountLike, duration: int, height: int) -> bool:
        """Whether the type was active at block `height`."""
        index = self.index_of(amount, duration)
        if index is None:
            return False
        for activated_at, deactivated_at in self._history[index]:
            if activated_at <= height and (deactivated_at is None or height < deactivated_at):
                return True
        return False

    def range(self, offset: int, limit: int) -> List[BucketType]:
        """
        Page through types in index order.

        Raises:
            InvalidRangeError: offset negative or past the end, or limit not positive
        """
        count = len(self._types)
        if offset < 0 or offset >= count or limit <= 0:
            raise InvalidRangeError(offset, limit, count)
        return [t.copy() for t in self._types[offset:offset + limit]]

    def require_active(self, amount: AmountLike, duration: int) -> int:
        """
        Resolve the index of a type that a new commitment may use.

        Raises:
            InvalidBucketTypeError: pair not registered
            InvalidDurationError: duration is not an integer
            InactiveBucketTypeError: pair registered but deactivated
        """
        if not isinstance(duration, int) or isinstance(duration, bool):
            raise InvalidDurationError(f"Bucket duration must be an integer, got {duration!r}")
        amount = as_amount(amount)
        index = self._index.get((amount, duration))
        if index is None:
            raise InvalidBucketTypeError(amount, duration)
        if not self._types[index].is_active:
            raise InactiveBucketTypeError(amount, duration)
        return index

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    def _lookup(self, amount: AmountLike, duration: int) -> BucketType:
        amount = as_amount(amount)
        index = self._index.get((amount, duration))
        if index is None:
            raise UnknownBucketTypeError(amount, duration)
        return self._types[index]

    def _check_amount(self, amount: Decimal) -> None:
        if amount <= 0:
            raise InvalidAmountError(f"Bucket type amount must be positive, got {amount}")
        if amount < self.config.min_amount:
            raise InvalidAmountError(
                f"Bucket type amount {amount} is below minimum {self.config.min_amount}"
            )
        unit = self.config.amount_unit
        if unit is not None and amount % unit != 0:
            raise InvalidAmountError(
                f"Bucket type amount {amount} is not a multiple of {unit}"
            )

    def _check_duration(self, duration: int) -> None:
        if not isinstance(duration, int) or isinstance(duration, bool) or duration <= 0:
            raise InvalidDurationError(f"Bucket type duration must be a positive integer, got {duration!r}")
        if self.config.min_duration is not None and duration < self.config.min_duration:
            raise InvalidDurationError(
                f"Duration {duration} is below minimum {self.config.min_duration}"
            )
        if self.config.max_duration is not None and duration > self.config.max_duration:
            raise InvalidDurationError(
                f"Duration {duration} exceeds maximum {self.config.max_duration}"
            )
