"""
Bucket Store

Owns bucket records keyed by bucket id. Every state-affecting mutation goes
through a store method, which re-resolves the bucket type against the
registry and applies the matching VoteTally update, so the tally can never
drift from the records.

The store does no authorization or lifecycle-precondition checks; the
LifecycleEngine validates before calling in.
"""

from decimal import Decimal
from typing import Dict, Iterator

from ..exceptions import UnknownBucketError
from .registry import BucketTypeRegistry
from .tally import VoteTally
from .types import Bucket, BucketState


class BucketStore:
    """In-memory bucket records with tally bookkeeping."""

    def __init__(self, registry: BucketTypeRegistry, tally: VoteTally):
        self._registry = registry
        self._tally = tally
        self._buckets: Dict[int, Bucket] = {}
        self._next_id = 1

    def __len__(self) -> int:
        return len(self._buckets)

    def __contains__(self, bucket_id: int) -> bool:
        return bucket_id in self._buckets

    def __iter__(self) -> Iterator[Bucket]:
        return iter([b.copy() for b in self._buckets.values()])

    @property
    def next_id(self) -> int:
        return self._next_id

    # =========================================================================
    # READS
    # =========================================================================

    def get(self, bucket_id: int) -> Bucket:
        """Live record. Raises UnknownBucketError."""
        bucket = self._buckets.get(bucket_id)
        if bucket is None:
            raise UnknownBucketError(bucket_id)
        return bucket

    def snapshot(self, bucket_id: int) -> Bucket:
        return self.get(bucket_id).copy()

    def count(self, state: BucketState) -> int:
        return sum(1 for b in self._buckets.values() if b.state is state)

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def create(self, amount: Decimal, duration: int, delegate: str, now: int) -> Bucket:
        """Create a Locked bucket of an active type."""
        type_index = self._registry.require_active(amount, duration)
        bucket = Bucket(
            id=self._next_id,
            amount=amount,
            duration=duration,
            delegate=delegate,
            type_index=type_index,
            created_at=now,
        )
        self._next_id += 1
        self._buckets[bucket.id] = bucket
        self._tally.increment(delegate, type_index, BucketState.LOCKED)
        return bucket

    def lock(self, bucket: Bucket, duration: int) -> None:
        """Unlocked -> Locked, possibly with a longer duration (new type)."""
        type_index = self._registry.require_active(bucket.amount, duration)
        self._tally.move(
            bucket.delegate, bucket.type_index, BucketState.UNLOCKED,
            type_index, BucketState.LOCKED,
        )
        bucket.duration = duration
        bucket.type_index = type_index
        bucket.unlocked_at = None

    def unlock(self, bucket: Bucket, now: int) -> None:
        """Locked -> Unlocked."""
        self._tally.move(
            bucket.delegate, bucket.type_index, BucketState.LOCKED,
            bucket.type_index, BucketState.UNLOCKED,
        )
        bucket.unlocked_at = now

    def unstake(self, bucket: Bucket, now: int) -> None:
        """Unlocked -> Unstaked; the bucket leaves the tally."""
        self._tally.decrement(bucket.delegate, bucket.type_index, BucketState.UNLOCKED)
        bucket.unstaked_at = now

    def retype(self, bucket: Bucket, amount: Decimal, duration: int) -> None:
        """Change amount/duration of a Locked bucket."""
        type_index = self._registry.require_active(amount, duration)
        self._tally.move(
            bucket.delegate, bucket.type_index, BucketState.LOCKED,
            type_index, BucketState.LOCKED,
        )
        bucket.amount = amount
        bucket.duration = duration
        bucket.type_index = type_index

    def redelegate(self, bucket: Bucket, delegate: str) -> None:
        """Point a staked bucket at another delegate, keeping its state."""
        state = bucket.state
        self._tally.move(
            bucket.delegate, bucket.type_index, state,
            bucket.type_index, state, to_delegate=delegate,
        )
        bucket.delegate = delegate

    def recommit(self, bucket: Bucket, amount: Decimal, duration: int) -> None:
        """Force a staked bucket back to Locked with a new amount/duration."""
        type_index = self._registry.require_active(amount, duration)
        self._tally.move(
            bucket.delegate, bucket.type_index, bucket.state,
            type_index, BucketState.LOCKED,
        )
        bucket.amount = amount
        bucket.duration = duration
        bucket.type_index = type_index
        bucket.unlocked_at = None
        bucket.unstaked_at = None

    def remove(self, bucket: Bucket) -> Bucket:
        """Destroy a bucket, releasing its tally contribution if it still has one."""
        if bucket.state.is_staked:
            self._tally.decrement(bucket.delegate, bucket.type_index, bucket.state)
        del self._buckets[bucket.id]
        return bucket
