"""
Bucket Lifecycle Engine

Orchestrates the bucket state machine over BucketStore, VoteTally and
BucketTypeRegistry:

  stake ──► Locked ⇄ Unlocked ──► Unstaked ──► (withdrawn)
               └──────────┴───────────┴──► (emergency withdrawn)

Every public call runs under one re-entrant lock and reads logical time
once. Calls validate everything first and mutate only after all checks
pass, so a raised StakingError leaves no trace. Batch calls follow the
same rule across all their buckets. Events reach the sink only
after the call has committed.

Check order for bucket operations:
  pause gate → bucket exists → caller is holder → state → parameters → type
"""

import threading
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterable, Iterator, List, Optional, Sequence

from ..config import StakingConfig
from ..exceptions import (
    ConfigurationError,
    DuplicateBucketError,
    EmptyBatchError,
    InsufficientPaymentError,
    InvalidAmountError,
    InvalidDurationError,
    InvalidParametersError,
    NotAuthorizedError,
    NotHolderError,
    NotLockedBucketError,
    NotReadyToUnstakeError,
    NotReadyToWithdrawError,
    NotStakedBucketError,
    NotUnlockedBucketError,
    NotUnstakedBucketError,
    SameDelegateError,
    StakingError,
)
from ..logger import get_logger
from .collaborators import (
    AccessControl,
    BucketOwnership,
    Clock,
    FeeLedger,
    InMemoryFeeLedger,
    InMemoryOwnership,
    InMemoryVault,
    ManualClock,
    PauseGate,
    SimplePauseGate,
    SingleOwnerAccess,
    Vault,
    compute_penalty,
)
from .events import (
    BucketExpanded,
    BucketTypeActivated,
    BucketTypeAdded,
    BucketTypeDeactivated,
    DelegateChanged,
    EmergencyWithdrawn,
    EventLog,
    EventSink,
    FeeWithdrawn,
    Locked,
    Merged,
    Paused,
    PenaltyRateChanged,
    Staked,
    StakingEvent,
    Transferred,
    Unlocked,
    Unpaused,
    Unstaked,
    Withdrawn,
)
from .registry import BucketTypeRegistry
from .store import BucketStore
from .tally import VoteTally
from .types import AmountLike, Bucket, BucketType, VoteCounts, as_amount

logger = get_logger(__name__)


class LifecycleEngine:
    """
    Bucket staking engine.

    Collaborators default to in-memory implementations; pass your own to
    plug the engine into a ledger, token contract or chain clock.
    """

    def __init__(
        self,
        config: StakingConfig = None,
        registry: BucketTypeRegistry = None,
        clock: Clock = None,
        ownership: BucketOwnership = None,
        access: AccessControl = None,
        pause_gate: PauseGate = None,
        vault: Vault = None,
        fees: FeeLedger = None,
        event_sink: EventSink = None,
        owner: Optional[str] = None,
    ):
        """
        Args:
            config: Staking configuration
            registry: Bucket type registry (a fresh one if omitted)
            clock: Logical clock
            ownership: Bucket handle ownership
            access: Access control for privileged calls
            pause_gate: Global pause switch
            vault: Custody of staked value
            fees: Penalty rate and accumulated fees
            event_sink: Callable receiving every emitted event
            owner: Admin account when `access` is omitted (else config.owner)
        """
        self.config = config or StakingConfig()
        self.registry = registry or BucketTypeRegistry(self.config)
        self.tally = VoteTally(self.registry)
        self.store = BucketStore(self.registry, self.tally)

        if access is None:
            admin = owner or self.config.owner
            if not admin:
                raise ConfigurationError("An owner account or access control is required")
            access = SingleOwnerAccess(admin)

        self.clock = clock or ManualClock()
        self.ownership = ownership or InMemoryOwnership()
        self.access = access
        self.pause_gate = pause_gate or SimplePauseGate()
        self.vault = vault or InMemoryVault()
        self.fees = fees or InMemoryFeeLedger(self.config.emergency_withdraw_penalty_rate)
        self.events = event_sink if event_sink is not None else EventLog()

        self._lock = threading.RLock()
        self._pending: Optional[List[StakingEvent]] = None

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def withdrawal_delay(self) -> int:
        return self.config.withdrawal_delay

    @property
    def paused(self) -> bool:
        return self.pause_gate.paused

    @property
    def penalty_rate(self) -> int:
        return self.fees.penalty_rate

    @property
    def accumulated_fee(self) -> Decimal:
        return self.fees.accumulated

    # =========================================================================
    # STAKING
    # =========================================================================

    def stake(self, caller: str, amount: AmountLike, duration: int, delegate: str) -> Bucket:
        """
        Create a Locked bucket for `delegate`, depositing `amount` from `caller`.

        Raises:
            SystemPausedError: system paused
            InvalidParametersError: empty delegate
            InvalidBucketTypeError: (amount, duration) not registered
            InactiveBucketTypeError: type deactivated
        """
        with self._transaction("stake") as now:
            self.pause_gate.ensure_not_paused()
            amount = as_amount(amount)
            self._check_account(delegate, "Delegate")
            self.registry.require_active(amount, duration)

            self.vault.receive(caller, amount)
            return self._create(caller, amount, duration, delegate, now).copy()

    def stake_many(
        self,
        caller: str,
        amount: AmountLike,
        duration: int,
        delegate: str,
        count: int,
        value: AmountLike,
    ) -> List[Bucket]:
        """
        Create `count` identical buckets for one delegate.

        `value` is the total deposit and must equal amount * count.
        """
        with self._transaction("stake_many") as now:
            self.pause_gate.ensure_not_paused()
            amount = as_amount(amount)
            value = as_amount(value)
            if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
                raise InvalidParametersError(f"Bucket count must be a positive integer, got {count!r}")
            if value != amount * count:
                raise InvalidParametersError(
                    f"Deposit {value} does not match {count} x {amount}"
                )
            self._check_account(delegate, "Delegate")
            self.registry.require_active(amount, duration)

            self.vault.receive(caller, value)
            return [
                self._create(caller, amount, duration, delegate, now).copy()
                for _ in range(count)
            ]

    def stake_for_delegates(
        self,
        caller: str,
        amount: AmountLike,
        duration: int,
        delegates: Sequence[str],
        value: AmountLike,
    ) -> List[Bucket]:
        """Create one bucket per delegate; `value` must equal amount * len(delegates)."""
        with self._transaction("stake_for_delegates") as now:
            self.pause_gate.ensure_not_paused()
            amount = as_amount(amount)
            value = as_amount(value)
            delegates = list(delegates)
            if not delegates:
                raise InvalidParametersError("Delegate list cannot be empty")
            if value != amount * len(delegates):
                raise InvalidParametersError(
                    f"Deposit {value} does not match {len(delegates)} x {amount}"
                )
            for delegate in delegates:
                self._check_account(delegate, "Delegate")
            self.registry.require_active(amount, duration)

            self.vault.receive(caller, value)
            return [
                self._create(caller, amount, duration, delegate, now).copy()
                for delegate in delegates
            ]

    # =========================================================================
    # LOCK / UNLOCK / UNSTAKE
    # =========================================================================

    def lock(self, caller: str, bucket_id: int, duration: int) -> None:
        """
        Re-lock an Unlocked bucket, optionally for a longer duration.

        Raises:
            NotUnlockedBucketError: bucket is not Unlocked
            InvalidDurationError: duration shorter than the current one
            InvalidBucketTypeError / InactiveBucketTypeError: target type unusable
        """
        with self._transaction("lock") as now:
            self.pause_gate.ensure_not_paused()
            bucket = self._holder_bucket(caller, bucket_id)
            self._check_lock(bucket, duration)
            self._apply_lock(bucket, duration, now)

    def lock_many(self, caller: str, bucket_ids: Iterable[int], duration: int) -> None:
        with self._transaction("lock_many") as now:
            self.pause_gate.ensure_not_paused()
            buckets = self._holder_buckets(caller, bucket_ids)
            for bucket in buckets:
                self._check_lock(bucket, duration)
            for bucket in buckets:
                self._apply_lock(bucket, duration, now)

    def unlock(self, caller: str, bucket_id: int) -> None:
        """Start the holding period of a Locked bucket."""
        with self._transaction("unlock") as now:
            self.pause_gate.ensure_not_paused()
            bucket = self._holder_bucket(caller, bucket_id)
            self._check_unlock(bucket)
            self._apply_unlock(bucket, now)

    def unlock_many(self, caller: str, bucket_ids: Iterable[int]) -> None:
        with self._transaction("unlock_many") as now:
            self.pause_gate.ensure_not_paused()
            buckets = self._holder_buckets(caller, bucket_ids)
            for bucket in buckets:
                self._check_unlock(bucket)
            for bucket in buckets:
                self._apply_unlock(bucket, now)

    def unstake(self, caller: str, bucket_id: int) -> None:
        """
        Take an Unlocked bucket out of the vote tally.

        Raises:
            NotUnlockedBucketError: bucket is not Unlocked
            NotReadyToUnstakeError: now < unlocked_at + duration
        """
        with self._transaction("unstake") as now:
            self.pause_gate.ensure_not_paused()
            bucket = self._holder_bucket(caller, bucket_id)
            self._check_unstake(bucket, now)
            self._apply_unstake(bucket, now)

    def unstake_many(self, caller: str, bucket_ids: Iterable[int]) -> None:
        with self._transaction("unstake_many") as now:
            self.pause_gate.ensure_not_paused()
            buckets = self._holder_buckets(caller, bucket_ids)
            for bucket in buckets:
                self._check_unstake(bucket, now)
            for bucket in buckets:
                self._apply_unstake(bucket, now)

    # =========================================================================
    # WITHDRAW
    # =========================================================================

    def withdraw(self, caller: str, bucket_id: int, recipient: str) -> Decimal:
        """
        Destroy an Unstaked bucket after the withdrawal delay and pay out its amount.

        Returns:
            Amount paid to `recipient`

        Raises:
            NotUnstakedBucketError: bucket is not Unstaked
            NotReadyToWithdrawError: now < unstaked_at + withdrawal delay
        """
        with self._transaction("withdraw") as now:
            self.pause_gate.ensure_not_paused()
            bucket = self._holder_bucket(caller, bucket_id)
            self._check_withdraw(bucket, now)
            self._check_account(recipient, "Recipient")
            self.vault.send(recipient, bucket.amount)
            return self._apply_withdraw(bucket, recipient, now)

    def withdraw_many(self, caller: str, bucket_ids: Iterable[int], recipient: str) -> Decimal:
        """Withdraw several buckets to one recipient. Returns the total paid."""
        with self._transaction("withdraw_many") as now:
            self.pause_gate.ensure_not_paused()
            buckets = self._holder_buckets(caller, bucket_ids)
            for bucket in buckets:
                self._check_withdraw(bucket, now)
            self._check_account(recipient, "Recipient")
            total = sum((b.amount for b in buckets), Decimal("0"))
            self.vault.send(recipient, total)
            for bucket in buckets:
                self._apply_withdraw(bucket, recipient, now)
            return total

    def emergency_withdraw(self, caller: str, bucket_id: int, recipient: str) -> Decimal:
        """
        Destroy a bucket in any state, keeping a penalty of amount * rate / 100.

        Returns:
            Amount paid to `recipient` (amount minus penalty)
        """
        with self._transaction("emergency_withdraw") as now:
            self.pause_gate.ensure_not_paused()
            bucket = self._holder_bucket(caller, bucket_id)
            self._check_account(recipient, "Recipient")

            penalty = compute_penalty(bucket.amount, self.fees.penalty_rate)
            payout = bucket.amount - penalty

            self.vault.send(recipient, payout)
            self.fees.accrue(penalty)
            self._destroy(bucket)

            self._emit(EmergencyWithdrawn(
                height=now,
                bucket_id=bucket.id,
                recipient=recipient,
                amount=payout,
                penalty=penalty,
            ))
            logger.warning(
                f"Bucket #{bucket.id} emergency withdrawn: {payout} units to {recipient} "
                f"(penalty {penalty} units)"
            )
            return payout

    # =========================================================================
    # EXPAND
    # =========================================================================

    def expand(
        self,
        caller: str,
        bucket_id: int,
        new_amount: AmountLike,
        new_duration: int,
        value: AmountLike,
    ) -> Bucket:
        """
        Grow a Locked bucket's amount and/or duration.

        `value` is the top-up deposit and must equal new_amount - amount.

        Raises:
            NotLockedBucketError: bucket is not Locked
            InvalidDurationError: new_duration shorter than the current one
            InvalidAmountError: new_amount smaller than the current one
            InsufficientPaymentError: top-up does not match the difference
            InvalidBucketTypeError / InactiveBucketTypeError: target type unusable
        """
        with self._transaction("expand") as now:
            return self._expand(caller, bucket_id, new_amount, new_duration, value, now)

    def increase_amount(
        self,
        caller: str,
        bucket_id: int,
        new_amount: AmountLike,
        value: AmountLike,
    ) -> Bucket:
        """Expand a Locked bucket's amount, keeping its duration."""
        with self._transaction("increase_amount") as now:
            self.pause_gate.ensure_not_paused()
            bucket = self._holder_bucket(caller, bucket_id)
            return self._expand(caller, bucket_id, new_amount, bucket.duration, value, now)

    def extend_duration(self, caller: str, bucket_id: int, new_duration: int) -> Bucket:
        """Expand a Locked bucket's duration, keeping its amount."""
        with self._transaction("extend_duration") as now:
            self.pause_gate.ensure_not_paused()
            bucket = self._holder_bucket(caller, bucket_id)
            return self._expand(caller, bucket_id, bucket.amount, new_duration, Decimal("0"), now)

    def _expand(self, caller, bucket_id, new_amount, new_duration, value, now) -> Bucket:
        self.pause_gate.ensure_not_paused()
        bucket = self._holder_bucket(caller, bucket_id)
        if not bucket.is_locked:
            raise NotLockedBucketError(bucket.id, bucket.state.value)

        new_amount = as_amount(new_amount)
        value = as_amount(value)
        self._check_duration(new_duration)
        if new_duration < bucket.duration:
            raise InvalidDurationError(
                f"Cannot shorten bucket #{bucket.id} from {bucket.duration} to {new_duration} blocks"
            )
        if new_amount < bucket.amount:
            raise InvalidAmountError(
                f"Cannot reduce bucket #{bucket.id} from {bucket.amount} to {new_amount}"
            )
        required = new_amount - bucket.amount
        if value != required:
            raise InsufficientPaymentError(required, value)
        self.registry.require_active(new_amount, new_duration)

        self.vault.receive(caller, value)
        self.store.retype(bucket, new_amount, new_duration)

        self._emit(BucketExpanded(
            height=now,
            bucket_id=bucket.id,
            amount=new_amount,
            duration=new_duration,
        ))
        logger.info(f"Bucket #{bucket.id} expanded: {new_amount} units / {new_duration} blocks")
        return bucket.copy()

    # =========================================================================
    # DELEGATION
    # =========================================================================

    def change_delegate(self, caller: str, bucket_id: int, delegate: str) -> None:
        """
        Point a Locked or Unlocked bucket at another delegate.

        Raises:
            NotStakedBucketError: bucket is Unstaked
            SameDelegateError: delegate unchanged
        """
        with self._transaction("change_delegate") as now:
            self.pause_gate.ensure_not_paused()
            bucket = self._holder_bucket(caller, bucket_id)
            self._check_change_delegate(bucket, delegate)
            self._apply_change_delegate(bucket, delegate, now)

    def change_delegates(self, caller: str, bucket_ids: Iterable[int], delegate: str) -> None:
        with self._transaction("change_delegates") as now:
            self.pause_gate.ensure_not_paused()
            buckets = self._holder_buckets(caller, bucket_ids)
            for bucket in buckets:
                self._check_change_delegate(bucket, delegate)
            for bucket in buckets:
                self._apply_change_delegate(bucket, delegate, now)

    # =========================================================================
    # MERGE
    # =========================================================================

    def merge(
        self,
        caller: str,
        bucket_ids: Iterable[int],
        new_duration: int,
        value: AmountLike = 0,
    ) -> Bucket:
        """
        Combine staked buckets into the first one.

        The survivor keeps its delegate, takes the summed amount plus the
        `value` top-up and `new_duration`, and is forced back to Locked. All
        other buckets are destroyed.

        Raises:
            EmptyBatchError: no bucket ids
            DuplicateBucketError: an id appears twice
            NotStakedBucketError: a bucket is Unstaked
            InvalidAmountError: negative top-up
            InvalidDurationError: new_duration shorter than any merged bucket
            InvalidBucketTypeError / InactiveBucketTypeError: merged type unusable
        """
        with self._transaction("merge") as now:
            self.pause_gate.ensure_not_paused()
            buckets = self._holder_buckets(caller, bucket_ids)
            for bucket in buckets:
                if not bucket.state.is_staked:
                    raise NotStakedBucketError(bucket.id, bucket.state.value)

            value = as_amount(value)
            if value < 0:
                raise InvalidAmountError(f"Top-up cannot be negative, got {value}")
            self._check_duration(new_duration)
            longest = max(b.duration for b in buckets)
            if new_duration < longest:
                raise InvalidDurationError(
                    f"Merged duration {new_duration} is shorter than {longest} blocks"
                )
            combined = sum((b.amount for b in buckets), value)
            self.registry.require_active(combined, new_duration)

            survivor, consumed = buckets[0], buckets[1:]
            self.vault.receive(caller, value)
            for bucket in consumed:
                self._destroy(bucket)
            self.store.recommit(survivor, combined, new_duration)

            self._emit(Merged(
                height=now,
                bucket_ids=tuple(b.id for b in buckets),
                amount=combined,
                duration=new_duration,
            ))
            logger.info(
                f"Merged {len(buckets)} buckets into #{survivor.id}: "
                f"{combined} units / {new_duration} blocks"
            )
            return survivor.copy()

    # =========================================================================
    # TRANSFER
    # =========================================================================

    def transfer(self, caller: str, bucket_id: int, recipient: str) -> None:
        """Hand a staked bucket to another holder. Unstaked buckets cannot move."""
        with self._transaction("transfer") as now:
            self.pause_gate.ensure_not_paused()
            bucket = self._holder_bucket(caller, bucket_id)
            if not bucket.state.is_staked:
                raise NotStakedBucketError(bucket.id, bucket.state.value)
            self._check_account(recipient, "Recipient")

            self.ownership.transfer(caller, recipient, bucket.id)
            self._emit(Transferred(height=now, bucket_id=bucket.id, sender=caller, recipient=recipient))
            logger.info(f"Bucket #{bucket.id} transferred from {caller} to {recipient}")

    # =========================================================================
    # QUERIES
    # =========================================================================

    def bucket_of(self, bucket_id: int) -> Bucket:
        """Copy of a bucket record. Raises UnknownBucketError."""
        with self._lock:
            return self.store.snapshot(bucket_id)

    def holder_of(self, bucket_id: int) -> str:
        with self._lock:
            self.store.get(bucket_id)
            return self.ownership.holder_of(bucket_id)

    def blocks_to_unstake(self, bucket_id: int) -> int:
        """Blocks until an Unlocked bucket may be unstaked (0 when ready)."""
        with self._lock:
            bucket = self.store.get(bucket_id)
            if not bucket.is_unlocked:
                raise NotUnlockedBucketError(bucket.id, bucket.state.value)
            return max(0, bucket.unstakable_at - self.clock.now())

    def blocks_to_withdraw(self, bucket_id: int) -> int:
        """Blocks until an Unstaked bucket may be withdrawn (0 when ready)."""
        with self._lock:
            bucket = self.store.get(bucket_id)
            if not bucket.is_unstaked:
                raise NotUnstakedBucketError(bucket.id, bucket.state.value)
            return max(0, bucket.unstaked_at + self.withdrawal_delay - self.clock.now())

    def locked_votes_to(self, delegates: Iterable[str]) -> List[List[int]]:
        """Locked bucket counts per delegate, one column per bucket type index."""
        return [row.locked for row in self.votes_to(delegates)]

    def unlocked_votes_to(self, delegates: Iterable[str]) -> List[List[int]]:
        """Unlocked bucket counts per delegate, one column per bucket type index."""
        return [row.unlocked for row in self.votes_to(delegates)]

    def votes_to(self, delegates: Iterable[str]) -> List[VoteCounts]:
        with self._lock:
            return self.tally.query(delegates)

    def num_of_bucket_types(self) -> int:
        with self._lock:
            return len(self.registry)

    def bucket_types(self, offset: int, limit: int) -> List[BucketType]:
        with self._lock:
            return self.registry.range(offset, limit)

    def is_active_bucket_type(self, amount: AmountLike, duration: int) -> bool:
        with self._lock:
            return self.registry.is_active(amount, duration)

    # =========================================================================
    # ADMINISTRATION
    # =========================================================================

    def add_bucket_type(self, caller: str, amount: AmountLike, duration: int) -> BucketType:
        with self._transaction("add_bucket_type") as now:
            self._require_admin(caller, "add bucket types")
            bucket_type = self.registry.add(amount, duration, now)
            self._emit(BucketTypeAdded(
                height=now,
                index=bucket_type.index,
                amount=bucket_type.amount,
                duration=bucket_type.duration,
            ))
            return bucket_type

    def activate_bucket_type(self, caller: str, amount: AmountLike, duration: int) -> BucketType:
        with self._transaction("activate_bucket_type") as now:
            self._require_admin(caller, "activate bucket types")
            bucket_type = self.registry.activate(amount, duration, now)
            self._emit(BucketTypeActivated(
                height=now,
                index=bucket_type.index,
                amount=bucket_type.amount,
                duration=bucket_type.duration,
            ))
            return bucket_type

    def deactivate_bucket_type(self, caller: str, amount: AmountLike, duration: int) -> BucketType:
        with self._transaction("deactivate_bucket_type") as now:
            self._require_admin(caller, "deactivate bucket types")
            bucket_type = self.registry.deactivate(amount, duration, now)
            self._emit(BucketTypeDeactivated(
                height=now,
                index=bucket_type.index,
                amount=bucket_type.amount,
                duration=bucket_type.duration,
            ))
            return bucket_type

    def pause(self, caller: str) -> None:
        with self._transaction("pause") as now:
            self._require_admin(caller, "pause")
            self.pause_gate.pause()
            self._emit(Paused(height=now, account=caller))
            logger.warning(f"Staking paused by {caller} at block {now}")

    def unpause(self, caller: str) -> None:
        with self._transaction("unpause") as now:
            self._require_admin(caller, "unpause")
            self.pause_gate.unpause()
            self._emit(Unpaused(height=now, account=caller))
            logger.warning(f"Staking unpaused by {caller} at block {now}")

    def set_emergency_withdraw_penalty_rate(self, caller: str, rate: int) -> None:
        with self._transaction("set_emergency_withdraw_penalty_rate") as now:
            self._require_admin(caller, "set the penalty rate")
            self.fees.set_penalty_rate(rate)
            self._emit(PenaltyRateChanged(height=now, rate=rate))
            logger.info(f"Emergency withdraw penalty rate set to {rate}%")

    def withdraw_fee(self, caller: str, amount: AmountLike, recipient: str) -> None:
        """
        Pay out accumulated penalty fees.

        Raises:
            NotAuthorizedError: caller is not an admin
            InvalidAmountError: amount not positive or above the accumulated fee
        """
        with self._transaction("withdraw_fee") as now:
            self._require_admin(caller, "withdraw fees")
            amount = as_amount(amount)
            self._check_account(recipient, "Recipient")
            self.fees.take(amount)
            self.vault.send(recipient, amount)
            self._emit(FeeWithdrawn(height=now, recipient=recipient, amount=amount))
            logger.info(f"Fee withdrawn: {amount} units to {recipient}")

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def _check_lock(self, bucket: Bucket, duration: int) -> None:
        if not bucket.is_unlocked:
            raise NotUnlockedBucketError(bucket.id, bucket.state.value)
        self._check_duration(duration)
        if duration < bucket.duration:
            raise InvalidDurationError(
                f"Cannot lock bucket #{bucket.id} for {duration} blocks, "
                f"shorter than its {bucket.duration}"
            )
        self.registry.require_active(bucket.amount, duration)

    def _check_unlock(self, bucket: Bucket) -> None:
        if not bucket.is_locked:
            raise NotLockedBucketError(bucket.id, bucket.state.value)

    def _check_unstake(self, bucket: Bucket, now: int) -> None:
        if not bucket.is_unlocked:
            raise NotUnlockedBucketError(bucket.id, bucket.state.value)
        if now < bucket.unstakable_at:
            raise NotReadyToUnstakeError(bucket.id, bucket.unstakable_at, now)

    def _check_withdraw(self, bucket: Bucket, now: int) -> None:
        if not bucket.is_unstaked:
            raise NotUnstakedBucketError(bucket.id, bucket.state.value)
        ready_at = bucket.unstaked_at + self.withdrawal_delay
        if now < ready_at:
            raise NotReadyToWithdrawError(bucket.id, ready_at, now)

    def _check_change_delegate(self, bucket: Bucket, delegate: str) -> None:
        if not bucket.state.is_staked:
            raise NotStakedBucketError(bucket.id, bucket.state.value)
        self._check_account(delegate, "Delegate")
        if delegate == bucket.delegate:
            raise SameDelegateError(bucket.id, delegate)

    @staticmethod
    def _check_duration(duration: int) -> None:
        if not isinstance(duration, int) or isinstance(duration, bool):
            raise InvalidDurationError(f"Duration must be a whole number of blocks, got {duration!r}")

    @staticmethod
    def _check_account(account: str, role: str) -> None:
        if not isinstance(account, str) or not account:
            raise InvalidParametersError(f"{role} must be a non-empty account, got {account!r}")

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def _create(self, holder: str, amount: Decimal, duration: int, delegate: str, now: int) -> Bucket:
        bucket = self.store.create(amount, duration, delegate, now)
        self.ownership.mint(holder, bucket.id)
        self._emit(Staked(
            height=now,
            bucket_id=bucket.id,
            holder=holder,
            delegate=delegate,
            amount=amount,
            duration=duration,
        ))
        logger.info(
            f"Bucket #{bucket.id} staked: {amount} units / {duration} blocks "
            f"delegate={delegate} LOCKED"
        )
        return bucket

    def _apply_lock(self, bucket: Bucket, duration: int, now: int) -> None:
        self.store.lock(bucket, duration)
        self._emit(Locked(height=now, bucket_id=bucket.id, duration=duration))
        logger.info(f"Bucket #{bucket.id} LOCKED for {duration} blocks")

    def _apply_unlock(self, bucket: Bucket, now: int) -> None:
        self.store.unlock(bucket, now)
        self._emit(Unlocked(height=now, bucket_id=bucket.id))
        logger.info(f"Bucket #{bucket.id} UNLOCKED at block {now}")

    def _apply_unstake(self, bucket: Bucket, now: int) -> None:
        self.store.unstake(bucket, now)
        self._emit(Unstaked(height=now, bucket_id=bucket.id))
        logger.info(f"Bucket #{bucket.id} UNSTAKED at block {now}")

    def _apply_withdraw(self, bucket: Bucket, recipient: str, now: int) -> Decimal:
        self._destroy(bucket)
        self._emit(Withdrawn(height=now, bucket_id=bucket.id, recipient=recipient, amount=bucket.amount))
        logger.info(f"Bucket #{bucket.id} withdrawn: {bucket.amount} units to {recipient}")
        return bucket.amount

    def _apply_change_delegate(self, bucket: Bucket, delegate: str, now: int) -> None:
        previous = bucket.delegate
        self.store.redelegate(bucket, delegate)
        self._emit(DelegateChanged(height=now, bucket_id=bucket.id, delegate=delegate))
        logger.info(f"Bucket #{bucket.id} delegate={previous} -> delegate={delegate}")

    def _destroy(self, bucket: Bucket) -> None:
        self.store.remove(bucket)
        self.ownership.burn(bucket.id)

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    @contextmanager
    def _transaction(self, action: str) -> Iterator[int]:
        """
        Serialize a call and read logical time once for it.

        Events are held back until the call body returns, so a failing
        call publishes nothing and a sink sees only committed changes.
        """
        with self._lock:
            outermost = self._pending is None
            if outermost:
                self._pending = []
            try:
                yield self.clock.now()
                committed = self._pending if outermost else []
            except StakingError as e:
                logger.debug(f"{action} rejected: {e}")
                raise
            finally:
                if outermost:
                    self._pending = None
            for event in committed:
                self.events(event)

    def _emit(self, event: StakingEvent) -> None:
        self._pending.append(event)

    def _require_admin(self, caller: str, action: str) -> None:
        if not self.access.is_admin(caller):
            raise NotAuthorizedError(caller, action)

    def _holder_bucket(self, caller: str, bucket_id: int) -> Bucket:
        bucket = self.store.get(bucket_id)
        if self.ownership.holder_of(bucket_id) != caller:
            raise NotHolderError(bucket_id, caller)
        return bucket

    def _holder_buckets(self, caller: str, bucket_ids: Iterable[int]) -> List[Bucket]:
        bucket_ids = list(bucket_ids)
        if not bucket_ids:
            raise EmptyBatchError("Bucket id list cannot be empty")
        seen = set()
        for bucket_id in bucket_ids:
            if bucket_id in seen:
                raise DuplicateBucketError(bucket_id)
            seen.add(bucket_id)
        return [self._holder_bucket(caller, bucket_id) for bucket_id in bucket_ids]
