"""
Bucket Staking Exceptions

Custom exception classes for the bucket staking core.

Every user-facing failure derives from StakingError and belongs to exactly
one category (authorization, not-found, state, validation, timing, policy).
A raised StakingError always means the call changed nothing.
"""

from decimal import Decimal
from typing import Optional


class BucketStakeException(Exception):
    """Base exception for the package."""
    pass


class ConfigurationError(BucketStakeException):
    """Configuration error."""
    pass


class TallyConsistencyError(RuntimeError):
    """
    Raised when the vote tally would go negative.

    This is an internal-consistency failure of the engine, not a caller
    error, and is deliberately outside the StakingError hierarchy.
    """
    def __init__(self, delegate: str, type_index: int, state: str):
        self.delegate = delegate
        self.type_index = type_index
        self.state = state
        super().__init__(
            f"Vote tally underflow for delegate={delegate} "
            f"type #{type_index} ({state})"
        )


class StakingError(BucketStakeException):
    """Base exception for staking operations."""
    pass


# =============================================================================
# CATEGORIES
# =============================================================================

class AuthorizationError(StakingError):
    """Caller is not allowed to perform the operation."""
    pass


class NotFoundError(StakingError):
    """Referenced bucket, bucket type or range does not exist."""
    pass


class StateError(StakingError):
    """Operation is not valid in the current lifecycle state."""
    pass


class ValidationError(StakingError):
    """Invalid parameters."""
    pass


class TimingError(StakingError):
    """Operation is valid but its holding period has not elapsed."""
    pass


class PolicyError(StakingError):
    """Operation is blocked by system policy."""
    pass


# =============================================================================
# AUTHORIZATION
# =============================================================================

class NotHolderError(AuthorizationError):
    """Raised when the caller does not hold the bucket."""
    def __init__(self, bucket_id: int, caller: str):
        self.bucket_id = bucket_id
        self.caller = caller
        super().__init__(f"{caller} is not the holder of bucket #{bucket_id}")


class NotAuthorizedError(AuthorizationError):
    """Raised when a privileged operation is called by a non-admin."""
    def __init__(self, caller: str, action: str):
        self.caller = caller
        self.action = action
        super().__init__(f"{caller} is not authorized to {action}")


# =============================================================================
# NOT FOUND
# =============================================================================

class UnknownBucketError(NotFoundError):
    """Raised when a bucket id does not exist (never created or already removed)."""
    def __init__(self, bucket_id: int):
        self.bucket_id = bucket_id
        super().__init__(f"Unknown bucket #{bucket_id}")


class UnknownBucketTypeError(NotFoundError):
    """Raised when an (amount, duration) pair is not registered."""
    def __init__(self, amount: Decimal, duration: int):
        self.amount = amount
        self.duration = duration
        super().__init__(f"Unknown bucket type ({amount}, {duration})")


class InvalidRangeError(NotFoundError):
    """Raised when a paged query starts past the end of the registry."""
    def __init__(self, offset: int, limit: int, count: int):
        self.offset = offset
        self.limit = limit
        self.count = count
        super().__init__(
            f"Invalid range offset={offset} limit={limit} (count={count})"
        )


# =============================================================================
# STATE
# =============================================================================

class _BucketStateError(StateError):
    expected = ""

    def __init__(self, bucket_id: int, actual: Optional[str] = None):
        self.bucket_id = bucket_id
        self.actual = actual
        detail = f" (is {actual})" if actual else ""
        super().__init__(f"Bucket #{bucket_id} is not {self.expected}{detail}")


class NotLockedBucketError(_BucketStateError):
    """Raised when a Locked bucket is required."""
    expected = "locked"


class NotUnlockedBucketError(_BucketStateError):
    """Raised when an Unlocked bucket is required."""
    expected = "unlocked"


class NotUnstakedBucketError(_BucketStateError):
    """Raised when an Unstaked bucket is required."""
    expected = "unstaked"


class NotStakedBucketError(_BucketStateError):
    """Raised when a still-staked (Locked or Unlocked) bucket is required."""
    expected = "staked"


class BucketTypeStateError(StateError):
    """Raised when activating an active type or deactivating an inactive one."""
    def __init__(self, amount: Decimal, duration: int, active: bool):
        self.amount = amount
        self.duration = duration
        self.active = active
        state = "active" if active else "inactive"
        super().__init__(f"Bucket type ({amount}, {duration}) is already {state}")


class PauseStateError(StateError):
    """Raised when pausing a paused system or unpausing a running one."""
    def __init__(self, paused: bool):
        self.paused = paused
        super().__init__("System is already paused" if paused else "System is not paused")


# =============================================================================
# VALIDATION
# =============================================================================

class InvalidAmountError(ValidationError):
    """Raised for a non-positive, too small, shrinking or overdrawn amount."""
    pass


class InvalidDurationError(ValidationError):
    """Raised for an out-of-bounds duration or one that would shorten a commitment."""
    pass


class InvalidParametersError(ValidationError):
    """Raised for malformed call parameters (counts, deposits, rates)."""
    pass


class InsufficientPaymentError(ValidationError):
    """Raised when the deposited value does not match what the operation needs."""
    def __init__(self, required: Decimal, actual: Decimal):
        self.required = required
        self.actual = actual
        super().__init__(f"Deposit mismatch: got {actual} (required: {required})")


class InvalidBucketTypeError(ValidationError):
    """Raised when a bucket would take an unregistered (amount, duration) pair."""
    def __init__(self, amount: Decimal, duration: int):
        self.amount = amount
        self.duration = duration
        super().__init__(f"Invalid bucket type ({amount}, {duration})")


class DuplicateBucketTypeError(ValidationError):
    """Raised when registering an (amount, duration) pair twice."""
    def __init__(self, amount: Decimal, duration: int):
        self.amount = amount
        self.duration = duration
        super().__init__(f"Duplicate bucket type ({amount}, {duration})")


class SameDelegateError(ValidationError):
    """Raised when changing a bucket's delegate to its current delegate."""
    def __init__(self, bucket_id: int, delegate: str):
        self.bucket_id = bucket_id
        self.delegate = delegate
        super().__init__(f"Bucket #{bucket_id} already delegates to {delegate}")


class EmptyBatchError(ValidationError):
    """Raised when a batch operation receives no bucket ids."""
    pass


class DuplicateBucketError(ValidationError):
    """Raised when a batch operation names the same bucket twice."""
    def __init__(self, bucket_id: int):
        self.bucket_id = bucket_id
        super().__init__(f"Bucket #{bucket_id} appears more than once")


# =============================================================================
# TIMING
# =============================================================================

class NotReadyToUnstakeError(TimingError):
    """Raised when unstaking before unlocked_at + duration."""
    def __init__(self, bucket_id: int, ready_at: int, now: int):
        self.bucket_id = bucket_id
        self.ready_at = ready_at
        self.now = now
        super().__init__(
            f"Bucket #{bucket_id} is not ready to unstake "
            f"({ready_at - now} blocks remaining)"
        )


class NotReadyToWithdrawError(TimingError):
    """Raised when withdrawing before unstaked_at + withdrawal delay."""
    def __init__(self, bucket_id: int, ready_at: int, now: int):
        self.bucket_id = bucket_id
        self.ready_at = ready_at
        self.now = now
        super().__init__(
            f"Bucket #{bucket_id} is not ready to withdraw "
            f"({ready_at - now} blocks remaining)"
        )


# =============================================================================
# POLICY
# =============================================================================

class InactiveBucketTypeError(PolicyError):
    """Raised when committing to a registered but deactivated bucket type."""
    def __init__(self, amount: Decimal, duration: int):
        self.amount = amount
        self.duration = duration
        super().__init__(f"Inactive bucket type ({amount}, {duration})")


class SystemPausedError(PolicyError):
    """Raised for any mutating call while the system is paused."""
    def __init__(self):
        super().__init__("System is paused")
