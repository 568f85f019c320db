"""
Bucket Staking Core

Time-locked stake positions ("buckets") of registered (amount, duration)
types, driven through Locked → Unlocked → Unstaked → withdrawn, with a
per-delegate vote tally kept in step with every mutation.

Components:
- BucketTypeRegistry: Append-only registry of (amount, duration) types
- VoteTally: Locked/unlocked bucket counts per (delegate, type index)
- BucketStore: Bucket records and tally bookkeeping
- LifecycleEngine: All lifecycle, batch, merge and admin operations
- collaborators: Clock, ownership, access, pause, vault and fee interfaces

Usage:
    from bucketstake.staking import LifecycleEngine, ManualClock

    clock = ManualClock()
    engine = LifecycleEngine(clock=clock, owner="admin")
    engine.add_bucket_type("admin", 100, 17280)
    bucket = engine.stake("alice", 100, 17280, "delegate-1")
"""

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
from .engine import LifecycleEngine
from .events import EventLog, StakingEvent
from .registry import BucketTypeRegistry
from .store import BucketStore
from .tally import VoteTally
from .types import Bucket, BucketState, BucketType, VoteCounts, as_amount

__all__ = [
    # Engine
    'LifecycleEngine',
    'BucketTypeRegistry',
    'BucketStore',
    'VoteTally',
    # Types
    'Bucket',
    'BucketState',
    'BucketType',
    'VoteCounts',
    'as_amount',
    # Events
    'EventLog',
    'StakingEvent',
    # Collaborators
    'AccessControl',
    'BucketOwnership',
    'Clock',
    'FeeLedger',
    'InMemoryFeeLedger',
    'InMemoryOwnership',
    'InMemoryVault',
    'ManualClock',
    'PauseGate',
    'SimplePauseGate',
    'SingleOwnerAccess',
    'Vault',
    'compute_penalty',
]
