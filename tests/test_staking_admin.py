"""
Staking Administration Test Suite

Coverage:
  - bucket type management through the engine (admin only)
  - pause / unpause gating
  - penalty rate bounds and fee withdrawal
  - engine construction from configuration
"""

import os
import sys
from decimal import Decimal

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from bucketstake.config import StakingConfig
from bucketstake.exceptions import (
    BucketTypeStateError,
    ConfigurationError,
    InvalidAmountError,
    InvalidParametersError,
    NotAuthorizedError,
    PauseStateError,
    PolicyError,
    SystemPausedError,
    UnknownBucketTypeError,
)
from bucketstake.staking import (
    InMemoryFeeLedger,
    LifecycleEngine,
    ManualClock,
    SingleOwnerAccess,
    compute_penalty,
)
from bucketstake.staking.events import (
    BucketTypeActivated,
    BucketTypeAdded,
    BucketTypeDeactivated,
    FeeWithdrawn,
    Paused,
    PenaltyRateChanged,
    Unpaused,
)


OWNER = "0xowner"
STAKER = "0xstaker"
ALICE = "0xalice"
TREASURY = "0xtreasury"
DELEGATE = "0xdelegate"


def make_engine(**config) -> LifecycleEngine:
    engine = LifecycleEngine(config=StakingConfig(owner=OWNER, **config), clock=ManualClock())
    engine.add_bucket_type(OWNER, 10, 100)
    return engine


@pytest.fixture
def engine():
    return make_engine()


# ══════════════════════════════════════════════════════════════════════
#  BUCKET TYPES
# ══════════════════════════════════════════════════════════════════════


class TestBucketTypeAdmin:

    def test_add_bucket_type(self, engine):
        engine.clock.set(7)
        bucket_type = engine.add_bucket_type(OWNER, 20, 200)
        assert bucket_type.index == 1
        assert bucket_type.activated_at == 7
        assert engine.num_of_bucket_types() == 2
        assert engine.is_active_bucket_type(20, 200)
        event = engine.events.last()
        assert isinstance(event, BucketTypeAdded)
        assert event.index == 1

    def test_non_admin_cannot_manage_types(self, engine):
        with pytest.raises(NotAuthorizedError):
            engine.add_bucket_type(ALICE, 20, 200)
        with pytest.raises(NotAuthorizedError):
            engine.deactivate_bucket_type(ALICE, 10, 100)
        with pytest.raises(NotAuthorizedError):
            engine.activate_bucket_type(ALICE, 10, 100)
        assert engine.num_of_bucket_types() == 1
        assert engine.is_active_bucket_type(10, 100)

    def test_toggle_bucket_type(self, engine):
        engine.deactivate_bucket_type(OWNER, 10, 100)
        assert not engine.is_active_bucket_type(10, 100)
        assert isinstance(engine.events.last(), BucketTypeDeactivated)

        with pytest.raises(BucketTypeStateError):
            engine.deactivate_bucket_type(OWNER, 10, 100)

        engine.activate_bucket_type(OWNER, 10, 100)
        assert engine.is_active_bucket_type(10, 100)
        assert isinstance(engine.events.last(), BucketTypeActivated)

    def test_toggle_unknown_type(self, engine):
        with pytest.raises(UnknownBucketTypeError):
            engine.deactivate_bucket_type(OWNER, 99, 100)

    def test_bucket_types_paging(self, engine):
        engine.add_bucket_type(OWNER, 20, 100)
        engine.add_bucket_type(OWNER, 30, 100)
        page = engine.bucket_types(1, 10)
        assert [t.amount for t in page] == [Decimal("20"), Decimal("30")]
        assert page[0].to_dict()["active"] is True


# ══════════════════════════════════════════════════════════════════════
#  PAUSE
# ══════════════════════════════════════════════════════════════════════


class TestPause:

    def test_pause_blocks_mutations(self, engine):
        bucket = engine.stake(STAKER, 10, 100, DELEGATE)
        engine.pause(OWNER)
        assert engine.paused
        assert isinstance(engine.events.last(), Paused)

        for call in (
            lambda: engine.stake(STAKER, 10, 100, DELEGATE),
            lambda: engine.unlock(STAKER, bucket.id),
            lambda: engine.change_delegate(STAKER, bucket.id, ALICE),
            lambda: engine.emergency_withdraw(STAKER, bucket.id, STAKER),
            lambda: engine.transfer(STAKER, bucket.id, ALICE),
            lambda: engine.merge(STAKER, [bucket.id], 100),
        ):
            with pytest.raises(SystemPausedError):
                call()

        assert engine.bucket_of(bucket.id).is_locked
        assert engine.locked_votes_to([DELEGATE]) == [[1]]

    def test_pause_checked_before_existence(self, engine):
        engine.pause(OWNER)
        with pytest.raises(PolicyError):
            engine.unlock(STAKER, 404)

    def test_unpause_restores(self, engine):
        engine.pause(OWNER)
        engine.unpause(OWNER)
        assert not engine.paused
        assert isinstance(engine.events.last(), Unpaused)
        engine.stake(STAKER, 10, 100, DELEGATE)

    def test_pause_twice(self, engine):
        engine.pause(OWNER)
        with pytest.raises(PauseStateError):
            engine.pause(OWNER)

    def test_unpause_when_running(self, engine):
        with pytest.raises(PauseStateError):
            engine.unpause(OWNER)

    def test_pause_requires_admin(self, engine):
        with pytest.raises(NotAuthorizedError):
            engine.pause(ALICE)
        assert not engine.paused

    def test_admin_calls_allowed_while_paused(self, engine):
        engine.pause(OWNER)
        engine.add_bucket_type(OWNER, 20, 100)
        engine.set_emergency_withdraw_penalty_rate(OWNER, 5)
        assert engine.num_of_bucket_types() == 2


# ══════════════════════════════════════════════════════════════════════
#  PENALTY AND FEES
# ══════════════════════════════════════════════════════════════════════


class TestFees:

    def test_set_penalty_rate(self, engine):
        engine.set_emergency_withdraw_penalty_rate(OWNER, 25)
        assert engine.penalty_rate == 25
        assert engine.events.last(PenaltyRateChanged).rate == 25

    @pytest.mark.parametrize("rate", [101, -1, 1.5, "10"])
    def test_penalty_rate_bounds(self, engine, rate):
        with pytest.raises(InvalidParametersError):
            engine.set_emergency_withdraw_penalty_rate(OWNER, rate)
        assert engine.penalty_rate == 0

    def test_penalty_rate_requires_admin(self, engine):
        with pytest.raises(NotAuthorizedError):
            engine.set_emergency_withdraw_penalty_rate(ALICE, 50)

    def test_withdraw_fee(self, engine):
        engine.set_emergency_withdraw_penalty_rate(OWNER, 50)
        bucket = engine.stake(STAKER, 10, 100, DELEGATE)
        engine.emergency_withdraw(STAKER, bucket.id, STAKER)
        assert engine.accumulated_fee == Decimal("5")

        engine.withdraw_fee(OWNER, 3, TREASURY)
        assert engine.accumulated_fee == Decimal("2")
        assert engine.vault.balance_of(TREASURY) == Decimal("3")
        assert engine.events.last(FeeWithdrawn).amount == Decimal("3")

    def test_withdraw_fee_above_accumulated(self, engine):
        engine.set_emergency_withdraw_penalty_rate(OWNER, 50)
        bucket = engine.stake(STAKER, 10, 100, DELEGATE)
        engine.emergency_withdraw(STAKER, bucket.id, STAKER)
        with pytest.raises(InvalidAmountError):
            engine.withdraw_fee(OWNER, 6, TREASURY)
        assert engine.accumulated_fee == Decimal("5")
        assert engine.vault.balance_of(TREASURY) == Decimal("0")

    def test_withdraw_fee_requires_admin(self, engine):
        with pytest.raises(NotAuthorizedError):
            engine.withdraw_fee(ALICE, 1, ALICE)

    def test_compute_penalty(self):
        assert compute_penalty(Decimal("1"), 90) == Decimal("0.9")
        assert compute_penalty(Decimal("10"), 0) == Decimal("0")
        assert compute_penalty(Decimal("10"), 100) == Decimal("10")


# ══════════════════════════════════════════════════════════════════════
#  CONSTRUCTION
# ══════════════════════════════════════════════════════════════════════


class TestEngineConstruction:

    def test_requires_owner(self):
        with pytest.raises(ConfigurationError):
            LifecycleEngine()

    def test_config_penalty_rate(self):
        engine = make_engine(emergency_withdraw_penalty_rate=10)
        assert engine.penalty_rate == 10

    def test_explicit_collaborators(self):
        access = SingleOwnerAccess(ALICE)
        fees = InMemoryFeeLedger(penalty_rate=40)
        engine = LifecycleEngine(access=access, fees=fees)
        engine.add_bucket_type(ALICE, 10, 100)
        assert engine.penalty_rate == 40

        access.transfer_ownership(OWNER)
        with pytest.raises(NotAuthorizedError):
            engine.add_bucket_type(ALICE, 20, 100)
        engine.add_bucket_type(OWNER, 20, 100)

    def test_custom_event_sink(self):
        received = []
        engine = LifecycleEngine(owner=OWNER, event_sink=received.append)
        engine.add_bucket_type(OWNER, 10, 100)
        assert [e.name for e in received] == ["BucketTypeAdded"]
