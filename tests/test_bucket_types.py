"""
Bucket Type Registry Test Suite

Coverage:
  - add / duplicate / amount and duration policy
  - activate / deactivate toggles and activation history
  - index_of / get / by_index / range paging
  - require_active
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
    DuplicateBucketTypeError,
    InactiveBucketTypeError,
    InvalidAmountError,
    InvalidBucketTypeError,
    InvalidDurationError,
    InvalidRangeError,
    NotFoundError,
    UnknownBucketTypeError,
    ValidationError,
)
from bucketstake.staking.registry import BucketTypeRegistry


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

ONE_DAY = 17280


def make_registry(types=(), **config) -> BucketTypeRegistry:
    """Registry with the given (amount, duration) types added at height 0."""
    registry = BucketTypeRegistry(StakingConfig(**config))
    for amount, duration in types:
        registry.add(amount, duration, now=0)
    return registry


# ══════════════════════════════════════════════════════════════════════
#  ADD
# ══════════════════════════════════════════════════════════════════════


class TestAddBucketType:

    def test_add_assigns_sequential_indices(self):
        registry = make_registry()
        first = registry.add(10, ONE_DAY, now=5)
        second = registry.add(10, 2 * ONE_DAY, now=6)
        assert first.index == 0
        assert second.index == 1
        assert len(registry) == 2
        assert registry.count() == 2

    def test_new_type_is_active(self):
        registry = make_registry()
        bucket_type = registry.add("10", 100, now=7)
        assert bucket_type.is_active
        assert bucket_type.activated_at == 7
        assert bucket_type.deactivated_at is None
        assert bucket_type.amount == Decimal("10")

    def test_amount_forms_are_equivalent(self):
        registry = make_registry(types=[(10, 100)])
        assert registry.index_of(Decimal("10"), 100) == 0
        assert registry.index_of("10", 100) == 0
        assert registry.index_of(10, 100) == 0

    def test_duplicate_raises(self):
        registry = make_registry(types=[(10, 100)])
        with pytest.raises(DuplicateBucketTypeError) as exc:
            registry.add(Decimal("10.0"), 100, now=1)
        assert exc.value.duration == 100
        assert len(registry) == 1

    @pytest.mark.parametrize("amount", [0, -1, "nan", "inf", True])
    def test_invalid_amount_raises(self, amount):
        registry = make_registry()
        with pytest.raises(InvalidAmountError):
            registry.add(amount, 100, now=0)

    @pytest.mark.parametrize("duration", [0, -5, 1.5, True])
    def test_invalid_duration_raises(self, duration):
        registry = make_registry()
        with pytest.raises(InvalidDurationError):
            registry.add(10, duration, now=0)

    def test_min_amount_policy(self):
        registry = make_registry(min_amount=Decimal("100"))
        with pytest.raises(InvalidAmountError, match="below minimum"):
            registry.add(99, 100, now=0)
        registry.add(100, 100, now=0)

    def test_amount_unit_policy(self):
        registry = make_registry(amount_unit=Decimal("10"))
        with pytest.raises(InvalidAmountError, match="multiple"):
            registry.add(15, 100, now=0)
        registry.add(20, 100, now=0)

    def test_duration_bounds_policy(self):
        registry = make_registry(min_duration=ONE_DAY, max_duration=3 * ONE_DAY)
        with pytest.raises(InvalidDurationError):
            registry.add(10, ONE_DAY - 1, now=0)
        with pytest.raises(InvalidDurationError):
            registry.add(10, 3 * ONE_DAY + 1, now=0)
        registry.add(10, ONE_DAY, now=0)
        registry.add(10, 3 * ONE_DAY, now=0)

    def test_errors_share_validation_category(self):
        registry = make_registry(types=[(10, 100)])
        with pytest.raises(ValidationError):
            registry.add(10, 100, now=0)


# ══════════════════════════════════════════════════════════════════════
#  ACTIVATE / DEACTIVATE
# ══════════════════════════════════════════════════════════════════════


class TestToggleBucketType:

    def test_deactivate_then_activate(self):
        registry = make_registry(types=[(10, 100)])
        deactivated = registry.deactivate(10, 100, now=50)
        assert not deactivated.is_active
        assert deactivated.deactivated_at == 50
        assert not registry.is_active(10, 100)

        activated = registry.activate(10, 100, now=80)
        assert activated.is_active
        assert activated.activated_at == 80
        assert activated.index == 0
        assert registry.is_active(10, 100)

    def test_deactivate_inactive_raises(self):
        registry = make_registry(types=[(10, 100)])
        registry.deactivate(10, 100, now=1)
        with pytest.raises(BucketTypeStateError) as exc:
            registry.deactivate(10, 100, now=2)
        assert exc.value.active is False

    def test_activate_active_raises(self):
        registry = make_registry(types=[(10, 100)])
        with pytest.raises(BucketTypeStateError) as exc:
            registry.activate(10, 100, now=1)
        assert exc.value.active is True

    def test_toggle_unknown_raises(self):
        registry = make_registry()
        with pytest.raises(UnknownBucketTypeError):
            registry.activate(10, 100, now=0)
        with pytest.raises(UnknownBucketTypeError):
            registry.deactivate(10, 100, now=0)

    def test_was_active_at(self):
        registry = make_registry()
        registry.add(10, 100, now=10)
        registry.deactivate(10, 100, now=20)
        registry.activate(10, 100, now=30)

        assert not registry.was_active_at(10, 100, 9)
        assert registry.was_active_at(10, 100, 10)
        assert registry.was_active_at(10, 100, 19)
        assert not registry.was_active_at(10, 100, 20)
        assert not registry.was_active_at(10, 100, 29)
        assert registry.was_active_at(10, 100, 30)
        assert registry.was_active_at(10, 100, 10_000)
        assert not registry.was_active_at(99, 100, 30)


# ══════════════════════════════════════════════════════════════════════
#  QUERIES
# ══════════════════════════════════════════════════════════════════════


class TestRegistryQueries:

    def test_get_returns_copy(self):
        registry = make_registry(types=[(10, 100)])
        bucket_type = registry.get(10, 100)
        bucket_type.deactivated_at = 5
        assert registry.is_active(10, 100)

    def test_get_missing_returns_none(self):
        registry = make_registry()
        assert registry.get(10, 100) is None
        assert registry.index_of(10, 100) is None
        assert not registry.is_active(10, 100)

    def test_contains(self):
        registry = make_registry(types=[(10, 100)])
        assert (10, 100) in registry
        assert (10, 101) not in registry

    def test_by_index(self):
        registry = make_registry(types=[(10, 100), (20, 200)])
        assert registry.by_index(1).amount == Decimal("20")
        with pytest.raises(InvalidRangeError):
            registry.by_index(2)

    def test_range_pages(self):
        registry = make_registry(types=[(10, 100), (20, 100), (30, 100)])
        page = registry.range(1, 5)
        assert [t.index for t in page] == [1, 2]
        assert [t.amount for t in registry.range(0, 2)] == [Decimal("10"), Decimal("20")]

    @pytest.mark.parametrize("offset,limit", [(-1, 1), (3, 1), (0, 0), (0, -1)])
    def test_range_invalid(self, offset, limit):
        registry = make_registry(types=[(10, 100), (20, 100), (30, 100)])
        with pytest.raises(InvalidRangeError):
            registry.range(offset, limit)

    def test_range_on_empty_registry(self):
        with pytest.raises(NotFoundError):
            make_registry().range(0, 1)


class TestRequireActive:

    def test_returns_index(self):
        registry = make_registry(types=[(10, 100), (20, 100)])
        assert registry.require_active(20, 100) == 1

    def test_unregistered(self):
        registry = make_registry(types=[(10, 100)])
        with pytest.raises(InvalidBucketTypeError):
            registry.require_active(10, 200)

    def test_inactive(self):
        registry = make_registry(types=[(10, 100)])
        registry.deactivate(10, 100, now=1)
        with pytest.raises(InactiveBucketTypeError):
            registry.require_active(10, 100)

    @pytest.mark.parametrize("duration", [100.0, "100", True])
    def test_non_integer_duration(self, duration):
        registry = make_registry(types=[(10, 100)])
        with pytest.raises(InvalidDurationError):
            registry.require_active(10, duration)
