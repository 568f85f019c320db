"""
Staking Collaborators

Interfaces the engine calls into for concerns it does not own, with
in-memory implementations:

- Clock           : logical time (block height)
- BucketOwnership : holder of each bucket handle
- AccessControl   : who may call privileged operations
- PauseGate       : global stop switch
- Vault           : value deposits and payouts
- FeeLedger       : emergency-withdraw penalty rate and collected fees
"""

from decimal import Decimal
from typing import Dict, Protocol

from ..constants import DEFAULT_PENALTY_RATE, MAX_PENALTY_RATE
from ..exceptions import (
    InvalidAmountError,
    InvalidParametersError,
    PauseStateError,
    SystemPausedError,
    UnknownBucketError,
)


ZERO = Decimal("0")


# ══════════════════════════════════════════════════════════════════════
#  CLOCK
# ══════════════════════════════════════════════════════════════════════

class Clock(Protocol):
    def now(self) -> int: ...


class ManualClock:
    """Logical clock advanced explicitly (block producer, tests)."""

    def __init__(self, height: int = 0):
        self._height = height

    def now(self) -> int:
        return self._height

    def advance(self, blocks: int = 1) -> int:
        if blocks < 0:
            raise ValueError("Logical time cannot go backwards")
        self._height += blocks
        return self._height

    def set(self, height: int) -> None:
        if height < self._height:
            raise ValueError("Logical time cannot go backwards")
        self._height = height


# ══════════════════════════════════════════════════════════════════════
#  OWNERSHIP
# ══════════════════════════════════════════════════════════════════════

class BucketOwnership(Protocol):
    def holder_of(self, bucket_id: int) -> str: ...
    def exists(self, bucket_id: int) -> bool: ...
    def mint(self, holder: str, bucket_id: int) -> None: ...
    def burn(self, bucket_id: int) -> None: ...
    def transfer(self, sender: str, recipient: str, bucket_id: int) -> None: ...


class InMemoryOwnership:
    """Transferable bucket handles (one holder per bucket id)."""

    def __init__(self):
        self._holders: Dict[int, str] = {}
        self._balances: Dict[str, int] = {}

    def holder_of(self, bucket_id: int) -> str:
        holder = self._holders.get(bucket_id)
        if holder is None:
            raise UnknownBucketError(bucket_id)
        return holder

    def exists(self, bucket_id: int) -> bool:
        return bucket_id in self._holders

    def balance_of(self, holder: str) -> int:
        return self._balances.get(holder, 0)

    def mint(self, holder: str, bucket_id: int) -> None:
        if bucket_id in self._holders:
            raise InvalidParametersError(f"Bucket handle #{bucket_id} already minted")
        self._holders[bucket_id] = holder
        self._balances[holder] = self._balances.get(holder, 0) + 1

    def burn(self, bucket_id: int) -> None:
        holder = self.holder_of(bucket_id)
        del self._holders[bucket_id]
        self._balances[holder] -= 1

    def transfer(self, sender: str, recipient: str, bucket_id: int) -> None:
        if self.holder_of(bucket_id) != sender:
            raise InvalidParametersError(f"{sender} does not hold bucket #{bucket_id}")
        if not recipient:
            raise InvalidParametersError("Recipient cannot be empty")
        self._holders[bucket_id] = recipient
        self._balances[sender] -= 1
        self._balances[recipient] = self._balances.get(recipient, 0) + 1


# ══════════════════════════════════════════════════════════════════════
#  ACCESS CONTROL
# ══════════════════════════════════════════════════════════════════════

class AccessControl(Protocol):
    def is_admin(self, account: str) -> bool: ...


class SingleOwnerAccess:
    """A single owner account allowed to call privileged operations."""

    def __init__(self, owner: str):
        if not owner:
            raise InvalidParametersError("Owner cannot be empty")
        self.owner = owner

    def is_admin(self, account: str) -> bool:
        return account == self.owner

    def transfer_ownership(self, new_owner: str) -> None:
        if not new_owner:
            raise InvalidParametersError("Owner cannot be empty")
        self.owner = new_owner


# ══════════════════════════════════════════════════════════════════════
#  PAUSE GATE
# ══════════════════════════════════════════════════════════════════════

class PauseGate(Protocol):
    @property
    def paused(self) -> bool: ...
    def pause(self) -> None: ...
    def unpause(self) -> None: ...
    def ensure_not_paused(self) -> None: ...


class SimplePauseGate:
    """Boolean pause switch; toggling to the current state is an error."""

    def __init__(self, paused: bool = False):
        self._paused = paused

    @property
    def paused(self) -> bool:
        return self._paused

    def pause(self) -> None:
        if self._paused:
            raise PauseStateError(paused=True)
        self._paused = True

    def unpause(self) -> None:
        if not self._paused:
            raise PauseStateError(paused=False)
        self._paused = False

    def ensure_not_paused(self) -> None:
        if self._paused:
            raise SystemPausedError()


# ══════════════════════════════════════════════════════════════════════
#  VAULT
# ══════════════════════════════════════════════════════════════════════

class Vault(Protocol):
    @property
    def held(self) -> Decimal: ...
    def receive(self, sender: str, amount: Decimal) -> None: ...
    def send(self, recipient: str, amount: Decimal) -> None: ...


class InMemoryVault:
    """
    Holds staked value and records payouts.

    `held` is what the staking system currently custodies; `balance_of`
    is the total paid out to an account.
    """

    def __init__(self):
        self._held = ZERO
        self._deposited: Dict[str, Decimal] = {}
        self._paid: Dict[str, Decimal] = {}

    @property
    def held(self) -> Decimal:
        return self._held

    def deposited_by(self, account: str) -> Decimal:
        return self._deposited.get(account, ZERO)

    def balance_of(self, account: str) -> Decimal:
        return self._paid.get(account, ZERO)

    def receive(self, sender: str, amount: Decimal) -> None:
        if amount < 0:
            raise InvalidAmountError(f"Deposit cannot be negative, got {amount}")
        self._held += amount
        self._deposited[sender] = self._deposited.get(sender, ZERO) + amount

    def send(self, recipient: str, amount: Decimal) -> None:
        if amount < 0:
            raise InvalidAmountError(f"Payout cannot be negative, got {amount}")
        if amount > self._held:
            raise InvalidAmountError(f"Payout {amount} exceeds vault holdings {self._held}")
        if not recipient:
            raise InvalidParametersError("Recipient cannot be empty")
        self._held -= amount
        self._paid[recipient] = self._paid.get(recipient, ZERO) + amount


# ══════════════════════════════════════════════════════════════════════
#  FEE LEDGER
# ══════════════════════════════════════════════════════════════════════

class FeeLedger(Protocol):
    @property
    def penalty_rate(self) -> int: ...
    @property
    def accumulated(self) -> Decimal: ...
    def set_penalty_rate(self, rate: int) -> None: ...
    def accrue(self, amount: Decimal) -> None: ...
    def take(self, amount: Decimal) -> None: ...


class InMemoryFeeLedger:
    """Emergency-withdraw penalty rate (whole percent) and the fees it collected."""

    def __init__(self, penalty_rate: int = DEFAULT_PENALTY_RATE):
        self._penalty_rate = 0
        self._accumulated = ZERO
        self.set_penalty_rate(penalty_rate)

    @property
    def penalty_rate(self) -> int:
        return self._penalty_rate

    @property
    def accumulated(self) -> Decimal:
        return self._accumulated

    def set_penalty_rate(self, rate: int) -> None:
        if isinstance(rate, bool) or not isinstance(rate, int) or not 0 <= rate <= MAX_PENALTY_RATE:
            raise InvalidParametersError(
                f"Penalty rate must be an integer 0-{MAX_PENALTY_RATE}, got {rate!r}"
            )
        self._penalty_rate = rate

    def accrue(self, amount: Decimal) -> None:
        self._accumulated += amount

    def take(self, amount: Decimal) -> None:
        if amount <= 0 or amount > self._accumulated:
            raise InvalidAmountError(
                f"Invalid fee amount {amount} (accumulated: {self._accumulated})"
            )
        self._accumulated -= amount


def compute_penalty(amount: Decimal, rate: int) -> Decimal:
    """Penalty kept on emergency withdraw: amount * rate / 100."""
    return amount * rate / MAX_PENALTY_RATE
