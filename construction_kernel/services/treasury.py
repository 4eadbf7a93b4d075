"""
construction_kernel.services.treasury -- Native value transport.

Responsibility:
    Moves native value between identities on behalf of the project state
    machine.  ``ValueTransport`` is the port the state machine depends on;
    ``InMemoryTreasury`` is the in-process substrate used by the scenario
    runner and the tests.

Architecture position:
    Kernel > Services.  Stands in for the host's value layer.  Knows
    nothing about budgets, phases or roles.

Invariants enforced:
    - Balances never go negative: a transfer larger than the source balance
      raises ``TransferFailedError`` before anything moves.
    - Transfers are atomic: the destination's receive hook runs after the
      balances move, and if the hook raises, every balance (including any
      nested transfers the hook made) is restored before the exception
      propagates.

Failure modes:
    - TransferFailedError on insufficient source balance.
    - InvalidAmountError on a negative or non-integer amount.
    - Any exception raised by a receive hook, after rollback.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Protocol, runtime_checkable

from construction_kernel.exceptions import InvalidAmountError, TransferFailedError
from construction_kernel.logging_config import get_logger

logger = get_logger("services.treasury")

# hook(source, amount); raising rejects the incoming value
ReceiveHook = Callable[[str, int], None]


@runtime_checkable
class ValueTransport(Protocol):
    """Port for synchronous, all-or-nothing value transfers."""

    def transfer(self, source: str, destination: str, amount: int) -> None:
        ...

    def register_receiver(self, identity: str, hook: ReceiveHook) -> None:
        ...


def _check_amount(amount: object) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise InvalidAmountError("amount", amount)
    return amount


class InMemoryTreasury:
    """Integer balances per identity, with optional receive hooks."""

    def __init__(self, balances: Mapping[str, int] | None = None) -> None:
        self._balances: dict[str, int] = {}
        self._receivers: dict[str, ReceiveHook] = {}
        for identity, amount in (balances or {}).items():
            self.deposit(identity, amount)

    def balance_of(self, identity: str) -> int:
        return self._balances.get(identity, 0)

    def balances(self) -> dict[str, int]:
        """Copy of all non-empty balances."""
        return {k: v for k, v in self._balances.items() if v}

    def deposit(self, identity: str, amount: int) -> None:
        """Mint ``amount`` into ``identity``. Seeding only; bypasses hooks."""
        amount = _check_amount(amount)
        self._balances[identity] = self.balance_of(identity) + amount

    def register_receiver(self, identity: str, hook: ReceiveHook) -> None:
        """Install the hook called whenever ``identity`` receives value."""
        self._receivers[identity] = hook

    def unregister_receiver(self, identity: str) -> None:
        self._receivers.pop(identity, None)

    def transfer(self, source: str, destination: str, amount: int) -> None:
        """Move ``amount`` from ``source`` to ``destination``, then notify."""
        amount = _check_amount(amount)
        available = self.balance_of(source)
        if amount > available:
            raise TransferFailedError(
                source, destination, amount,
                f"source balance {available} is insufficient",
            )

        saved = dict(self._balances)
        self._balances[source] = available - amount
        self._balances[destination] = self.balance_of(destination) + amount

        hook = self._receivers.get(destination)
        if hook is not None:
            try:
                hook(source, amount)
            except Exception as exc:
                self._balances = saved
                logger.warning(
                    "value_transfer_reverted",
                    extra={
                        "source": source,
                        "destination": destination,
                        "amount": amount,
                        "exc_code": getattr(exc, "code", type(exc).__name__),
                    },
                )
                raise

        logger.info(
            "value_transferred",
            extra={"source": source, "destination": destination, "amount": amount},
        )
