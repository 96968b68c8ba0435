"""
Funds-transfer capability.

The engine never moves currency itself. The host supplies an object with
a transfer(recipient, amount) method; the ledger calls it only after its
own bookkeeping is complete.
"""

from dataclasses import dataclass
from typing import List, Protocol


class FundsTransfer(Protocol):
    def transfer(self, recipient: str, amount: int) -> None:
        ...


@dataclass(frozen=True)
class Transfer:
    recipient: str
    amount:    int


class InMemoryTransfer:
    """Records outbound transfers. Default capability for tests and dry runs."""

    def __init__(self) -> None:
        self.transfers: List[Transfer] = []

    def transfer(self, recipient: str, amount: int) -> None:
        self.transfers.append(Transfer(recipient=recipient, amount=amount))

    def total_to(self, recipient: str) -> int:
        return sum(t.amount for t in self.transfers if t.recipient == recipient)
