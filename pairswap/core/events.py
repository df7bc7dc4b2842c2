"""Notifications emitted by the pair engine.

Events are frozen dataclasses. The engine buffers them while an operation is
in flight and publishes them only once the operation commits, so a rolled
back call emits nothing.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum, unique
from typing import Any, Callable, Dict, Union


@unique
class EventKind(Enum):
    MINT = "Mint"
    BURN = "Burn"
    SWAP = "Swap"
    SYNC = "Sync"


@dataclass(frozen=True)
class Mint:
    sender: str
    amount_a: int
    amount_b: int

    kind = EventKind.MINT


@dataclass(frozen=True)
class Burn:
    sender: str
    amount_a: int
    amount_b: int
    recipient: str

    kind = EventKind.BURN


@dataclass(frozen=True)
class Swap:
    sender: str
    amount_a_in: int
    amount_b_in: int
    amount_a_out: int
    amount_b_out: int
    recipient: str

    kind = EventKind.SWAP


@dataclass(frozen=True)
class Sync:
    reserve_a: int
    reserve_b: int

    kind = EventKind.SYNC


Event = Union[Mint, Burn, Swap, Sync]
EventListener = Callable[[Event], None]


def event_to_dict(event: Event) -> Dict[str, Any]:
    """Serialize an event as ``{"event": <name>, **fields}``."""
    return {"event": event.kind.value, **asdict(event)}
