# stats.py
from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(slots=True)
class TransferStats:
    blocks: int = 0
    bytes: int = 0
    retransmits: int = 0
    naks: int = 0
    duplicates: int = 0
    reconnects: int = 0

    def as_dict(self) -> dict:
        return asdict(self)
