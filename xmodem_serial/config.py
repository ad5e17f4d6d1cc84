# config.py
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Timing:
    """Poll intervals, deadlines and the retry ceiling, all in seconds."""

    connect_timeout: float = 60.0
    connect_poll: float = 0.8
    ack_poll: float = 0.15
    eot_poll: float = 1.5
    ack_timeout: float = 60.0
    eot_ack_timeout: float = 60.0
    receive_poll: float = 0.3
    receive_attempts: int = 34
    partial_poll: float = 0.05
    max_retries: int = 10

    @property
    def receive_window(self) -> float:
        return self.receive_poll * self.receive_attempts


DEFAULT_TIMING = Timing()
