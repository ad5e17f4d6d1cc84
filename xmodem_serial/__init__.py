"""XMODEM (128-byte blocks, 8-bit checksum) file transfer over a serial link."""

from .block import Block, assemble, calc_checksum, frame, next_sequence, verify
from .clock import Clock, Deadline
from .config import DEFAULT_TIMING, Timing
from .errors import (
    BlockAckTimeout,
    ConnectTimeout,
    EotAckTimeout,
    MaxRetriesExceeded,
    TransferCancelled,
    TransferTimeout,
    UnexpectedResponse,
    XModemError,
)
from .link import Link, SerialLink
from .receiver import XModemReceiver
from .sender import XModemSender
from .stats import TransferStats

__version__ = "0.1.0"

__all__ = [
    "Block",
    "BlockAckTimeout",
    "Clock",
    "ConnectTimeout",
    "DEFAULT_TIMING",
    "Deadline",
    "EotAckTimeout",
    "Link",
    "MaxRetriesExceeded",
    "SerialLink",
    "Timing",
    "TransferCancelled",
    "TransferStats",
    "TransferTimeout",
    "UnexpectedResponse",
    "XModemError",
    "XModemReceiver",
    "XModemSender",
    "assemble",
    "calc_checksum",
    "frame",
    "next_sequence",
    "verify",
]
