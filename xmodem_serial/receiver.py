# receiver.py
from __future__ import annotations

import enum
import logging
import os
from dataclasses import dataclass, field
from typing import BinaryIO, Optional, Union

from .block import Block, next_sequence, verify
from .clock import Clock, Deadline
from .config import DEFAULT_TIMING, Timing
from .constants import ACK, BLOCK_SIZE, EOT, NAK, SUB
from .errors import ERR_TIMEOUT_TRANSMITTER_CONNECT, ConnectTimeout, XModemError
from .link import Link
from .stats import TransferStats

log = logging.getLogger(__name__)

OPERATION = "receive_file()"


class State(enum.Enum):
    CONNECT = "connect"
    RECEIVEDATA = "receivedata"
    VERIFY = "verify"
    REPLY = "reply"
    ABORT = "abort"
    DONE = "done"


class Event(enum.Enum):
    SENT = "sent"
    RETRIES_EXHAUSTED = "retries_exhausted"
    EOT = "eot"
    BLOCK = "block"
    SILENCE = "silence"
    CHECKED = "checked"
    FINISHED = "finished"


TRANSITIONS = {
    (State.CONNECT, Event.SENT): State.RECEIVEDATA,
    (State.CONNECT, Event.RETRIES_EXHAUSTED): State.ABORT,
    (State.RECEIVEDATA, Event.EOT): State.REPLY,
    (State.RECEIVEDATA, Event.BLOCK): State.VERIFY,
    (State.RECEIVEDATA, Event.SILENCE): State.CONNECT,
    (State.VERIFY, Event.CHECKED): State.REPLY,
    (State.REPLY, Event.SENT): State.RECEIVEDATA,
    (State.REPLY, Event.FINISHED): State.DONE,
}


def transition(state: State, event: Event) -> State:
    try:
        return TRANSITIONS[(state, event)]
    except KeyError:
        raise ValueError(f"no transition from {state.name} on {event.name}") from None


@dataclass(slots=True)
class _Session:
    sink: BinaryIO
    retries: int = 0
    block: bytes = b""
    corrupted: bool = False
    done: bool = False
    expected: int = 1
    last_seq: Optional[int] = None
    # newest accepted payload, held back until we know whether it is the last
    pending: Optional[bytes] = None
    error: Optional[XModemError] = None
    stats: TransferStats = field(default_factory=TransferStats)


class XModemReceiver:
    """Receives one file from ``link`` into ``path``.

    Accepted payloads are written in order. The SUB padding of the final
    block is stripped once EOT arrives, so a file that really ends in 0x1A
    bytes loses them.
    """

    def __init__(
        self,
        link: Link,
        path: Union[str, os.PathLike],
        timing: Timing = DEFAULT_TIMING,
        clock: Optional[Clock] = None,
    ):
        self.link = link
        self.path = path
        self.timing = timing
        self.clock = clock or Clock()
        self._actions = {
            State.CONNECT: self._connect,
            State.RECEIVEDATA: self._receive_data,
            State.VERIFY: self._verify,
            State.REPLY: self._reply,
        }

    def run(self) -> TransferStats:
        log.info("receiving into %s", self.path)
        with open(self.path, "wb") as sink:
            self.link.clear_buffers()
            s = _Session(sink)
            state = State.CONNECT
            while state not in (State.ABORT, State.DONE):
                event = self._actions[state](s)
                new_state = transition(state, event)
                log.debug("%s --%s--> %s", state.name, event.name, new_state.name)
                state = new_state

        if state is State.ABORT:
            log.error("receive aborted: %s", s.error)
            raise s.error
        log.info("received %d blocks (%d bytes, %d NAKs)",
                 s.stats.blocks, s.stats.bytes, s.stats.naks)
        return s.stats

    def _connect(self, s: _Session) -> Event:
        if s.retries > self.timing.max_retries:
            s.error = ConnectTimeout(OPERATION, ERR_TIMEOUT_TRANSMITTER_CONNECT)
            return Event.RETRIES_EXHAUSTED
        self.link.write_byte(NAK)
        return Event.SENT

    def _receive_data(self, s: _Session) -> Event:
        for _ in range(self.timing.receive_attempts):
            self.clock.wait(self.timing.receive_poll)
            data = self.link.read_available()
            if not data:
                continue
            if data[0] == EOT:
                s.retries = 0
                s.done = True
                s.corrupted = False
                return Event.EOT
            block = self._collect(data)
            if block is None:
                break
            s.retries = 0
            s.block = block
            return Event.BLOCK

        s.retries += 1
        s.stats.reconnects += 1
        log.warning("nothing from transmitter, sending NAK again (retry %d)", s.retries)
        return Event.SILENCE

    def _collect(self, data: bytes) -> Optional[bytes]:
        buf = bytearray(data)
        deadline = Deadline(self.clock, self.timing.receive_window)
        while len(buf) < BLOCK_SIZE:
            if deadline.expired():
                log.warning("block stalled at %d of %d bytes, dropping it", len(buf), BLOCK_SIZE)
                # whatever trickled in since the last poll belongs to the dropped block
                late = self.link.read_available()
                if late:
                    log.debug("drained %d late bytes", len(late))
                return None
            self.clock.wait(self.timing.partial_poll)
            buf += self.link.read_available()
        if len(buf) > BLOCK_SIZE:
            log.debug("discarding %d bytes past the end of the block", len(buf) - BLOCK_SIZE)
        return bytes(buf[:BLOCK_SIZE])

    def _verify(self, s: _Session) -> Event:
        s.corrupted = not verify(s.block)
        if s.corrupted:
            s.stats.naks += 1
            log.warning("corrupted block (expected %d)", s.expected)
            return Event.CHECKED

        block = Block.from_bytes(s.block)
        if block.seq == s.expected:
            self._accept(s, block.payload)
            s.last_seq = block.seq
            s.expected = next_sequence(block.seq)
        elif block.seq == s.last_seq:
            # our ACK got lost and the sender repeated the block
            s.stats.duplicates += 1
            log.info("duplicate block %d, acknowledging again", block.seq)
        else:
            s.corrupted = True
            s.stats.naks += 1
            log.warning("block %d out of sequence, expected %d", block.seq, s.expected)
        return Event.CHECKED

    def _accept(self, s: _Session, payload: bytes) -> None:
        if s.pending is not None:
            s.sink.write(s.pending)
            s.stats.bytes += len(s.pending)
        s.pending = payload
        s.stats.blocks += 1

    def _flush(self, s: _Session) -> None:
        if s.pending is None:
            return
        tail = s.pending.rstrip(bytes([SUB]))
        s.sink.write(tail)
        s.stats.bytes += len(tail)
        s.pending = None

    def _reply(self, s: _Session) -> Event:
        if s.done:
            self._flush(s)
        self.link.write_byte(NAK if s.corrupted else ACK)
        return Event.FINISHED if s.done else Event.SENT
