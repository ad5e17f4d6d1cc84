# sender.py
from __future__ import annotations

import enum
import logging
import os
from dataclasses import dataclass, field
from typing import BinaryIO, Optional, Union

from .block import assemble, next_sequence
from .clock import Clock, Deadline
from .config import DEFAULT_TIMING, Timing
from .constants import ACK, EOT, NAK, name_of
from .errors import (
    ERR_MAX_RETRY_REACHED,
    ERR_TIMEOUT_ACKNOWLEDGE_BLOCK,
    ERR_TIMEOUT_ACKNOWLEDGE_EOT,
    ERR_TIMEOUT_RECEIVER_CONNECT,
    BlockAckTimeout,
    ConnectTimeout,
    EotAckTimeout,
    MaxRetriesExceeded,
    UnexpectedResponse,
    XModemError,
)
from .link import Link
from .stats import TransferStats

log = logging.getLogger(__name__)

OPERATION = "send_file()"


class State(enum.Enum):
    CONNECT = "connect"
    BEGINSEND = "beginsend"
    WAITACK = "waitack"
    RESEND = "resend"
    SENDNEXT = "sendnext"
    ENDTX = "endtx"
    WAITEOTACK = "waiteotack"
    ABORT = "abort"
    DONE = "done"


class Event(enum.Enum):
    NAK = "nak"
    ACK = "ack"
    OTHER = "other"
    SILENCE = "silence"
    TIMEOUT = "timeout"
    SENT = "sent"
    NO_DATA = "no_data"
    RETRIES_EXHAUSTED = "retries_exhausted"


TRANSITIONS = {
    (State.CONNECT, Event.NAK): State.BEGINSEND,
    (State.CONNECT, Event.TIMEOUT): State.ABORT,
    (State.BEGINSEND, Event.SENT): State.WAITACK,
    (State.BEGINSEND, Event.NO_DATA): State.ENDTX,
    (State.WAITACK, Event.ACK): State.SENDNEXT,
    (State.WAITACK, Event.NAK): State.RESEND,
    (State.WAITACK, Event.OTHER): State.ABORT,
    (State.WAITACK, Event.TIMEOUT): State.ABORT,
    (State.RESEND, Event.SENT): State.WAITACK,
    (State.RESEND, Event.RETRIES_EXHAUSTED): State.ABORT,
    (State.SENDNEXT, Event.SENT): State.WAITACK,
    (State.SENDNEXT, Event.NO_DATA): State.ENDTX,
    (State.ENDTX, Event.SENT): State.WAITEOTACK,
    (State.WAITEOTACK, Event.ACK): State.DONE,
    (State.WAITEOTACK, Event.NAK): State.ENDTX,
    (State.WAITEOTACK, Event.OTHER): State.ENDTX,
    (State.WAITEOTACK, Event.SILENCE): State.ENDTX,
    (State.WAITEOTACK, Event.TIMEOUT): State.ABORT,
}


def transition(state: State, event: Event) -> State:
    try:
        return TRANSITIONS[(state, event)]
    except KeyError:
        raise ValueError(f"no transition from {state.name} on {event.name}") from None


@dataclass(slots=True)
class _Session:
    source: BinaryIO
    seq: int = 0
    retries: int = 0
    block: bytes = b""
    no_more_data: bool = False
    eot_deadline: Optional[Deadline] = None
    error: Optional[XModemError] = None
    stats: TransferStats = field(default_factory=TransferStats)


class XModemSender:
    """Sends one file over ``link`` with 128-byte checksum XMODEM.

    ``run()`` blocks until the receiver has acknowledged EOT, or raises a
    subclass of :class:`~xmodem_serial.errors.XModemError`. Errors from the
    link or the file propagate unchanged. The file is always closed first.
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
            State.BEGINSEND: self._begin_send,
            State.WAITACK: self._wait_ack,
            State.RESEND: self._resend,
            State.SENDNEXT: self._send_next,
            State.ENDTX: self._end_tx,
            State.WAITEOTACK: self._wait_eot_ack,
        }

    def run(self) -> TransferStats:
        log.info("sending %s", self.path)
        with open(self.path, "rb") as source:
            s = _Session(source)
            state = State.CONNECT
            while state not in (State.ABORT, State.DONE):
                event = self._actions[state](s)
                new_state = transition(state, event)
                log.debug("%s --%s--> %s", state.name, event.name, new_state.name)
                state = new_state

        if state is State.ABORT:
            log.error("send aborted: %s", s.error)
            raise s.error
        log.info("sent %d blocks (%d bytes, %d retransmits)",
                 s.stats.blocks, s.stats.bytes, s.stats.retransmits)
        return s.stats

    def _connect(self, s: _Session) -> Event:
        deadline = Deadline(self.clock, self.timing.connect_timeout)
        while True:
            data = self.link.read_available()
            # the far end may have flushed garbage ahead of its NAK
            if NAK in data:
                log.debug("receiver connected")
                return Event.NAK
            self.clock.wait(self.timing.connect_poll)
            if deadline.expired():
                s.error = ConnectTimeout(OPERATION, ERR_TIMEOUT_RECEIVER_CONNECT)
                return Event.TIMEOUT

    def _transmit(self, s: _Session) -> None:
        self.link.write(s.block)

    def _load(self, s: _Session) -> bool:
        block = assemble(s.seq, s.source)
        if block is None:
            s.no_more_data = True
            return False
        s.block = block
        return True

    def _begin_send(self, s: _Session) -> Event:
        s.seq = 1
        if not self._load(s):
            return Event.NO_DATA
        self._transmit(s)
        return Event.SENT

    def _wait_ack(self, s: _Session) -> Event:
        deadline = Deadline(self.clock, self.timing.ack_timeout)
        while True:
            self.clock.wait(self.timing.ack_poll)
            data = self.link.read_available()
            if data:
                break
            if deadline.expired():
                s.error = BlockAckTimeout(OPERATION, ERR_TIMEOUT_ACKNOWLEDGE_BLOCK)
                return Event.TIMEOUT

        if data[0] == ACK:
            s.stats.blocks += 1
            s.stats.bytes = s.source.tell()
            return Event.ACK
        if data[0] == NAK:
            s.retries += 1
            s.stats.naks += 1
            log.warning("NAK for block %d (retry %d)", s.seq, s.retries)
            return Event.NAK
        s.error = UnexpectedResponse(OPERATION, data[0])
        log.debug("got %s while waiting for ACK", name_of(data[0]))
        return Event.OTHER

    def _resend(self, s: _Session) -> Event:
        if s.retries > self.timing.max_retries:
            s.error = MaxRetriesExceeded(OPERATION, ERR_MAX_RETRY_REACHED)
            return Event.RETRIES_EXHAUSTED
        s.stats.retransmits += 1
        self._transmit(s)
        return Event.SENT

    def _send_next(self, s: _Session) -> Event:
        s.retries = 0
        s.seq = next_sequence(s.seq)
        if not self._load(s):
            return Event.NO_DATA
        self._transmit(s)
        return Event.SENT

    def _end_tx(self, s: _Session) -> Event:
        if s.eot_deadline is None:
            s.eot_deadline = Deadline(self.clock, self.timing.eot_ack_timeout)
        self.link.write_byte(EOT)
        return Event.SENT

    def _wait_eot_ack(self, s: _Session) -> Event:
        self.clock.wait(self.timing.eot_poll)
        data = self.link.read_available()
        if data and data[0] == ACK:
            return Event.ACK
        if s.eot_deadline.expired():
            s.error = EotAckTimeout(OPERATION, ERR_TIMEOUT_ACKNOWLEDGE_EOT)
            return Event.TIMEOUT
        if not data:
            return Event.SILENCE
        log.warning("got %s instead of ACK for EOT, resending", name_of(data[0]))
        return Event.NAK if data[0] == NAK else Event.OTHER
