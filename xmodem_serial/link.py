# link.py
from __future__ import annotations

import logging
from typing import Protocol

import serial

log = logging.getLogger(__name__)


class Link(Protocol):
    """What the transfer engines need from the port."""

    def read_available(self) -> bytes: ...

    def write(self, data: bytes) -> None: ...

    def write_byte(self, value: int) -> None: ...

    def clear_buffers(self) -> None: ...


class SerialLink:
    """Adapts an open pyserial port to the :class:`Link` interface."""

    def __init__(self, port: serial.SerialBase):
        self.port = port

    @classmethod
    def open(cls, url: str, baudrate: int = 9600, timeout: float = 5) -> "SerialLink":
        port = serial.serial_for_url(
            url,
            baudrate=baudrate,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
            timeout=timeout,
            write_timeout=timeout,
        )
        log.debug("opened %s at %d baud", url, baudrate)
        return cls(port)

    def read_available(self) -> bytes:
        waiting = self.port.in_waiting
        if not waiting:
            return b""
        data = self.port.read(waiting)
        log.debug("read %d bytes: %s", len(data), data[:16].hex())
        return data

    def write(self, data: bytes) -> None:
        log.debug("write %d bytes: %s", len(data), data[:16].hex())
        self.port.write(data)
        self.port.flush()

    def write_byte(self, value: int) -> None:
        self.write(bytes([value]))

    def clear_buffers(self) -> None:
        self.port.reset_input_buffer()
        self.port.reset_output_buffer()

    def close(self) -> None:
        self.port.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
