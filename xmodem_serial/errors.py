# errors.py

ERR_TIMEOUT_RECEIVER_CONNECT = "receiver did not connect (no NAK before deadline)"
ERR_TIMEOUT_TRANSMITTER_CONNECT = "transmitter did not connect (no data after repeated NAKs)"
ERR_TIMEOUT_ACKNOWLEDGE_BLOCK = "timed out waiting for block acknowledgment"
ERR_TIMEOUT_ACKNOWLEDGE_EOT = "timed out waiting for EOT acknowledgment"
ERR_MAX_RETRY_REACHED = "maximum number of retries reached"


class XModemError(Exception):
    """Base class for every failure raised by a transfer."""


class TransferTimeout(XModemError):
    """A deadline or retry ceiling was hit while waiting on the far end."""

    def __init__(self, operation: str, reason: str):
        super().__init__(f"{operation}: {reason}")
        self.operation = operation
        self.reason = reason


class ConnectTimeout(TransferTimeout):
    pass


class BlockAckTimeout(TransferTimeout):
    pass


class EotAckTimeout(TransferTimeout):
    pass


class MaxRetriesExceeded(TransferTimeout):
    pass


class UnexpectedResponse(XModemError):
    """Something other than ACK or NAK arrived where one was expected."""

    def __init__(self, operation: str, byte: int):
        super().__init__(f"{operation}: unexpected response byte 0x{byte:02x}")
        self.operation = operation
        self.byte = byte


class TransferCancelled(XModemError):
    pass
