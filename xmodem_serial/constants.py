# constants.py

SOH = 0x01
EOT = 0x04
ACK = 0x06
NAK = 0x15
SUB = 0x1A

PACKET_SIZE = 128
BLOCK_SIZE = PACKET_SIZE + 4

NAMES = {
    SOH: "SOH",
    EOT: "EOT",
    ACK: "ACK",
    NAK: "NAK",
    SUB: "SUB",
}


def name_of(byte):
    return NAMES.get(byte, f"0x{byte:02x}")
