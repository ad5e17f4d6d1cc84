# main.py

import argparse
import dataclasses
import json
import logging
import sys

import serial

from .config import DEFAULT_TIMING
from .errors import XModemError
from .link import SerialLink
from .receiver import XModemReceiver
from .sender import XModemSender

log = logging.getLogger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(prog="xmodem-serial", description="XModem File Transfer")
    parser.add_argument("--mode", choices=["send", "receive"], required=True, help="Mode: send or receive")
    parser.add_argument("--port", required=True, help="Serial port, e.g. COM3, /dev/ttyUSB0 or loop://")
    parser.add_argument("--file", required=True, help="File to send or save to")
    parser.add_argument("--baud", type=int, default=9600, help="Baud rate (default: 9600)")
    parser.add_argument("--timeout", type=float, default=5, help="Serial read/write timeout in seconds")
    parser.add_argument("--retries", type=int, default=DEFAULT_TIMING.max_retries,
                        help="Retries per block before giving up")
    parser.add_argument("--connect-timeout", type=float, default=DEFAULT_TIMING.connect_timeout,
                        help="Seconds the sender waits for the receiver's NAK")
    parser.add_argument("--ack-timeout", type=float, default=DEFAULT_TIMING.ack_timeout,
                        help="Seconds to wait for a block or EOT acknowledgment")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    parser.add_argument("--json", action="store_true", help="Print transfer statistics as JSON")
    return parser


def timing_from_args(args):
    return dataclasses.replace(
        DEFAULT_TIMING,
        max_retries=args.retries,
        connect_timeout=args.connect_timeout,
        ack_timeout=args.ack_timeout,
        eot_ack_timeout=args.ack_timeout,
    )


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format="%(asctime)s [%(levelname)s] %(message)s")

    try:
        link = SerialLink.open(args.port, args.baud, args.timeout)
    except serial.SerialException as e:
        print(f"Error opening serial port {args.port}: {e}", file=sys.stderr)
        return 2

    timing = timing_from_args(args)
    with link:
        engine_cls = XModemSender if args.mode == "send" else XModemReceiver
        try:
            stats = engine_cls(link, args.file, timing=timing).run()
        except XModemError as e:
            print(f"Transfer failed: {e}", file=sys.stderr)
            return 1

    payload = {"mode": args.mode, "file": args.file, **stats.as_dict()}
    print(json.dumps(payload, indent=2) if args.json else payload)
    return 0


if __name__ == "__main__":
    sys.exit(main())
