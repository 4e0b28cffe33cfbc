#!/usr/bin/env python3
"""
rx_to_osp.py -- Capture OSP messages from a SiRF receiver into an OSP binary file.

Configures the receiver over its serial port (message rate, debug and
unneeded messages off, version / navigation parameters / ephemeris polls),
then stores every valid message received as a 2-byte big-endian length
followed by the payload, the format read by osp_to_rinex.py.

Requires: pyserial

Usage:
  rx_to_osp.py /dev/ttyUSB0
  rx_to_osp.py /dev/ttyUSB0 -d 60 -i 1 -f site_%Y%m%d.OSP
  rx_to_osp.py /dev/ttyUSB0 -g -e -l FINEST
"""

import argparse
import logging
import struct
import sys
import time
from datetime import datetime

import serial

from gnss_utils import FINEST, LOG_LEVELS, setup_logging
from osp_message import (
    FRAME_NO_START, FRAME_OK, FRAME_STATUS_TEXT, OSPMessage, OSPReadError,
    build_command, read_frame,
)

logger = logging.getLogger(__name__)

DEFAULT_BAUD = 57600
DEFAULT_TIMEOUT = 2  # seconds
INTER_MSG_DELAY = 0.05  # 50ms between sent commands

# Messages expected per epoch, to bound the capture when epochs do not end
MSGS_PER_EPOCH = 20

# Receiver configuration: (MID, payload, base, comment)
DISABLE_MESSAGES = [
    (166, '04 00 00 00 00 00 00', 16, 'Disable debug messages'),
    (166, '00 1D 00 00 00 00 00', 16, 'Disable MID29'),
    (166, '00 1E 00 00 00 00 00', 16, 'Disable MID30'),
    (166, '00 1F 00 00 00 00 00', 16, 'Disable MID31'),
    (166, '00 04 00 00 00 00 00', 16, 'Disable MID4'),
]
DISABLE_MID8 = (166, '00 08 00 00 00 00 00', 16, 'Disable MID8')
DISABLE_MORE_MESSAGES = [
    (166, '00 40 00 00 00 00 00', 16, 'Disable MID64'),
    (166, '00 32 00 00 00 00 00', 16, 'Disable MID50'),
    (166, '00 29 00 00 00 00 00', 16, 'Disable MID41'),
]
POLLS = [
    (132, '00', 16, 'Poll SW version'),
    (152, '00', 16, 'Poll navigation parameters'),
]
EPHEMERIS_POLLS = [
    (147, '00 00', 16, 'Poll GPS ephemeris'),
    (147, '00 00', 16, 'Poll GPS ephemeris'),
    (147, '00 00', 16, 'Poll GPS ephemeris'),
    (212, '0C', 16, 'Poll GLONASS ephemeris'),
    (212, '0C', 16, 'Poll GLONASS ephemeris'),
    (212, '0C', 16, 'Poll GLONASS ephemeris'),
]

# Exit codes
EXIT_OK = 0
EXIT_PORT = 2
EXIT_NO_OSP = 3
EXIT_CREATE = 5
EXIT_WRITE = 6
EXIT_READ = 7


def open_serial(port, baud=DEFAULT_BAUD, timeout=DEFAULT_TIMEOUT):
    """Open the receiver port (8N1) and drop any bytes already buffered.

    Exits with EXIT_PORT if the port cannot be opened.
    """
    try:
        ser = serial.Serial(port=port, baudrate=baud, timeout=timeout)
        ser.reset_input_buffer()
    except serial.SerialException as e:
        print(f"Error: cannot open receiver port {port} at {baud} baud: {e}", file=sys.stderr)
        sys.exit(EXIT_PORT)
    logger.info(f"Receiver port {port} open at {baud} baud")
    return ser


def send_command(ser, mid, args, base, comment):
    """Send an OSP command frame and wait briefly for the receiver to process it."""
    ser.write(build_command(mid, args, base))
    ser.flush()
    logger.info(f"W OSP{mid} b{base} pld:{args} {comment}")
    if INTER_MSG_DELAY:
        time.sleep(INTER_MSG_DELAY)


def configure_receiver(ser, interval, keep_mid8=False, ephemeris=True):
    """Send the configuration and poll commands for a capture."""
    commands = [(166, f'02 00 {interval} 00 00 00 00', 10,
                 f'Enable all messages every {interval} s')]
    commands += DISABLE_MESSAGES
    if not keep_mid8:
        commands.append(DISABLE_MID8)
    commands += DISABLE_MORE_MESSAGES + POLLS
    if ephemeris:
        commands += EPHEMERIS_POLLS
    for mid, args, base, comment in commands:
        send_command(ser, mid, args, base, comment)


def check_osp_output(ser, patience):
    """Read one frame to check the receiver is sending OSP messages."""
    status, _ = read_frame(ser, patience)
    if status == FRAME_NO_START:
        return False
    if status != FRAME_OK:
        logger.warning("The receiver is sending erroneous OSP messages")
    return True


def acquire(ser, out, patience, n_epochs, max_msgs, stop_mid):
    """Store received messages until n_epochs stop messages or max_msgs frames.

    Returns the exit code.
    """
    message = OSPMessage()
    msgs = epochs = 0
    while msgs < max_msgs and epochs < n_epochs:
        status, payload = read_frame(ser, patience)
        msgs += 1
        if status == FRAME_NO_START:
            logger.warning(FRAME_STATUS_TEXT[status])
            return EXIT_READ
        if status != FRAME_OK:
            logger.warning(FRAME_STATUS_TEXT[status])
            continue
        try:
            out.write(struct.pack('>H', len(payload)) + bytes(payload))
        except OSError as e:
            logger.error(f"Error writing OSP file: {e}")
            return EXIT_WRITE
        message.fill_payload(payload)
        try:
            mid = message.read_u8()
        except OSPReadError:
            continue
        if mid == stop_mid:
            epochs += 1
        logger.log(FINEST, f"R OSP{mid} len={len(payload)}")
    logger.info(f"Acq End; nMsgs:{msgs} nEpochs:{epochs}")
    return EXIT_OK


def build_parser():
    parser = argparse.ArgumentParser(
        description='Capture OSP messages from a SiRF receiver into an OSP binary file',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s /dev/ttyUSB0
  %(prog)s /dev/ttyUSB0 -d 60 -i 1 -f site_%%Y%%m%%d.OSP
  %(prog)s /dev/ttyUSB0 -g -e -l FINEST
  %(prog)s COM3 -b 115200
        """,
    )
    parser.add_argument('port', help='Serial port (e.g. /dev/ttyUSB0)')
    parser.add_argument('-a', '--patience', type=int, default=2500,
                        help='Bytes to scan for a message start (default: 2500)')
    parser.add_argument('-b', '--baud', type=int, default=DEFAULT_BAUD,
                        help=f'Baud rate (default: {DEFAULT_BAUD})')
    parser.add_argument('-d', '--duration', type=int, default=5,
                        help='Capture duration in minutes (default: 5)')
    parser.add_argument('-e', '--no-ephemeris', action='store_true',
                        help='Do not poll GPS / GLONASS ephemeris')
    parser.add_argument('-f', '--binfile', default='%Y%m%d_%H%M%S.OSP',
                        help='Output file name, strftime pattern (default: %%Y%%m%%d_%%H%%M%%S.OSP)')
    parser.add_argument('-g', '--G50bps', dest='g50bps', action='store_true',
                        help='Keep the 50 bps navigation messages (MID8)')
    parser.add_argument('-i', '--interval', type=int, default=5,
                        help='Observation interval in seconds (default: 5)')
    parser.add_argument('-l', '--llevel', default='INFO', type=str.upper, choices=list(LOG_LEVELS),
                        help='Log level (default: INFO)')
    parser.add_argument('-s', '--stop', type=int, default=7,
                        help='Message id ending an epoch (default: 7)')
    return parser


def capture(args, ser):
    """Configure the receiver and capture its messages. Returns the exit code."""
    if args.interval <= 0:
        print("Error: interval must be positive", file=sys.stderr)
        return 1
    n_epochs = args.duration * 60 // args.interval
    max_msgs = n_epochs * MSGS_PER_EPOCH
    if not check_osp_output(ser, args.patience):
        print("Error: the receiver is not sending OSP messages", file=sys.stderr)
        return EXIT_NO_OSP
    configure_receiver(ser, args.interval, args.g50bps, not args.no_ephemeris)
    name = datetime.now().strftime(args.binfile)
    try:
        out = open(name, 'wb')
    except OSError as e:
        print(f"Error: cannot create {name}: {e}", file=sys.stderr)
        return EXIT_CREATE
    with out:
        code = acquire(ser, out, args.patience, n_epochs, max_msgs, args.stop)
    print(name)
    return code


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(args.llevel)
    ser = open_serial(args.port, args.baud)
    try:
        code = capture(args, ser)
    finally:
        ser.close()
    sys.exit(code)


if __name__ == '__main__':
    main()
