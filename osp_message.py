#!/usr/bin/env python3
"""
osp_message.py -- SiRF OSP message buffer and serial frame codec.

An OSP binary file is a sequence of messages, each stored as a 2-byte big-endian
payload length followed by the payload bytes. Payload byte 0 is the message id
(MID). OSPMessage holds one payload at a time and extracts typed values from it
with a read cursor.

On the serial line each payload travels inside a frame:

  A0 A2 | length (2, big-endian) | payload | checksum (2) | B0 B3

where the checksum is the 15-bit sum of the payload bytes.

Dependencies: none (standard library only)
"""

import struct

# Maximum payload size accepted by fill()
MAX_PAYLOAD_SIZE = 2048

# Read error codes, one per primitive
ERR_U8 = 1
ERR_I32 = 2
ERR_U32 = 3
ERR_I16 = 4
ERR_U16 = 5
ERR_F32 = 6
ERR_F64 = 7
ERR_I24 = 8

READ_ERROR_NAMES = {
    ERR_U8: 'U8',
    ERR_I32: 'I32',
    ERR_U32: 'U32',
    ERR_I16: 'I16',
    ERR_U16: 'U16',
    ERR_F32: 'F32',
    ERR_F64: 'F64',
    ERR_I24: 'I24',
}


class OSPReadError(Exception):
    """Raised when a read would go past the end of the message payload."""

    def __init__(self, code):
        self.code = code
        name = READ_ERROR_NAMES.get(code, '?')
        super().__init__(f"{name} read after end of message (error {code})")


class OSPMessage:
    """Fixed capacity OSP payload buffer with a read cursor."""

    def __init__(self):
        self.payload = bytearray(MAX_PAYLOAD_SIZE)
        self.length = 0
        self.cursor = 0

    def fill(self, stream):
        """Read the next length-prefixed message from a binary stream.

        Returns False at end of stream, on a length larger than MAX_PAYLOAD_SIZE
        or when fewer payload bytes than announced are available.
        """
        self.cursor = 0
        prefix = stream.read(2)
        if len(prefix) < 2:
            return False
        self.length = (prefix[0] << 8) | prefix[1]
        if self.length > MAX_PAYLOAD_SIZE:
            return False
        data = stream.read(self.length)
        if len(data) < self.length:
            return False
        self.payload[:self.length] = data
        return True

    def fill_payload(self, data):
        """Load a payload already in memory. Returns False if it does not fit."""
        self.cursor = 0
        if len(data) > MAX_PAYLOAD_SIZE:
            self.length = 0
            return False
        self.length = len(data)
        self.payload[:self.length] = data
        return True

    def payload_len(self):
        return self.length

    def skip(self, n):
        """Advance the cursor n bytes. Returns True while data remain."""
        self.cursor += n
        return self.cursor < self.length

    def _take(self, size, code):
        if self.cursor + size - 1 >= self.length:
            raise OSPReadError(code)
        start = self.cursor
        self.cursor += size
        return self.payload[start:start + size]

    def read_u8(self):
        return self._take(1, ERR_U8)[0]

    def read_i32(self):
        return struct.unpack('>i', self._take(4, ERR_I32))[0]

    def read_u32(self):
        return struct.unpack('>I', self._take(4, ERR_U32))[0]

    def read_i16(self):
        return struct.unpack('>h', self._take(2, ERR_I16))[0]

    def read_u16(self):
        return struct.unpack('>H', self._take(2, ERR_U16))[0]

    def read_i24(self):
        b = self._take(3, ERR_I24)
        value = (b[0] << 16) | (b[1] << 8) | b[2]
        if value & 0x800000:
            value -= 0x1000000
        return value

    def read_f32(self):
        return struct.unpack('>f', self._take(4, ERR_F32))[0]

    def read_f64(self):
        # Receiver sends the low-order 32-bit half first, each half big-endian
        b = self._take(8, ERR_F64)
        return struct.unpack('>d', bytes(b[4:8] + b[0:4]))[0]


# ---- Serial frame codec ----

START_SEQ = b'\xa0\xa2'
END_SEQ = b'\xb0\xb3'

# read_frame() status values
FRAME_OK = 0
FRAME_BAD_CHECKSUM = 1
FRAME_SHORT_PAYLOAD = 2
FRAME_BAD_LENGTH = 3
FRAME_SHORT_LENGTH = 4
FRAME_READ_ERROR = 5
FRAME_NO_START = 6

FRAME_STATUS_TEXT = {
    FRAME_OK: 'OK',
    FRAME_BAD_CHECKSUM: 'Error in checksum',
    FRAME_SHORT_PAYLOAD: 'Error reading payload or shorter than expected',
    FRAME_BAD_LENGTH: 'Error. Length out of margin',
    FRAME_SHORT_LENGTH: 'Error reading payload length',
    FRAME_READ_ERROR: 'Error reading payload',
    FRAME_NO_START: 'Error reading. Patience exhausted or EOF',
}


def checksum(payload):
    """OSP checksum: 15-bit sum of payload bytes."""
    total = 0
    for b in payload:
        total = (total + b) & 0x7FFF
    return total


def build_frame(payload):
    """Wrap a payload into a complete OSP frame."""
    length = len(payload)
    return (START_SEQ + struct.pack('>H', length) + bytes(payload)
            + struct.pack('>H', checksum(payload)) + END_SEQ)


def build_command(mid, args='', base=16):
    """Build a command frame from a MID and whitespace separated byte values.

    Example: build_command(166, '02 00 05 00 00 00 00', base=10)
    """
    payload = bytearray([mid & 0xFF])
    for token in args.split():
        payload.append(int(token, base) & 0xFF)
    return build_frame(payload)


def _sync(stream, patience):
    """Skip bytes until the start sequence has been read."""
    previous = None
    for _ in range(patience):
        b = stream.read(1)
        if not b:
            return False
        if previous == START_SEQ[0] and b[0] == START_SEQ[1]:
            return True
        previous = b[0]
    return False


def read_frame(stream, patience=2500):
    """Read one framed OSP message from a byte stream (serial port or file).

    Returns (status, payload). payload holds whatever was read, possibly empty.
    """
    try:
        if not _sync(stream, patience):
            return FRAME_NO_START, b''
        prefix = stream.read(2)
    except OSError:
        return FRAME_READ_ERROR, b''
    if len(prefix) != 2:
        return FRAME_SHORT_LENGTH, b''
    length = (prefix[0] << 8) | prefix[1]
    if not 0 < length < MAX_PAYLOAD_SIZE - 3:
        return FRAME_BAD_LENGTH, b''
    try:
        data = stream.read(length + 2)
    except OSError:
        return FRAME_READ_ERROR, b''
    if len(data) != length + 2:
        return FRAME_SHORT_PAYLOAD, data[:length]
    payload = data[:length]
    if checksum(payload) != ((data[length] << 8) | data[length + 1]):
        return FRAME_BAD_CHECKSUM, payload
    return FRAME_OK, payload
