#!/usr/bin/env python3
"""
gnss_utils.py -- Shared helpers for the OSP and RINEX tools.

  - GPS time arithmetic (week / time of week / seconds since the GPS epoch)
  - Bit-field helpers for navigation message words
  - Logging setup with the receiver tool level names

Dependencies: numpy
"""

import calendar
import logging
import math
import sys
from datetime import datetime, timedelta

import numpy as np

# ---- GPS time utilities ----

# GPS epoch: January 6, 1980 00:00:00
GPS_EPOCH = np.datetime64('1980-01-06T00:00:00', 'ns')
GPS_EPOCH_DT = datetime(1980, 1, 6)
SECONDS_PER_WEEK = 604800
SECONDS_PER_DAY = 86400

_GPS_EPOCH_UNIX = calendar.timegm(GPS_EPOCH_DT.timetuple())


def secs_from_date(year, month, day, hour=0, minute=0, sec=0.0):
    """Seconds from the GPS epoch to a calendar date and time.

    Out of range month/day values are normalised the way mktime does, so
    (1996, 1, 366) is the last day of 1996 and month 0 is December of the
    previous year. Fractional seconds are truncated.
    """
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    t = calendar.timegm((year, month, 1, 0, 0, 0, 0, 0, 0))
    t += (day - 1) * SECONDS_PER_DAY + hour * 3600 + minute * 60 + int(sec)
    return float(t - _GPS_EPOCH_UNIX)


def secs_from_week_tow(week, tow):
    return week * float(SECONDS_PER_WEEK) + tow


def gps_week(secs):
    return int(secs // SECONDS_PER_WEEK)


def gps_tow(secs):
    return secs - gps_week(secs) * float(SECONDS_PER_WEEK)


def set_week_tow(year, month, day, hour, minute, sec):
    """Return (week, tow) for a calendar date and time, keeping fractional seconds."""
    frac, whole = math.modf(sec)
    secs = secs_from_date(year, month, day, hour, minute, whole)
    week = gps_week(secs)
    return week, secs - week * SECONDS_PER_WEEK + frac


def gps_to_datetime(week, tow):
    """Calendar time (whole seconds) for a GPS week and time of week."""
    return GPS_EPOCH_DT + timedelta(days=week * 7, seconds=int(tow))


def gps_to_datetime64(secs):
    """numpy datetime64[ns] for an instant in seconds from the GPS epoch."""
    return GPS_EPOCH + np.timedelta64(int(round(secs * 1e9)), 'ns')


def format_gps_time(fmt, sec_fmt, week, tow):
    """Format a GPS time: strftime fmt for year..minute, sec_fmt for seconds.

    Example: format_gps_time(' %y %m %d %H %M', '%11.7f', 1825, 345600.5)
    gives ' 15 01 01 00 00  0.5000000'.
    """
    dt = gps_to_datetime(week, tow)
    seconds = dt.second + (tow - int(tow))
    return dt.strftime(fmt) + (sec_fmt % seconds)


def format_local_time(fmt):
    return datetime.now().strftime(fmt)


# ---- Bit-field helpers ----

def twos_complement(val, bits):
    """Convert unsigned value to signed (two's complement)."""
    if val >= (1 << (bits - 1)):
        val -= (1 << bits)
    return val


def sign_magnitude(val, bits):
    """Convert a sign-magnitude field (MSB is the sign) to a signed integer."""
    sign_mask = 1 << (bits - 1)
    if val & sign_mask:
        return -(val - sign_mask)
    return val


def get_bits(words, bitpos, length):
    """Extract length bits from a stream of 32-bit words.

    Stream bit n is bit n % 32 of words[n // 32]; bitpos is the position of the
    LSB of the field.
    """
    bits = 0
    for i in range(bitpos + length - 1, bitpos - 1, -1):
        bits = (bits << 1) | ((words[i // 32] >> (i % 32)) & 0x01)
    return bits


def bits_set(word):
    return bin(word & 0xFFFFFFFF).count('1')


def get_tokens(source, sep=' '):
    """Split source on sep, dropping empty tokens."""
    return [t for t in source.split(sep) if t]


# ---- Logging ----

CONFIG = 25
FINE = 15
FINER = 8
FINEST = 5

logging.addLevelName(CONFIG, 'CONFIG')
logging.addLevelName(FINE, 'FINE')
logging.addLevelName(FINER, 'FINER')
logging.addLevelName(FINEST, 'FINEST')

LOG_LEVELS = {
    'SEVERE': logging.ERROR,
    'WARNING': logging.WARNING,
    'INFO': logging.INFO,
    'CONFIG': CONFIG,
    'FINE': FINE,
    'FINER': FINER,
    'FINEST': FINEST,
}


def setup_logging(level_name='INFO', stream=None):
    """Configure the root logger for a command line tool.

    Raises ValueError for an unknown level name.
    """
    name = level_name.upper()
    if name not in LOG_LEVELS:
        raise ValueError(f"unknown log level {level_name} "
                         f"(use {', '.join(LOG_LEVELS)})")
    logging.basicConfig(
        level=LOG_LEVELS[name],
        format='%(levelname)s %(name)s: %(message)s',
        stream=stream or sys.stderr,
        force=True,
    )
    return LOG_LEVELS[name]
