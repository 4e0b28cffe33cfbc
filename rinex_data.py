#!/usr/bin/env python3
"""
rinex_data.py -- RINEX 2.10 / 3.02 data model, printer and parser.

RinexData holds what a RINEX file carries:

  - the header records, one entry per label in a fixed table with the
    versions and file types each label applies to
  - the data of the current epoch: observables or broadcast ephemerides
  - the filtering state (selected systems, satellites and observables)

and prints or parses it in either RINEX version. Records are set and read
through set_field(label, ...) / get_field(label), with one payload shape per
label. Observation files are read epoch by epoch with read_obs_epoch(),
navigation files ephemeris by ephemeris with read_nav_epoch().

Dependencies: numpy, xarray

Usage:
  rinex = RinexData(Version.V302)
  rinex.set_field('MRKNAME', 'PNT1')
  rinex.set_field('SYS', 'G', ['C1C', 'L1C', 'D1C', 'S1C'])
  rinex.print_obs_header(out)
"""

import contextlib
import gzip
import inspect
import logging
import os
import re
import shutil
import tempfile
from collections import namedtuple
from enum import IntEnum

import numpy as np
import xarray as xr

from gnss_utils import (
    FINE, FINER, FINEST, format_gps_time, format_local_time, get_tokens,
    gps_to_datetime, gps_to_datetime64, gps_tow, gps_week, secs_from_week_tow,
    set_week_tow,
)

logger = logging.getLogger(__name__)


class RinexError(Exception):
    """Raised when data cannot be printed or a label payload is wrong."""


class Version(IntEnum):
    V210 = 0
    V302 = 1
    VALL = 2
    VTBD = 3


VERSION_NUMBER = {Version.V210: 2.10, Version.V302: 3.02}


class Label(IntEnum):
    VERSION = 0
    RUNBY = 1
    COMM = 2
    MRKNAME = 3
    MRKNUMBER = 4
    MRKTYPE = 5
    AGENCY = 6
    RECEIVER = 7
    ANTTYPE = 8
    APPXYZ = 9
    ANTHEN = 10
    ANTXYZ = 11
    ANTPHC = 12
    ANTBS = 13
    ANTZDAZI = 14
    ANTZDXYZ = 15
    COFM = 16
    WVLEN = 17
    TOBS = 18
    SYS = 19
    SIGU = 20
    INT = 21
    TOFO = 22
    TOLO = 23
    CLKOFFS = 24
    DCBS = 25
    PCVS = 26
    SCALE = 27
    PHSH = 28
    GLSLT = 29
    LEAP = 30
    SATS = 31
    PRNOBS = 32
    IONA = 33
    IONB = 34
    DUTC = 35
    IONC = 36
    TIMC = 37
    EOH = 38
    INFILEVER = 39
    NOLABEL = 40
    DONTMATCH = 41
    LASTONE = 42


class ObsStatus(IntEnum):
    EOF = 0
    OK = 1
    EVENT = 2
    BAD_OBSERVABLES = 3
    BAD_EPOCH = 4
    NO_MARKER_NAME = 5
    BAD_SPECIAL_RECORDS = 6
    EVENT_WITHOUT_DATE = 7
    BAD_FLAG = 8
    UNKNOWN_VERSION = 9


class NavStatus(IntEnum):
    EOF = 0
    OK = 1
    NEW_EPOCH = 2
    BAD_SATELLITE = 3
    BAD_DATE = 4
    BAD_DATA = 5
    UNKNOWN_VERSION = 9


# ---- Header label table ----

# Applicability of a label to a file type
NAP = 0   # not applicable
OPT = 1   # optional
OBL = 2   # obligatory

V = Version
L = Label

# (label, text in columns 61-80, version, observation file, navigation file)
LABEL_TABLE = [
    (L.VERSION, 'RINEX VERSION / TYPE', V.VALL, OBL, OBL),
    (L.RUNBY, 'PGM / RUN BY / DATE', V.VALL, OBL, OBL),
    (L.COMM, 'COMMENT', V.VALL, OPT, OPT),
    (L.MRKNAME, 'MARKER NAME', V.VALL, OBL, NAP),
    (L.MRKNUMBER, 'MARKER NUMBER', V.VALL, OPT, NAP),
    (L.MRKTYPE, 'MARKER TYPE', V.V302, OBL, NAP),
    (L.AGENCY, 'OBSERVER / AGENCY', V.VALL, OBL, NAP),
    (L.RECEIVER, 'REC # / TYPE / VERS', V.VALL, OBL, NAP),
    (L.ANTTYPE, 'ANT # / TYPE', V.VALL, OBL, NAP),
    (L.APPXYZ, 'APPROX POSITION XYZ', V.VALL, OBL, NAP),
    (L.ANTHEN, 'ANTENNA: DELTA H/E/N', V.VALL, OBL, NAP),
    (L.ANTXYZ, 'ANTENNA: DELTA X/Y/Z', V.V302, OPT, NAP),
    (L.ANTPHC, 'ANTENNA: PHASECENTER', V.V302, OPT, NAP),
    (L.ANTBS, 'ANTENNA: B.SIGHT XYZ', V.V302, OPT, NAP),
    (L.ANTZDAZI, 'ANTENNA: ZERODIR AZI', V.V302, OPT, NAP),
    (L.ANTZDXYZ, 'ANTENNA: ZERODIR XYZ', V.V302, OPT, NAP),
    (L.COFM, 'CENTER OF MASS XYZ', V.V302, OPT, NAP),
    (L.WVLEN, 'WAVELENGTH FACT L1/2', V.V210, OBL, NAP),
    (L.TOBS, '# / TYPES OF OBSERV', V.V210, OBL, NAP),
    (L.SYS, 'SYS / # / OBS TYPES', V.V302, OBL, NAP),
    (L.SIGU, 'SIGNAL STRENGTH UNIT', V.V302, OPT, NAP),
    (L.INT, 'INTERVAL', V.VALL, OPT, NAP),
    (L.TOFO, 'TIME OF FIRST OBS', V.VALL, OBL, NAP),
    (L.TOLO, 'TIME OF LAST OBS', V.VALL, OPT, NAP),
    (L.CLKOFFS, 'RCV CLOCK OFFS APPL', V.VALL, OPT, NAP),
    (L.DCBS, 'SYS / DCBS APPLIED', V.V302, OPT, NAP),
    (L.PCVS, 'SYS / PCVS APPLIED', V.V302, OPT, NAP),
    (L.SCALE, 'SYS / SCALE FACTOR', V.V302, OPT, NAP),
    (L.PHSH, 'SYS / PHASE SHIFTS', V.V302, OPT, NAP),
    (L.GLSLT, 'GLONASS SLOT / FRQ #', V.V302, OPT, NAP),
    (L.LEAP, 'LEAP SECONDS', V.VALL, OPT, OPT),
    (L.SATS, '# OF SATELLITES', V.VALL, OPT, NAP),
    (L.PRNOBS, 'PRN / # OF OBS', V.VALL, OPT, NAP),
    (L.IONA, 'ION ALPHA', V.V210, NAP, OPT),
    (L.IONB, 'ION BETA', V.V210, NAP, OPT),
    (L.DUTC, 'DELTA-UTC: A0,A1,T,W', V.V210, NAP, OPT),
    (L.IONC, 'IONOSPHERIC CORR', V.V302, NAP, OPT),
    (L.TIMC, 'TIME SYSTEM CORR', V.V302, NAP, OPT),
    (L.EOH, 'END OF HEADER', V.VALL, OBL, OBL),
]

LABEL_TEXT = {row[0]: row[1] for row in LABEL_TABLE}

# Labels holding a list of entries, one header line (or group of lines) each
LIST_LABELS = (L.WVLEN, L.DCBS, L.PCVS, L.SCALE, L.PHSH, L.GLSLT, L.PRNOBS, L.IONC, L.TIMC)

# Payload types of the labels holding one fixed set of values
FIELD_TYPES = {
    L.MRKNAME: (str,),
    L.MRKNUMBER: (str,),
    L.MRKTYPE: (str,),
    L.SIGU: (str,),
    L.AGENCY: (str, str),
    L.ANTTYPE: (str, str),
    L.RECEIVER: (str, str, str),
    L.APPXYZ: (float, float, float),
    L.ANTHEN: (float, float, float),
    L.ANTXYZ: (float, float, float),
    L.ANTBS: (float, float, float),
    L.ANTZDXYZ: (float, float, float),
    L.COFM: (float, float, float),
    L.ANTPHC: (str, str, float, float, float),
    L.ANTZDAZI: (float,),
    L.INT: (float,),
    L.CLKOFFS: (int,),
    L.SATS: (int,),
    L.LEAP: (int, int, int, int),
    L.IONA: (float, float, float, float),
    L.IONB: (float, float, float, float),
    L.DUTC: (float, float, int, int),
}

XYZ_LABELS = (L.APPXYZ, L.ANTHEN, L.ANTXYZ, L.ANTBS, L.ANTZDXYZ, L.COFM)

del V, L

# V2.10 / V3.02 observable names
OBS_V2_V3 = [
    ('L1', 'L1C'), ('L2', 'L2P'), ('C1', 'C1C'), ('P1', 'C1P'), ('P2', 'C2P'),
    ('D1', 'D1C'), ('D2', 'D2P'), ('S1', 'S1C'), ('S2', 'S2P'),
]

SYS_DESCRIPTION = {
    'G': ': GPS',
    'E': ': Galileo',
    'S': ': SBAS payload',
    'R': ': GLONASS',
    'M': ': Mixed',
}

# File type and description printed in V2.10 navigation files, per system
V2_NAV_TYPES = {
    'G': ('N', 'avigation GPS'),
    'R': ('G', 'LONASS navigation'),
    'S': ('H', ':SBAS navigation'),
    'E': ('E', ':Galileo navigation'),
}

# Broadcast orbit lines and parameters (after the clock line) per system
NAV_LAYOUT = {
    'G': (8, 26),
    'E': (8, 25),
    'S': (4, 12),
    'R': (4, 12),
}

# Observation values must fit the F14.3 format
MINOBSVAL = -999999999.999
MAXOBSVAL = 9999999999.999

MAX_NOLABEL_LINES = 10


class HeaderRecord:
    """One entry of the header record table."""

    def __init__(self, label, text, version, obs, nav, comment=None):
        self.label = label
        self.text = text
        self.version = version
        self.obs = obs
        self.nav = nav
        self.comment = comment
        self.has_data = comment is not None

    def applies(self, version, file_kind):
        """True if the record can be printed in the given version and file
        kind ('obs' or 'nav')."""
        applicability = self.obs if file_kind == 'obs' else self.nav
        return applicability != NAP and self.version in (Version.VALL, version)


class GNSSSystem:
    """A satellite system with its observable types and selection flags."""

    def __init__(self, system, obs_types):
        self.system = system
        self.obs_types = list(obs_types)
        self.selected = True
        self.sel_obs = [True] * len(self.obs_types)
        self.sel_sats = []

    def is_sat_selected(self, sat):
        return not self.sel_sats or sat in self.sel_sats

    def selected_obs(self):
        return [o for o, sel in zip(self.obs_types, self.sel_obs) if sel]

    def __repr__(self):
        return f"GNSSSystem({self.system!r}, {self.obs_types!r})"


ObsRecord = namedtuple('ObsRecord', ['tag', 'sys_index', 'sat', 'obs_index', 'value', 'lol', 'strength'])
NavRecord = namedtuple('NavRecord', ['tag', 'system', 'sat', 'bo'])


def _obs_key(rec):
    return rec.tag, rec.sys_index, rec.sat, rec.obs_index


def _nav_key(rec):
    return rec.tag, rec.system, rec.sat


def _as_label(label):
    if isinstance(label, Label):
        return label
    try:
        return Label[label] if isinstance(label, str) else Label(label)
    except (KeyError, ValueError):
        raise RinexError(f"Unknown RINEX label {label}") from None


def _hd_line(content, text):
    return '%-60.60s%-20.20s\n' % (content, text)


def _groups(first, cont, items, per_line):
    """Contents of a record made of a list of items, per_line items in each line.

    first prefixes the first line, cont the continuation lines.
    """
    if not items:
        return []
    lines = []
    content = first
    for i, item in enumerate(items):
        if i and i % per_line == 0:
            lines.append(content)
            content = cont
        content += item
    lines.append(content)
    return lines


def _to_float(field, blank=None):
    """Parse a fixed column float; D exponents are accepted."""
    field = field.strip()
    if not field:
        if blank is None:
            raise ValueError("empty field")
        return blank
    return float(field.replace('D', 'E').replace('d', 'e'))


def _to_int(field, blank=None):
    field = field.strip()
    if not field:
        if blank is None:
            raise ValueError("empty field")
        return blank
    return int(field)


def _leading_int(text):
    """Integer at the start of text, 0 if there is none."""
    m = re.match(r'\s*([+-]?\d+)', text)
    return int(m.group(1)) if m else 0


def _read_record(inp, width=80):
    """Next non blank line without its line end, padded with blanks to width.

    Returns None at end of input.
    """
    while True:
        line = inp.readline()
        if not line:
            return None
        line = line.rstrip('\r\n')
        if line.strip():
            return line.ljust(width)


def _read_line(inp, width=80):
    """Next line, blank or not, padded to width. None at end of input."""
    line = inp.readline()
    if not line:
        return None
    return line.rstrip('\r\n').ljust(width)


def obs_v2_to_v3(name):
    for v2, v3 in OBS_V2_V3:
        if v2 == name:
            return v3
    return ''


def _full_year(yy):
    return yy + 1900 if yy >= 80 else yy + 2000


class RinexData:
    """RINEX header records and epoch data, with their printer and parser.

    version is the version to print; Version.VTBD means "the version of the
    input file", which is known once a header has been read.
    """

    def __init__(self, version=Version.VTBD):
        self.version = Version(version)
        self.in_file_ver = Version.VTBD
        self.file_type = 'O'
        self.file_type_sfx = ''
        self.system_id = 'G'
        self.system_id_sfx = ''
        self.records = [HeaderRecord(*row) for row in LABEL_TABLE if row[0] != Label.COMM]
        self._last_index = None
        self.fields = {}
        self.lists = {label: [] for label in LIST_LABELS}
        self.pgm = ''
        self.runby = ''
        self.date = ''
        self.first_obs = (0, 0.0)
        self.last_obs = (0, 0.0)
        self.obs_time_sys = ''
        self.systems = []
        self.v2_obs_list = []
        # V2 file data columns: observable type index, None if not translated
        self.v2_columns = []
        # filtering
        self.selected_sats = []
        self.apply_obs_filter = False
        self.apply_nav_filter = False
        # current epoch
        self.epoch_week = 0
        self.epoch_tow = 0.0
        self.epoch_clk_offset = 0.0
        self.epoch_flag = 0
        self.epoch_time_tag = 0.0
        self.obs_data = []
        self.nav_data = []
        self.records[self._record_index(Label.EOH)].has_data = True

    # ---- Label table helpers ----

    def _record_index(self, label):
        for i, rec in enumerate(self.records):
            if rec.label == label:
                return i
        return None

    def set_label_flag(self, label, value=True):
        i = self._record_index(label)
        if i is not None:
            self.records[i].has_data = value
            self._last_index = i

    def get_label_flag(self, label):
        i = self._record_index(label)
        return i is not None and self.records[i].has_data

    def labels_with_data(self):
        """Labels of the records having data, in printing order."""
        for rec in self.records:
            if rec.has_data:
                yield rec.label

    def _comments(self):
        return [rec for rec in self.records if rec.label == Label.COMM]

    def _sys_index(self, system):
        for i, s in enumerate(self.systems):
            if s.system == system:
                return i
        return -1

    def _n_selected_systems(self):
        return sum(1 for s in self.systems if s.selected)

    # ---- Header records: setters ----

    def set_field(self, label, *args):
        """Set the data of a header record and flag it as present.

        The payload depends on the label, e.g.
          set_field('APPXYZ', x, y, z)
          set_field('SYS', 'G', ['C1C', 'L1C'])
          set_field('COMM', Label.EOH, 'a comment')
        Returns False when the data could not be set. Raises RinexError when
        the payload does not match the label.
        """
        label = _as_label(label)
        text = LABEL_TEXT.get(label, label.name)
        if label in FIELD_TYPES:
            return self._set_values(label, args)
        setter = getattr(self, '_set_' + label.name.lower(), None)
        if setter is None:
            raise RinexError(f"{text}: cannot be set")
        try:
            inspect.signature(setter).bind(*args)
        except TypeError as e:
            raise RinexError(f"{text}: label payload mismatch ({e})") from None
        return setter(*args)

    def _set_values(self, label, args):
        types = FIELD_TYPES[label]
        if label == Label.LEAP and len(args) == 1:
            args = (args[0], 0, 0, 0)
        if len(args) != len(types):
            raise RinexError(f"{LABEL_TEXT[label]}: label payload mismatch "
                             f"({len(types)} values expected, {len(args)} given)")
        try:
            self.fields[label] = tuple(t(a) for t, a in zip(types, args))
        except (TypeError, ValueError) as e:
            raise RinexError(f"{LABEL_TEXT[label]}: label payload mismatch ({e})") from None
        self.set_label_flag(label)
        return True

    def _set_version(self, number):
        if 2.0 <= number < 3.0:
            self.version = Version.V210
        elif 3.0 <= number < 4.0:
            self.version = Version.V302
        else:
            return False
        self.set_label_flag(Label.VERSION)
        return True

    def _set_runby(self, pgm, runby):
        self.pgm = pgm
        self.runby = runby
        self.date = format_local_time('%Y%m%d %H%M%S LCL')
        self.set_label_flag(Label.RUNBY)
        return True

    def _set_comm(self, before, text):
        """Insert a comment before the first record with label before, or
        before END OF HEADER."""
        before = _as_label(before)
        for i, rec in enumerate(self.records):
            if rec.label in (before, Label.EOH):
                self.records.insert(i, HeaderRecord(Label.COMM, LABEL_TEXT[Label.COMM],
                                                    Version.VALL, OPT, OPT, comment=text))
                self._last_index = i
                return True
        return False

    def _set_tofo(self, time_sys=None):
        self.first_obs = (self.epoch_week, self.epoch_tow)
        if time_sys is not None:
            self.obs_time_sys = time_sys
        elif not self.obs_time_sys:
            self.obs_time_sys = {'E': 'GAL', 'R': 'GLO'}.get(self.system_id, 'GPS')
        self.set_label_flag(Label.TOFO)
        return True

    def _set_tolo(self):
        self.last_obs = (self.epoch_week, self.epoch_tow)
        self.set_label_flag(Label.TOLO)
        return True

    def _set_wvlen(self, l1, l2, sats=()):
        sats = list(sats)
        if len(sats) > 7:
            return False
        self.lists[Label.WVLEN].append((int(l1), int(l2), sats))
        self.set_label_flag(Label.WVLEN)
        return True

    def _set_sys(self, system, obs_types):
        i = self._sys_index(system)
        if i < 0:
            self.systems.append(GNSSSystem(system, obs_types))
        else:
            self.systems[i] = GNSSSystem(system, obs_types)
        self.set_label_flag(Label.TOBS)
        self.set_label_flag(Label.SYS)
        return True

    _set_tobs = _set_sys

    def _set_dcbs(self, system, program, source):
        return self._set_corrections(Label.DCBS, system, program, source)

    def _set_pcvs(self, system, program, source):
        return self._set_corrections(Label.PCVS, system, program, source)

    def _set_corrections(self, label, system, program, source):
        if self._sys_index(system) < 0:
            logger.warning(f"{LABEL_TEXT[label]}: system {system} not in SYS/TOBS records")
            return False
        self.lists[label].append((system, program, source))
        self.set_label_flag(label)
        return True

    def _set_scale(self, system, factor, obs_types):
        if self._sys_index(system) < 0:
            return False
        self.lists[Label.SCALE].append((system, int(factor), list(obs_types)))
        self.set_label_flag(Label.SCALE)
        return True

    def _set_phsh(self, system, obs_code, correction, sats):
        if self._sys_index(system) < 0:
            return False
        self.lists[Label.PHSH].append((system, obs_code, float(correction), list(sats)))
        self.set_label_flag(Label.PHSH)
        return True

    def _set_glslt(self, slot, frequency):
        self.lists[Label.GLSLT].append((int(slot), int(frequency)))
        self.set_label_flag(Label.GLSLT)
        return True

    def _set_prnobs(self, system, prn, counts):
        self.lists[Label.PRNOBS].append((system, int(prn), list(counts)))
        self.set_label_flag(Label.PRNOBS)
        return True

    def _set_ionc(self, corr_type, values):
        self.lists[Label.IONC].append((corr_type, [float(v) for v in values]))
        self.set_label_flag(Label.IONC)
        return True

    def _set_timc(self, corr_type, a0, a1, ref_time, ref_week, sbas, utc_id):
        self.lists[Label.TIMC].append((corr_type, float(a0), float(a1), int(ref_time),
                                       int(ref_week), sbas, int(utc_id)))
        self.set_label_flag(Label.TIMC)
        return True

    # ---- Header records: getters ----

    def get_field(self, label, index=0):
        """Data of a header record as a tuple, or None if it has no data.

        List records (WVLEN, DCBS, SCALE, PRNOBS, ...), SYS/TOBS (one entry per
        system) and COMM take the entry index.
        """
        label = _as_label(label)
        if label == Label.INFILEVER:
            if self.in_file_ver not in VERSION_NUMBER:
                return None
            return VERSION_NUMBER[self.in_file_ver], self.file_type, self.system_id
        if label == Label.COMM:
            comments = self._comments()
            return (comments[index].comment,) if index < len(comments) else None
        if label in (Label.SYS, Label.TOBS):
            if index >= len(self.systems):
                return None
            s = self.systems[index]
            return s.system, list(s.obs_types)
        if not self.get_label_flag(label):
            return None
        if label == Label.VERSION:
            return VERSION_NUMBER.get(self.version, 0.0), self.file_type, self.system_id
        if label == Label.RUNBY:
            return self.pgm, self.runby, self.date
        if label == Label.TOFO:
            return self.first_obs + (self.obs_time_sys,)
        if label == Label.TOLO:
            return self.last_obs
        if label in LIST_LABELS:
            entries = self.lists[label]
            return tuple(entries[index]) if index < len(entries) else None
        if label == Label.EOH:
            return ()
        return self.fields.get(label)

    def clear_header_data(self):
        """Clear all header records but END OF HEADER, comments included."""
        self.records = [rec for rec in self.records if rec.label != Label.COMM]
        for rec in self.records:
            rec.has_data = False
        for entries in self.lists.values():
            entries.clear()
        self._last_index = None
        self.records[self._record_index(Label.EOH)].has_data = True

    # ---- Epoch data ----

    def set_epoch_time(self, week, tow, bias, flag):
        """Set the current epoch time. Returns its time tag in seconds."""
        self.epoch_week = week
        self.epoch_tow = tow
        self.epoch_clk_offset = bias
        self.epoch_flag = flag
        return secs_from_week_tow(week, tow)

    def get_epoch_time(self):
        return self.epoch_week, self.epoch_tow, self.epoch_clk_offset, self.epoch_flag

    def save_obs_data(self, system, sat, obs_type, value, lol, strength, tag):
        """Store an observable of the current epoch.

        Returns True if tag belongs to the current epoch (data stored or
        rejected because the system or observable is not declared), False
        when it starts a new epoch and nothing was stored.
        """
        if not self.obs_data:
            self.epoch_time_tag = tag
        if tag != self.epoch_time_tag:
            return False
        si = self._sys_index(system)
        if si >= 0 and obs_type in self.systems[si].obs_types:
            oi = self.systems[si].obs_types.index(obs_type)
            self.obs_data.append(ObsRecord(tag, si, sat, oi, value, lol, strength))
        else:
            logger.warning(f"Observation data not saved. Unknown system {system} or observation {obs_type}")
        return True

    def get_obs_data(self, index=0):
        """(system, sat, obs_type, value, lol, strength, tag) or None."""
        if index >= len(self.obs_data):
            return None
        rec = self.obs_data[index]
        s = self.systems[rec.sys_index]
        return s.system, rec.sat, s.obs_types[rec.obs_index], rec.value, rec.lol, rec.strength, rec.tag

    def clear_obs_data(self):
        self.obs_data.clear()

    def save_nav_data(self, system, sat, bo, tag):
        """Store a broadcast orbit unless the same satellite and time tag exist."""
        text = "Ephemeris for sat=%c%02d at=%g " % (system, sat, tag)
        for rec in self.nav_data:
            if rec.system == system and rec.sat == sat and rec.tag == tag:
                logger.log(FINE, text + " already exist")
                return False
        self.nav_data.append(NavRecord(tag, system, sat, np.array(bo, dtype=float).reshape(8, 4)))
        logger.log(FINE, text + " saved")
        return True

    def get_nav_data(self, index=0):
        """(system, sat, bo, tag) or None."""
        if index >= len(self.nav_data):
            return None
        rec = self.nav_data[index]
        return rec.system, rec.sat, rec.bo.copy(), rec.tag

    def clear_nav_data(self):
        self.nav_data.clear()

    # ---- Filtering ----

    def set_filter(self, sel_sats, sel_obs):
        """Select the systems / satellites and observables to print.

        sel_sats items are a system ("G") or a satellite ("G01"); sel_obs items a
        system and a V3 observable ("GC1C"). Empty lists select everything.
        Returns False if any item is not declared in the header; valid items
        are applied anyway.
        """
        self.apply_obs_filter = self.apply_nav_filter = False
        self.selected_sats = []
        for s in self.systems:
            s.selected = True
            s.sel_obs = [True] * len(s.obs_types)
            s.sel_sats = []
        if not sel_sats and not sel_obs:
            logger.info("Filtering data cleared")
            return True
        logger.info("Filtering data stated:")
        for item in sel_sats:
            m = re.match(r'^([A-Z])(\d*)$', item.strip().upper())
            if m is None:
                logger.warning(f"Wrong sys-sat format ({item}). Ignored for filtering")
            elif m.group(2):
                self.selected_sats.append('%s%02d' % (m.group(1), int(m.group(2))))
            else:
                self.selected_sats.append(m.group(1))
        self.apply_nav_filter = bool(self.selected_sats)
        if self.apply_nav_filter:
            logger.info("Sel sys-sats for nav: " + ' '.join(self.selected_sats))
        coherent = True
        sel_systems = []
        sel_sys_obs = []
        for item in self.selected_sats:
            si = self._sys_index(item[0])
            if si < 0:
                logger.warning(f"Sel system in sat {item} not in SYS/TOBS records")
                coherent = False
                continue
            sel_systems.append(si)
            if len(item) > 1:
                self.systems[si].sel_sats.append(int(item[1:]))
        for item in sel_obs:
            si = self._sys_index(item[:1])
            if si < 0:
                logger.warning(f"Sel system in obs {item} not in SYS/TOBS records")
                coherent = False
            elif item[1:] not in self.systems[si].obs_types:
                logger.warning(f"Sel observation in sys {item} not in SYS/TOBS records")
                coherent = False
            else:
                sel_systems.append(si)
                sel_sys_obs.append((si, self.systems[si].obs_types.index(item[1:])))
        if sel_systems:
            for i, s in enumerate(self.systems):
                s.selected = i in sel_systems
        for si in {si for si, _ in sel_sys_obs}:
            self.systems[si].sel_obs = [False] * len(self.systems[si].obs_types)
        for si, oi in sel_sys_obs:
            self.systems[si].sel_obs[oi] = True
        for s in self.systems:
            if s.selected:
                self.apply_obs_filter = True
                logger.info(f"Selected sys={s.system}; sats={' '.join(str(n) for n in s.sel_sats)}"
                            f"; obs={' '.join(s.selected_obs())}")
            else:
                logger.info(f"Excluded sys={s.system}")
        return coherent

    def filter_obs_data(self):
        """Remove observables of systems, satellites or types not selected.

        Returns True if any observable remains.
        """
        if self.apply_obs_filter:
            kept = []
            for rec in self.obs_data:
                s = self.systems[rec.sys_index]
                if s.selected and s.sel_obs[rec.obs_index] and s.is_sat_selected(rec.sat):
                    kept.append(rec)
            self.obs_data = kept
        self.obs_data.sort(key=_obs_key)
        return bool(self.obs_data)

    def filter_nav_data(self):
        """Remove ephemerides of systems or satellites not selected.

        Returns True if any ephemeris remains.
        """
        if self.apply_nav_filter:
            self.nav_data = [rec for rec in self.nav_data
                             if any(('%s%02d' % (rec.system, rec.sat)).startswith(sel)
                                    for sel in self.selected_sats)]
        self.nav_data.sort(key=_nav_key)
        return bool(self.nav_data)

    # ---- File names ----

    def get_obs_file_name(self, prefix, country='---'):
        """Standard observation file name: PRFXdddhmm.yyO (V2.10) or
        XXXXMRCCC_R_YYYYDDDHHMM_PPu_FFu_CO.rnx (V3.02)."""
        week, tow = self.first_obs
        if self.version == Version.V302:
            return self._v3_name(prefix, week, tow, 'O', country)
        return self._v2_name(prefix, week, tow, 'O')

    def get_nav_file_name(self, prefix, suffix='N', country='---'):
        """Standard navigation file name for the earliest ephemeris stored,
        or for the first observation time when none is stored."""
        week, tow = self.epoch_week, self.epoch_tow
        if self.get_label_flag(Label.TOFO):
            week, tow = self.first_obs
        if self.nav_data:
            first = min(rec.tag for rec in self.nav_data)
            week, tow = gps_week(first), gps_tow(first)
        if self.version == Version.V302:
            return self._v3_name(prefix, week, tow, suffix, country)
        return self._v2_name(prefix, week, tow, suffix)

    @staticmethod
    def _v2_name(prefix, week, tow, ftype):
        t = gps_to_datetime(week, tow)
        return '%4.4s%03d%1s%02d.%02d%s' % (prefix + '----', t.timetuple().tm_yday,
                                           chr(ord('a') + t.hour), t.minute, t.year % 100, ftype)

    def _v3_name(self, prefix, week, tow, ftype, country):
        mrk_num = _leading_int(self.fields[Label.MRKNUMBER][0]) if self.get_label_flag(Label.MRKNUMBER) else 0
        rcv_num = _leading_int(self.fields[Label.RECEIVER][0]) if self.get_label_flag(Label.RECEIVER) else 0
        t = gps_to_datetime(week, tow)
        period, period_unit = 0, 'U'
        if self.get_label_flag(Label.TOFO) and self.get_label_flag(Label.TOLO):
            start = secs_from_week_tow(*self.first_obs)
            end = secs_from_week_tow(*self.last_obs)
            if end > start:
                period = int((end - start) / 60)
        for minutes, unit in ((365 * 24 * 60, 'Y'), (24 * 60, 'D'), (60, 'H'), (1, 'M')):
            if period >= minutes:
                period //= minutes
                period_unit = unit
                break
        freq, freq_unit = 0, 'U'
        if self.get_label_flag(Label.INT):
            interval = self.fields[Label.INT][0]
            if 0 < interval < 1:
                freq, freq_unit = int(1.0 / interval), 'Z'
            elif interval < 60:
                freq, freq_unit = int(interval), 'S'
            elif interval < 3600:
                freq, freq_unit = int(interval / 60), 'M'
            elif interval < 86400:
                freq, freq_unit = int(interval / 3600), 'H'
            else:
                freq, freq_unit = int(interval / 86400), 'D'
        constellation = self.systems[0].system if len(self.systems) == 1 else 'M'
        start = '%4.4s%1d%1d%3.3s_R_%04d%03d%02d%02d_%02d%s' % (
            prefix + '----', mrk_num, rcv_num, country, t.year, t.timetuple().tm_yday,
            t.hour, t.minute, period, period_unit)
        if ftype in 'Oo':
            return '%s_%02d%s_%sO.rnx' % (start, freq, freq_unit, constellation)
        if ftype == 'N':
            return '%s_%sN.rnx' % (start, constellation)
        return f"NOT_IMPLEMENTED_TYPE_{ftype}.rnx"

    # ---- Printing: header ----

    def _obs_v3_to_v2(self, si, oi):
        """V2 name of an observable, '' if it has none or is filtered out."""
        s = self.systems[si]
        if self.apply_obs_filter and not (s.selected and s.sel_obs[oi]):
            return ''
        if s.system in 'GRS':
            for v2, v3 in OBS_V2_V3:
                if v3 == s.obs_types[oi]:
                    return v2
        return ''

    def print_obs_header(self, out):
        """Print the header of an observation file in the version to print.

        Raises RinexError if no system is selected or the version is unknown.
        """
        n_sys = self._n_selected_systems()
        if n_sys == 0:
            raise RinexError("Satellite systems not defined or none selected")
        if self.version == Version.VTBD:
            self.version = self.in_file_ver
        if self.version == Version.VTBD:
            raise RinexError("Version to print is not defined")
        self.file_type = 'O'
        self.file_type_sfx = 'BSERVATION DATA'
        if n_sys > 1:
            self.system_id = 'M'
        else:
            self.system_id = next(s.system for s in self.systems if s.selected)
        self.system_id_sfx = SYS_DESCRIPTION.get(self.system_id, '')
        self.set_label_flag(Label.VERSION)
        if self.version == Version.V210:
            self.v2_obs_list = []
            for si, s in enumerate(self.systems):
                for oi in range(len(s.obs_types)):
                    name = self._obs_v3_to_v2(si, oi)
                    if name and name not in self.v2_obs_list:
                        self.v2_obs_list.append(name)
            self.set_label_flag(Label.SYS, False)
            self.set_label_flag(Label.TOBS)
        else:
            self.set_label_flag(Label.SYS)
            self.set_label_flag(Label.TOBS, False)
        self._print_header_records(out, 'obs')

    def print_nav_header(self, out):
        """Print the header of a navigation file.

        A V2.10 file holds one system: the first one selected with set_filter,
        or the only one defined. Raises RinexError when it cannot be decided.
        """
        if self.version == Version.VTBD:
            self.version = self.in_file_ver
        if self.version == Version.V210:
            if self.in_file_ver != Version.V210:
                self.file_type = 'N'
                if not self.apply_nav_filter:
                    if len(self.systems) == 1:
                        self.selected_sats.append(self.systems[0].system)
                        self.apply_nav_filter = True
                    else:
                        raise RinexError("Cannot generate V2.10 navigation file for system UNSELECTED")
                self.system_id = self.selected_sats[0][0]
        elif self.version == Version.V302:
            if self.in_file_ver == Version.VTBD:
                self.file_type = 'N'
                self.system_id = 'M'
        else:
            raise RinexError("Version to print is not defined")
        self.file_type_sfx = 'AVIGATION DATA'
        self.system_id_sfx = SYS_DESCRIPTION.get(self.system_id, '')
        self.set_label_flag(Label.VERSION)
        self._print_header_records(out, 'nav')

    def _print_header_records(self, out, file_kind):
        for rec in self.records:
            if not rec.applies(self.version, file_kind):
                continue
            if rec.has_data:
                for content in self._record_lines(rec):
                    out.write(_hd_line(content, rec.text))
            elif (rec.obs if file_kind == 'obs' else rec.nav) == OBL:
                logger.warning(f"{rec.text}: header record is obligatory, but has not data")

    def _version_line(self):
        fmt = '%9.2f' + ' ' * 11 + '%1s%-19.19s%1s%-19.19s'
        if self.version == Version.V302:
            return fmt % (3.02, self.file_type, self.file_type_sfx, self.system_id, self.system_id_sfx)
        if self.file_type == 'N':
            if self.system_id in V2_NAV_TYPES:
                ftype, sfx = V2_NAV_TYPES[self.system_id]
                return fmt % (2.10, ftype, sfx, ' ', '')
            logger.warning(f"RINEX VERSION / TYPE record. Wrong system identification: {self.system_id}")
        return fmt % (2.10, self.file_type, self.file_type_sfx, self.system_id, self.system_id_sfx)

    def _time_line(self, week, tow):
        return (format_gps_time('  %Y    %m    %d    %H    %M  ', '%11.7f', week, tow)
                + ' ' * 5 + '%-3.3s' % self.obs_time_sys)

    def _record_lines(self, rec):
        """Contents (columns 1-60) of the header lines of a record."""
        label = rec.label
        f = self.fields.get(label)
        entries = self.lists.get(label, [])
        if label == Label.VERSION:
            return [self._version_line()]
        if label == Label.RUNBY:
            return ['%-20.20s%-20.20s%s%3s ' % (self.pgm, self.runby,
                                                format_local_time('%Y%m%d %H%M%S '), 'LCL')]
        if label == Label.COMM:
            return ['%-60.60s' % rec.comment]
        if label in (Label.MRKNAME, Label.MRKNUMBER):
            return ['%-60.60s' % f[0]]
        if label in (Label.MRKTYPE, Label.SIGU):
            return ['%-20.20s' % f[0]]
        if label == Label.AGENCY:
            return ['%-20.20s%-40.40s' % f]
        if label == Label.RECEIVER:
            return ['%-20.20s%-20.20s%-20.20s' % f]
        if label == Label.ANTTYPE:
            return ['%-20.20s%-20.20s' % f]
        if label in XYZ_LABELS:
            return ['%14.4f%14.4f%14.4f' % f]
        if label == Label.ANTPHC:
            return ['%1.1s %-3.3s%9.4f%14.4f%14.4f' % f]
        if label in (Label.ANTZDAZI,):
            return ['%14.4f' % f]
        if label == Label.WVLEN:
            lines = []
            for l1, l2, sats in entries:
                lines.append('%6d%6d%6d' % (l1, l2, len(sats)) + ''.join('   %3s' % s for s in sats))
            return lines
        if label == Label.TOBS:
            return _groups('%6d' % len(self.v2_obs_list), ' ' * 6,
                           ['    %2.2s' % o for o in self.v2_obs_list], 9)
        if label == Label.SYS:
            lines = []
            for s in self.systems:
                if self.apply_obs_filter and not s.selected:
                    continue
                obs = s.selected_obs() if self.apply_obs_filter else s.obs_types
                lines += _groups('%1s  %3d' % (s.system, len(obs)), ' ' * 6, [' %3s' % o for o in obs], 13)
            return lines
        if label == Label.INT:
            return ['%10.3f' % f]
        if label == Label.TOFO:
            return [self._time_line(*self.first_obs)]
        if label == Label.TOLO:
            return [self._time_line(*self.last_obs)]
        if label in (Label.CLKOFFS, Label.SATS):
            return ['%6d' % f]
        if label in (Label.DCBS, Label.PCVS):
            return ['%1s %-17.17s %-40.40s' % e for e in entries if self._is_sys_printed(e[0])]
        if label == Label.SCALE:
            lines = []
            for system, factor, obs in entries:
                if self._is_sys_printed(system):
                    lines += _groups('%1s %4d  %2d' % (system, factor, len(obs)), ' ' * 10,
                                     [' %-3.3s' % o for o in obs], 12)
            return lines
        if label == Label.PHSH:
            lines = []
            for system, code, corr, sats in entries:
                if self._is_sys_printed(system):
                    lines += _groups('%1s %-3.3s %8.5f  %2d' % (system, code, corr, len(sats)), ' ' * 18,
                                     [' %-3.3s' % s for s in sats], 10)
            return lines
        if label == Label.GLSLT:
            return _groups('%3d ' % len(entries), ' ' * 4,
                           ['R%02d %2d ' % e for e in entries], 8)
        if label == Label.LEAP:
            if self.version == Version.V302:
                return ['%6d%6d%6d%6d' % f]
            return ['%6d' % f[0]]
        if label == Label.PRNOBS:
            lines = []
            for system, prn, counts in entries:
                lines += _groups('   %1s%02d' % (system, prn), ' ' * 6, ['%6d' % n for n in counts], 9)
            return lines
        if label == Label.IONC:
            return ['%-4.4s ' % t + ''.join('%12.4E' % v for v in values[:4]) for t, values in entries]
        if label == Label.TIMC:
            return ['%-4.4s %17.10E%16.9E%7d%5d %-5.5s %2d ' % e for e in entries]
        if label in (Label.IONA, Label.IONB):
            return ['  ' + ''.join('%12.4E' % v for v in f)]
        if label == Label.DUTC:
            return ['   %19.12E%19.12E%9d%9d' % f]
        if label == Label.EOH:
            return ['']
        return []

    def _is_sys_printed(self, system):
        si = self._sys_index(system)
        return si >= 0 and self.systems[si].selected

    # ---- Printing: epochs ----

    def _epoch_sats(self):
        """(sys_index, sat) of the satellites in the sorted observables."""
        sats = []
        for rec in self.obs_data:
            if not sats or sats[-1] != (rec.sys_index, rec.sat):
                sats.append((rec.sys_index, rec.sat))
        return sats

    def print_obs_epoch(self, out):
        """Print the current epoch: its observables, or for event flags 2-5
        the header records having data.

        Observables printed are removed from storage. Raises RinexError when
        the version to print is not V2.10 or V3.02.
        """
        if self.version == Version.V210:
            time_str = format_gps_time(' %y %m %d %H %M', '%11.7f', self.epoch_week, self.epoch_tow)
        elif self.version == Version.V302:
            time_str = format_gps_time('> %Y %m %d %H %M', '%11.7f', self.epoch_week, self.epoch_tow)
        else:
            raise RinexError("Unknown RINEX observation version")
        if self.epoch_flag in (0, 1, 6):
            if not self.filter_obs_data():
                return
            if self.version == Version.V210:
                self._print_v2_obs(out, time_str)
            else:
                self._print_v3_obs(out, time_str)
        elif self.epoch_flag in (2, 3, 4, 5):
            lines = []
            for rec in self.records:
                if rec.has_data and rec.label != Label.EOH and rec.applies(self.version, 'obs'):
                    lines += [_hd_line(c, rec.text) for c in self._record_lines(rec)]
            out.write('%s  %1d%3d\n' % (time_str, self.epoch_flag, len(lines)))
            out.writelines(lines)

    def _print_v2_obs(self, out, time_str):
        remapped = []
        for rec in self.obs_data:
            name = self._obs_v3_to_v2(rec.sys_index, rec.obs_index)
            if name in self.v2_obs_list:
                remapped.append(rec._replace(obs_index=self.v2_obs_list.index(name)))
        self.obs_data = sorted(remapped, key=_obs_key)
        if not self.obs_data:
            return
        sats = self._epoch_sats()
        line = '%s  %1d%3d' % (time_str, self.epoch_flag, len(sats))
        for n, (si, sat) in enumerate(sats):
            if n and n % 12 == 0:
                line += '\n' + ' ' * 32
            line += '%1s%02d' % (self.systems[si].system, sat)
            if n == 11:
                line += '%12.9f' % self.epoch_clk_offset
        line += '   ' * (-len(sats) % 12)
        if len(sats) < 12:
            line += '%12.9f' % self.epoch_clk_offset
        out.write(line + '\n')
        while self._print_sat_obs_values(out, 5):
            pass

    def _print_v3_obs(self, out, time_str):
        if self.apply_obs_filter:
            # printed observable index is the position among the selected ones
            remapped = []
            for rec in self.obs_data:
                sel = self.systems[rec.sys_index].sel_obs
                remapped.append(rec._replace(obs_index=sum(sel[:rec.obs_index])))
            self.obs_data = remapped
        self.obs_data.sort(key=_obs_key)
        sats = self._epoch_sats()
        out.write('%s  %1d%3d%6s%15.12f\n' % (time_str, self.epoch_flag, len(sats), '',
                                              self.epoch_clk_offset))
        more = True
        while more:
            rec = self.obs_data[0]
            out.write('%1s%02d' % (self.systems[rec.sys_index].system, rec.sat))
            more = self._print_sat_obs_values(out, 999)

    def _print_sat_obs_values(self, out, max_per_line):
        """Print the observables of the first satellite stored, then remove them.

        Returns True while observables of other satellites remain.
        """
        if not self.obs_data:
            return False
        si, sat = self.obs_data[0].sys_index, self.obs_data[0].sat
        position = 0
        while self.obs_data and (self.obs_data[0].sys_index, self.obs_data[0].sat) == (si, sat):
            rec = self.obs_data[0]
            if rec.obs_index < position:
                logger.warning("Epoch %g sat=%c%02d obs index=%d Ignored observable already printed"
                               % (rec.tag, self.systems[si].system, sat, rec.obs_index))
                self.obs_data.pop(0)
                continue
            if rec.obs_index == position:
                value = rec.value if MINOBSVAL <= rec.value <= MAXOBSVAL else 0.0
                out.write('%14.3f%1s%1s' % (value, rec.lol or ' ', rec.strength or ' '))
                self.obs_data.pop(0)
            else:
                out.write('%14.3f  ' % 0.0)
            position += 1
            if position % max_per_line == 0:
                out.write('\n')
        if position % max_per_line != 0:
            out.write('\n')
        return bool(self.obs_data)

    def print_obs_eof(self, out):
        """Print an event epoch (flag 4) with the comment END OF FILE."""
        self.epoch_flag = 4
        self.clear_header_data()
        self.set_field(Label.COMM, Label.LASTONE, 'END OF FILE')
        self.print_obs_epoch(out)

    def print_nav_epoch(self, out):
        """Print the ephemerides stored, sorted by time, system and satellite.

        In V2.10 only those of the system in the file header are printed.
        Storage is left unchanged; callers clear it with clear_nav_data().
        """
        if self.version == Version.V210:
            time_fmt, line_start = '%y %m %d %H %M', ' ' * 3
        elif self.version == Version.V302:
            time_fmt, line_start = '%Y %m %d %H %M', ' ' * 4
        else:
            raise RinexError("Unknown RINEX navigation version")
        logger.log(FINEST, f"Nav epoch for sys={self.system_id}")
        for rec in sorted(self.nav_data, key=_nav_key):
            if self.version == Version.V210 and rec.system != self.system_id:
                logger.log(FINEST, f"Nav epoch ignored: sys={rec.system}; sat={rec.sat}")
                continue
            if rec.system not in NAV_LAYOUT:
                raise RinexError(f"Unknown system:{rec.system}")
            logger.log(FINEST, f"Nav epoch printed: sys={rec.system}; sat={rec.sat}")
            week, tow = gps_week(rec.tag), gps_tow(rec.tag)
            bo = rec.bo.copy()
            if self.version == Version.V210:
                out.write('%02d %s' % (rec.sat, format_gps_time(time_fmt, ' %4.1f', week, tow)))
                if rec.system == 'R':
                    # V2.10 GLONASS frame time is seconds of day
                    bo[0][3] = np.fmod(bo[0][3], 86400)
            else:
                out.write('%1s%02d %s' % (rec.system, rec.sat,
                                          format_gps_time(time_fmt, ' %02d', week, int(tow))))
            out.write(''.join('%19.12E' % v for v in bo[0][1:4]) + '\n')
            n_lines, remaining = NAV_LAYOUT[rec.system]
            for i in range(1, n_lines):
                if remaining <= 0:
                    break
                line = line_start
                for j in range(4):
                    line += '%19.12E' % bo[i][j] if remaining > 0 else ' ' * 19
                    remaining -= 1
                out.write(line + '\n')

    # ---- Parsing: header ----

    def _check_label(self, line):
        if len(line.rstrip()) < 61:
            return Label.NOLABEL
        text = line[60:]
        for label, label_text, version, _, _ in LABEL_TABLE:
            if text.startswith(label_text):
                if version in (Version.VALL, self.in_file_ver):
                    return label
                return Label.DONTMATCH
        return Label.NOLABEL

    def read_rinex_header(self, inp):
        """Read header lines until END OF HEADER.

        Stops too at end of input or after ten lines without a valid label.
        Order problems are logged only. Returns the last label read: EOH for a
        well formed header.
        """
        logger.log(FINE, "Data from RINEX file header:")
        # 0: nothing read, 1: VERSION read, 2: SYS read, 3: SATS read, 4: EOH read
        order = 0
        errors_left = MAX_NOLABEL_LINES
        while True:
            label = self._read_header_line(inp)
            if label in (Label.NOLABEL, Label.DONTMATCH):
                if label == Label.NOLABEL:
                    errors_left -= 1
                logger.warning(f"{label.name}: label error")
            elif label != Label.LASTONE:
                text = LABEL_TEXT[label]
                if order == 0:
                    if label == Label.VERSION:
                        order = 1
                    else:
                        logger.warning(f"{text}: Cannot be the first line")
                elif label == Label.VERSION:
                    logger.warning(f"{text}: Cannot appear twice")
                elif label == Label.EOH:
                    order = 4
                elif order == 1 and label in (Label.DCBS, Label.SCALE, Label.PHSH):
                    logger.warning(f"{text}: Shall be preceded by SYS")
                elif order < 3 and label == Label.PRNOBS:
                    logger.warning(f"{text}: Shall be preceded by SATS")
                elif order == 3 and label in (Label.SATS, Label.SYS):
                    logger.warning(f"{text}: Cannot appear twice")
                elif label == Label.SYS:
                    order = max(order, 2)
                elif label == Label.SATS:
                    order = 3
            if errors_left <= 0 or label == Label.LASTONE or order == 4:
                break
        if order != 4:
            logger.warning("END OF HEADER: Not found")
        return label

    def _read_continuation(self, inp, label, min_blank):
        """Next line of a multi line record, or None if it is not one."""
        line = _read_record(inp)
        if line is None:
            return None
        if self._check_label(line) != label:
            logger.warning(f"{LABEL_TEXT[label]}: continuation expected, but received {line[60:80]}")
            return None
        if line[:min_blank].strip():
            logger.warning(f"{LABEL_TEXT[label]}: wrong format in continuation line")
            return None
        return line

    def _read_header_line(self, inp):
        """Read one header record (with its continuation lines) and store its data.

        Returns its label, NOLABEL, DONTMATCH or LASTONE at end of input.
        """
        line = _read_record(inp)
        if line is None:
            return Label.LASTONE
        label = self._check_label(line)
        if label == Label.NOLABEL:
            logger.warning("No header label found in:" + line[:20])
            return label
        if label == Label.DONTMATCH:
            logger.warning(line[60:80] + " cannot be used in this RINEX version")
            return label
        text = LABEL_TEXT[label]
        if label == Label.COMM:
            at = 0 if self._last_index is None else self._last_index + 1
            self.records.insert(at, HeaderRecord(Label.COMM, text, Version.VALL, OPT, OPT,
                                                 comment=line[:60].rstrip()))
            self._last_index = at
            logger.log(FINER, f"{text}: {line[:60].rstrip()}")
            return label
        try:
            stored = self._parse_header_line(label, line, inp)
        except (ValueError, IndexError):
            logger.warning(f"{text}: Wrong format in label data")
            return label
        if stored:
            self.set_label_flag(label)
        return label

    def _parse_header_line(self, label, line, inp):
        """Store the data of one header record. Returns False if nothing was
        stored; raises ValueError on badly formatted data."""
        text = LABEL_TEXT[label]
        if label == Label.VERSION:
            self._parse_version(line)
        elif label == Label.RUNBY:
            self.pgm = line[0:20].rstrip()
            self.runby = line[20:40].rstrip()
            self.date = line[40:60].rstrip()
        elif label in (Label.MRKNAME, Label.MRKNUMBER, Label.MRKTYPE, Label.SIGU):
            width = 60 if label == Label.MRKNAME else 20
            self.fields[label] = (line[:width].rstrip(),)
        elif label == Label.AGENCY:
            self.fields[label] = (line[0:20].rstrip(), line[20:60].rstrip())
        elif label == Label.RECEIVER:
            self.fields[label] = (line[0:20].rstrip(), line[20:40].rstrip(), line[40:60].rstrip())
        elif label == Label.ANTTYPE:
            self.fields[label] = (line[0:20].rstrip(), line[20:40].rstrip())
        elif label in XYZ_LABELS:
            self.fields[label] = tuple(_to_float(line[i:i + 14]) for i in (0, 14, 28))
        elif label == Label.ANTPHC:
            self.fields[label] = (line[0], line[2:5].strip(), _to_float(line[5:14]),
                                  _to_float(line[14:28]), _to_float(line[28:42]))
        elif label == Label.ANTZDAZI:
            self.fields[label] = (_to_float(line[0:14]),)
        elif label == Label.WVLEN:
            n = _to_int(line[12:18], 0)
            if n >= 7:
                logger.warning(f"{text}: Number of sats >=7")
                return False
            sats = [line[18 + 6 * i + 3:18 + 6 * i + 6].strip() for i in range(n)]
            self.lists[label].append((_to_int(line[0:6]), _to_int(line[6:12]), sats))
        elif label == Label.TOBS:
            return self._parse_tobs(line, inp)
        elif label == Label.SYS:
            return self._parse_sys(line, inp)
        elif label == Label.INT:
            self.fields[label] = (_to_float(line[0:10]),)
        elif label in (Label.TOFO, Label.TOLO):
            year, month, day, hour, minute = (_to_int(line[i:i + 6]) for i in range(0, 30, 6))
            when = set_week_tow(year, month, day, hour, minute, _to_float(line[30:43]))
            if label == Label.TOFO:
                self.first_obs = when
                self.obs_time_sys = line[48:51].strip()
            else:
                self.last_obs = when
        elif label in (Label.CLKOFFS, Label.SATS):
            self.fields[label] = (_to_int(line[0:6]),)
        elif label in (Label.DCBS, Label.PCVS):
            if self._sys_index(line[0]) < 0:
                logger.warning(f"{text}: system {line[0]} not in SYS records")
                return False
            self.lists[label].append((line[0], line[2:19].strip(), line[20:60].strip()))
        elif label == Label.SCALE:
            return self._parse_scale(line, inp)
        elif label == Label.PHSH:
            return self._parse_phsh(line, inp)
        elif label == Label.GLSLT:
            return self._parse_glslt(line, inp)
        elif label == Label.LEAP:
            self.fields[label] = (_to_int(line[0:6]),) + tuple(_to_int(line[i:i + 6], 0) for i in (6, 12, 18))
        elif label == Label.PRNOBS:
            counts = []
            for i in range(9):
                field = line[6 + 6 * i:12 + 6 * i]
                if not field.strip():
                    break
                counts.append(_to_int(field))
            entries = self.lists[label]
            if line[3] != ' ':
                entries.append((line[3], _to_int(line[4:6]), counts))
            elif entries:
                entries[-1][2].extend(counts)
            else:
                logger.warning(f"{text}: Continuation line not following a regular one")
                return False
        elif label == Label.IONC:
            values = [_to_float(line[5 + 12 * i:17 + 12 * i], 0.0) for i in range(4)]
            self.lists[label].append((line[0:4].strip(), values))
        elif label == Label.TIMC:
            self.lists[label].append((line[0:4].strip(), _to_float(line[5:22]), _to_float(line[22:38]),
                                      _to_int(line[38:45]), _to_int(line[45:50]),
                                      line[51:56].strip(), _to_int(line[57:59])))
        elif label in (Label.IONA, Label.IONB):
            self.fields[label] = tuple(_to_float(line[2 + 12 * i:14 + 12 * i]) for i in range(4))
        elif label == Label.DUTC:
            self.fields[label] = (_to_float(line[3:22]), _to_float(line[22:41]),
                                  _to_int(line[41:50]), _to_int(line[50:59]))
        logger.log(FINER, f"{text}: data read")
        return True

    def _parse_version(self, line):
        self.file_type = line[20]
        self.file_type_sfx = line[21:40].rstrip()
        self.system_id = line[40]
        self.system_id_sfx = line[41:60].rstrip()
        try:
            number = float(line[0:9])
        except ValueError:
            number = 0.0
        if 2.0 <= number < 3.0:
            self.in_file_ver = Version.V210
            if number != 2.1:
                logger.warning("RINEX VERSION / TYPE: File processed as per V2.1")
            if self.file_type == 'O':
                if self.system_id == ' ':
                    self.system_id = 'G'
            elif self.file_type == 'N':
                self.system_id = 'G'
            elif self.file_type == 'G':
                self.file_type, self.system_id = 'N', 'R'
            elif self.file_type == 'H':
                self.file_type, self.system_id = 'N', 'S'
            else:
                raise RinexError("This version only process Observation or Navigation files")
            self.system_id_sfx = SYS_DESCRIPTION.get(self.system_id, '')
        elif 3.0 <= number < 4.0:
            self.in_file_ver = Version.V302
            if number != 3.02:
                logger.warning("RINEX VERSION / TYPE: File processed as per 3.02")
        else:
            logger.warning("RINEX VERSION / TYPE: Cannot cope with this input file version. TBD assumed")
            self.in_file_ver = Version.VTBD
        logger.log(FINER, f"RINEX VERSION / TYPE: {number} / {self.file_type} / {self.system_id}")

    def _read_items(self, label, line, inp, count, start, end, per_line, min_blank):
        """Tokens of a record continued every per_line items."""
        items = []
        remaining = count
        while True:
            items += get_tokens(line[start:end])
            remaining -= per_line
            if remaining <= 0:
                break
            line = self._read_continuation(inp, label, min_blank)
            if line is None:
                break
        if count != len(items):
            logger.warning(f"{LABEL_TEXT[label]}: Mismatch in number of expected and existing code types")
        return items

    def _parse_tobs(self, line, inp):
        count = _to_int(line[0:6])
        if count == 0:
            raise ValueError("no observable types")
        if self.system_id == 'T':
            logger.warning("# / TYPES OF OBSERV: Cannot cope with Transit data")
            return False
        obs_types = []
        self.v2_columns = []
        for name in self._read_items(Label.TOBS, line, inp, count, 6, 60, 9, 6):
            v3 = obs_v2_to_v3(name)
            if v3:
                self.v2_columns.append(len(obs_types))
                obs_types.append(v3)
            else:
                # the column is read and its values dropped
                self.v2_columns.append(None)
                logger.warning(f"# / TYPES OF OBSERV: {name} Observable type cannot be translated to V302")
        for system in ('G', 'R', 'S') if self.system_id == 'M' else (self.system_id,):
            self._set_sys(system, obs_types)
        self.set_label_flag(Label.SYS, False)
        return True

    def _parse_sys(self, line, inp):
        if line[0] == ' ':
            logger.warning("SYS / # / OBS TYPES: satellite system not specified")
            return False
        count = _to_int(line[3:6])
        if count == 0:
            raise ValueError("number of types not specified")
        obs_types = self._read_items(Label.SYS, line, inp, count, 6, 60, 13, 6)
        self._set_sys(line[0], obs_types)
        self.set_label_flag(Label.TOBS, False)
        return True

    def _parse_scale(self, line, inp):
        if self._sys_index(line[0]) < 0:
            logger.warning(f"SYS / SCALE FACTOR: system {line[0]} not in SYS records")
            return False
        factor = _to_int(line[2:6])
        count = _to_int(line[8:10], 0)
        obs_types = self._read_items(Label.SCALE, line, inp, count, 10, 58, 12, 10) if count else []
        self.lists[Label.SCALE].append((line[0], factor, obs_types))
        return True

    def _parse_phsh(self, line, inp):
        if self._sys_index(line[0]) < 0:
            logger.warning(f"SYS / PHASE SHIFTS: system {line[0]} not in SYS records")
            return False
        correction = _to_float(line[6:14])
        count = _to_int(line[16:18], 0)
        sats = self._read_items(Label.PHSH, line, inp, count, 18, 58, 10, 18) if count else []
        self.lists[Label.PHSH].append((line[0], line[2:5].strip(), correction, sats))
        return True

    def _parse_glslt(self, line, inp):
        count = _to_int(line[0:3])
        entries = []
        column = 4
        for _ in range(count):
            if column > 4 + 7 * 7:
                line = self._read_continuation(inp, Label.GLSLT, 4)
                if line is None:
                    break
                column = 4
            entries.append((_to_int(line[column + 1:column + 3]), _to_int(line[column + 4:column + 6])))
            column += 7
        if count != len(entries):
            logger.warning("GLONASS SLOT / FRQ #: Mismatch in number of expected and existing slots")
        self.lists[Label.GLSLT].extend(entries)
        return True

    # ---- Parsing: epochs ----

    def read_obs_epoch(self, inp):
        """Read the next epoch of an observation file into the store.

        Returns an ObsStatus. Header records of event epochs are stored as if
        read from the header.
        """
        self.obs_data.clear()
        if self.in_file_ver == Version.V210:
            return self._read_v2_obs_epoch(inp)
        if self.in_file_ver == Version.V302:
            return self._read_v3_obs_epoch(inp)
        return ObsStatus.UNKNOWN_VERSION

    def _set_epoch_date(self, year, month, day, hour, minute, second):
        self.epoch_week, self.epoch_tow = set_week_tow(year, month, day, hour, minute, second)
        self.epoch_time_tag = secs_from_week_tow(self.epoch_week, self.epoch_tow)

    def _epoch_header(self, line, date_field, flag_col, count_cols, v2):
        """Decode date, flag and count of an epoch line.

        Returns (text, bad_epoch, wrong_date, count).
        """
        text = f"Epoch [{line[:count_cols[1]]}]"
        bad = False
        flag_char = line[flag_col]
        if flag_char.isdigit():
            self.epoch_flag = int(flag_char)
        else:
            bad = True
            text += " Missed flag."
            self.epoch_flag = 999
        try:
            count = int(line[count_cols[0]:count_cols[1]])
        except ValueError:
            bad = True
            text += " Missed number of sats or special records."
            count = 0
        tokens = date_field.split()
        wrong_date = False
        try:
            if len(tokens) != 6:
                raise ValueError("date fields")
            year, month, day, hour, minute = (int(t) for t in tokens[:5])
            second = float(tokens[5])
            if v2:
                year = _full_year(year)
            self._set_epoch_date(year, month, day, hour, minute, second)
        except ValueError:
            wrong_date = True
        return text, bad, wrong_date, count

    def _obs_values(self, line, start, count, si, sat, first=0, columns=None):
        """Store count observables of a satellite from fixed 16 column fields,
        the first one having index first.

        With columns, field first + n holds observable columns[first + n];
        fields mapped to None are skipped.
        """
        for n in range(count):
            k = first + n if columns is None else columns[first + n]
            if k is None:
                continue
            pos = start + 16 * n
            field = line[pos:pos + 14]
            if not field.strip():
                self.obs_data.append(ObsRecord(self.epoch_time_tag, si, sat, k, 0.0, 0, 0))
                continue
            lol = line[pos + 14]
            strength = line[pos + 15]
            self.obs_data.append(ObsRecord(self.epoch_time_tag, si, sat, k, float(field),
                                           int(lol) if lol.isdigit() else 0,
                                           int(strength) if strength.isdigit() else 0))

    def _read_v2_obs_epoch(self, inp):
        line = _read_record(inp)
        if line is None:
            return ObsStatus.EOF
        text, bad, wrong_date, n_sats = self._epoch_header(line, line[1:26], 28, (29, 32), True)
        if self.epoch_flag in (2, 3, 4, 5):
            logger.log(FINE, text)
            return self._read_obs_event(inp, n_sats, wrong_date)
        if self.epoch_flag not in (0, 1, 6):
            logger.warning(text + " Wrong flag.")
            return ObsStatus.BAD_FLAG
        if wrong_date:
            bad = True
            text += " Wrong date."
        if n_sats > 64:
            bad = True
            text += " Wrong number of sats (>64)."
        try:
            self.epoch_clk_offset = _to_float(line[68:80], 0.0)
        except ValueError:
            self.epoch_clk_offset = 0.0
        sats = []
        for i in range(0, n_sats, 12):
            for j in range(min(12, n_sats - i)):
                pos = 32 + 3 * j
                system = line[pos] if line[pos] != ' ' else 'G'
                si = self._sys_index(system)
                if si < 0:
                    bad = True
                    text += f" Unknown system {system}."
                try:
                    sats.append((si, int(line[pos + 1:pos + 3])))
                except ValueError:
                    bad = True
                    text += " Wrong PRN."
            if i + 12 < n_sats:
                line = _read_record(inp)
                if line is None:
                    text += " EOF in epoch cont. line."
                    bad = True
                    break
        n_cols = len(self.v2_columns)
        if bad:
            # skip the observation lines of the epoch, five values per line
            for _ in range(n_sats * max((n_cols + 4) // 5, 1)):
                _read_line(inp)
            logger.warning(text)
            return ObsStatus.BAD_EPOCH
        for si, sat in sats:
            for j in range(0, max(n_cols, 1), 5):
                line = _read_line(inp)
                if line is None:
                    logger.warning(text + " Unexpected EOF in obs. record")
                    return ObsStatus.BAD_OBSERVABLES
                try:
                    self._obs_values(line, 0, min(5, n_cols - j), si, sat, j, self.v2_columns)
                except ValueError:
                    logger.warning(text + " Wrong observable value.")
                    return ObsStatus.BAD_OBSERVABLES
        logger.log(FINE, text)
        return ObsStatus.OK

    def _read_v3_obs_epoch(self, inp):
        while True:
            line = _read_record(inp)
            if line is None:
                return ObsStatus.EOF
            if line[0] == '>':
                break
            logger.warning(f"Epoch [{line[:35]}] Start of epoch not found. Line skip")
        text, bad, wrong_date, n_sats = self._epoch_header(line, line[2:29], 31, (32, 35), False)
        if self.epoch_flag in (2, 3, 4, 5):
            logger.log(FINE, text)
            return self._read_obs_event(inp, n_sats, wrong_date)
        if self.epoch_flag not in (0, 1, 6):
            logger.warning(text + " Wrong flag.")
            return ObsStatus.BAD_FLAG
        if wrong_date:
            bad = True
            text += " Wrong date."
        if bad:
            logger.warning(text)
            return ObsStatus.BAD_EPOCH
        try:
            self.epoch_clk_offset = _to_float(line[41:56], 0.0)
        except ValueError:
            self.epoch_clk_offset = 0.0
        for _ in range(n_sats):
            line = _read_record(inp)
            if line is None:
                logger.warning(text + " EOF in obs. record")
                return ObsStatus.BAD_OBSERVABLES
            si = self._sys_index(line[0])
            if si < 0:
                bad = True
                text += f" Unknown system {line[0]}."
                continue
            n_obs = len(self.systems[si].obs_types)
            line = line.ljust(3 + 16 * n_obs)
            try:
                self._obs_values(line, 3, n_obs, si, int(line[1:3]))
            except ValueError:
                bad = True
                text += " Wrong PRN or observable."
        if bad:
            logger.warning(text)
            return ObsStatus.BAD_OBSERVABLES
        logger.log(FINE, text)
        return ObsStatus.OK

    def _read_obs_event(self, inp, n_records, wrong_date):
        """Read the special records following an event epoch line."""
        flag = self.epoch_flag
        if flag == 5:
            if wrong_date:
                logger.warning("External event without date")
                return ObsStatus.EVENT_WITHOUT_DATE
            return ObsStatus.EVENT
        names = {2: "Kinematic event", 3: "New site occupation event", 4: "Header information event"}
        status = ObsStatus.NO_MARKER_NAME if flag == 3 else ObsStatus.EVENT
        marker_name = False
        for _ in range(n_records):
            label = self._read_header_line(inp)
            if label in (Label.NOLABEL, Label.LASTONE):
                logger.warning(f"{names[flag]}: error in special records")
                status = ObsStatus.BAD_SPECIAL_RECORDS
            elif label == Label.MRKNAME and flag == 3:
                marker_name = True
                if status == ObsStatus.NO_MARKER_NAME:
                    status = ObsStatus.EVENT
        if flag == 3 and not marker_name:
            logger.warning("New site occupation event without MARKER NAME")
        return status

    def read_nav_epoch(self, inp):
        """Read the next ephemeris of a navigation file into the store.

        Returns NavStatus.OK when it belongs to the epoch of the ephemerides
        already stored, NEW_EPOCH when its time tag differs from them.
        """
        line = _read_record(inp)
        if line is None:
            return NavStatus.EOF
        text = f"Epoch [{line[:32]}]"
        try:
            if self.in_file_ver == Version.V210:
                system = self.system_id
                if system not in NAV_LAYOUT:
                    logger.warning(text + " Wrong version / file type")
                    return NavStatus.BAD_SATELLITE
                prn = int(line[0:2])
                date = line[2:22]
                first, cont = 22, 3
            elif self.in_file_ver == Version.V302:
                system = line[0]
                prn = int(line[1:3])
                date = line[4:23]
                first, cont = 23, 4
            else:
                logger.warning(text + " Wrong input file version")
                return NavStatus.UNKNOWN_VERSION
        except ValueError:
            logger.warning(text + " Wrong system-PRN")
            return NavStatus.BAD_SATELLITE
        if system not in NAV_LAYOUT:
            logger.warning(text + " Satellite system unknown")
            return NavStatus.BAD_SATELLITE
        try:
            tokens = date.split()
            if len(tokens) != 6:
                raise ValueError("date fields")
            year, month, day, hour, minute = (int(t) for t in tokens[:5])
            second = float(tokens[5])
            if self.in_file_ver == Version.V210:
                year = _full_year(year)
        except ValueError:
            logger.warning(text + " Wrong date-time")
            return NavStatus.BAD_DATE
        status = NavStatus.OK
        bo = np.zeros((8, 4))
        n_lines, remaining = NAV_LAYOUT[system]
        start = first
        for i in range(n_lines):
            columns = range(1, 4) if i == 0 else range(4)
            if i > 0:
                if remaining <= 0:
                    break
                line = _read_record(inp)
                if line is None:
                    return NavStatus.EOF
                start = cont
            for j in columns:
                if i > 0:
                    if remaining <= 0:
                        break
                    remaining -= 1
                try:
                    bo[i][j] = _to_float(line[start:start + 19], 0.0)
                except ValueError:
                    status = NavStatus.BAD_DATA
                    text += f"Error Broad.Orb.[{i}][{j}]."
                start += 19
        if status != NavStatus.OK:
            logger.warning(text)
            return status
        tag = secs_from_week_tow(*set_week_tow(year, month, day, hour, minute, second))
        if not self.nav_data:
            self.epoch_week, self.epoch_tow = gps_week(tag), gps_tow(tag)
            self.epoch_time_tag = tag
        elif tag != self.epoch_time_tag:
            status = NavStatus.NEW_EPOCH
            text += " New epoch."
        self.nav_data.append(NavRecord(tag, system, prn, bo))
        logger.log(FINE, text + " Stored.")
        return status


# ---- Input files ----

@contextlib.contextmanager
def open_rinex(filepath):
    """Path of a plain text RINEX file with the contents of filepath.

    A gzip compressed file (.gz, any case) is expanded into a temporary
    directory under its RINEX name, so the file type letter of the name is
    kept, and removed on exit. Other paths are yielded unchanged.
    """
    stem, ext = os.path.splitext(filepath)
    if ext.lower() != '.gz':
        yield filepath
        return
    tmp_dir = tempfile.mkdtemp(prefix='rinex_')
    plain = os.path.join(tmp_dir, os.path.basename(stem))
    try:
        with gzip.open(filepath, 'rb') as packed, open(plain, 'wb') as out:
            shutil.copyfileobj(packed, out)
        logger.log(FINE, f"{filepath} expanded to {plain}")
        yield plain
    finally:
        shutil.rmtree(tmp_dir, ignore_errors=True)


# ---- xarray export ----

# Broadcast orbit parameters after the three clock values, per system
NAV_FIELDS = {
    'G': ['IODE', 'Crs', 'DeltaN', 'M0',
          'Cuc', 'Eccentricity', 'Cus', 'sqrtA',
          'Toe', 'Cic', 'Omega0', 'Cis',
          'Io', 'Crc', 'omega', 'OmegaDot',
          'IDOT', 'CodesL2', 'GPSWeek', 'L2Pflag',
          'SVacc', 'health', 'TGD', 'IODC',
          'TransTime', 'FitIntvl'],
    'E': ['IODnav', 'Crs', 'DeltaN', 'M0',
          'Cuc', 'Eccentricity', 'Cus', 'sqrtA',
          'Toe', 'Cic', 'Omega0', 'Cis',
          'Io', 'Crc', 'omega', 'OmegaDot',
          'IDOT', 'DataSrc', 'GALWeek', 'spare0',
          'SISA', 'health', 'BGDe5a', 'BGDe5b',
          'TransTime'],
    'R': ['X', 'dX', 'dX2', 'health',
          'Y', 'dY', 'dY2', 'FreqNum',
          'Z', 'dZ', 'dZ2', 'AgeOpInfo'],
    'S': ['X', 'dX', 'dX2', 'health',
          'Y', 'dY', 'dY2', 'URA',
          'Z', 'dZ', 'dZ2', 'IODN'],
}

CLOCK_FIELDS = {
    'G': ['SVclockBias', 'SVclockDrift', 'SVclockDriftRate'],
    'E': ['SVclockBias', 'SVclockDrift', 'SVclockDriftRate'],
    'R': ['SVclockBias', 'SVrelFreqBias', 'MessageFrameTime'],
    'S': ['SVclockBias', 'SVrelFreqBias', 'MessageFrameTime'],
}


def nav_values(system, bo):
    """Clock and orbit parameters of a broadcast orbit as a {name: value} dict."""
    values = list(bo[0][1:4]) + list(np.asarray(bo)[1:].ravel())
    names = CLOCK_FIELDS[system] + NAV_FIELDS[system]
    return dict(zip(names, values))


def _build_dataset(records):
    """Dataset with (time, sv) NaN filled variables from (time, sv, {name: value})."""
    sv_set = sorted(set(r[1] for r in records))
    time_set = sorted(set(r[0] for r in records))
    sv_idx = {sv: i for i, sv in enumerate(sv_set)}
    time_idx = {t: i for i, t in enumerate(time_set)}
    data_vars = {}
    for t, sv, values in records:
        for name, value in values.items():
            if name not in data_vars:
                data_vars[name] = (['time', 'sv'], np.full((len(time_set), len(sv_set)), np.nan))
            data_vars[name][1][time_idx[t], sv_idx[sv]] = value
    return xr.Dataset(
        data_vars=data_vars,
        coords={'time': np.array(time_set, dtype='datetime64[ns]'), 'sv': np.array(sv_set)},
    )


def to_obs_dataset(records):
    """xarray Dataset of observables.

    records: iterable of (time_tag, sv, obs_type, value), time_tag in seconds
    from the GPS epoch and sv like 'G05'. One variable per observable type.
    """
    rows = [(gps_to_datetime64(tag), sv, {obs: value}) for tag, sv, obs, value in records]
    return _build_dataset(rows)


def to_nav_dataset(records):
    """xarray Dataset of broadcast ephemerides.

    records: iterable of (time_tag, system, sat, bo).
    """
    rows = [(gps_to_datetime64(tag), '%s%02d' % (system, sat), nav_values(system, bo))
            for tag, system, sat, bo in records]
    return _build_dataset(rows)
