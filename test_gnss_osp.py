"""
Comprehensive unit tests for gnss_osp.py

Tests cover:
  - GPS word parity check and data bit extraction
  - Subframe packing and GPS ephemeris extraction / IOD consistency
  - GPS and GLONASS scale factors, URA and fit interval tables
  - GLONASS string rebuilding, time tags and ephemeris extraction
  - GNSSDataFromOSP on synthetic OSP streams:
      header data (MID2, MID6, MID7), observables (MID28 + MID7),
      ephemerides from MID15, MID8 subframes and strings and MID70
  - GLONASS slot and carrier frequency scan, unreadable MID8 skipped
"""

import io
import logging
import struct
import sys
import os

import pytest

# Add repo root to path so we can import the module
sys.path.insert(0, os.path.dirname(__file__))

import importlib
gnss_osp = importlib.import_module("gnss_osp")
gnss_utils = importlib.import_module("gnss_utils")
rinex_data = importlib.import_module("rinex_data")

WEEK = 1825
TOW = 345600.0  # 2015-01-01 00:00:00


# ============================================================
# Helpers
# ============================================================

def osp_stream(*payloads):
    data = b''
    for p in payloads:
        data += struct.pack('>H', len(p)) + p
    return io.BytesIO(data)


def f64(value):
    """Double in receiver word order (low-order half first)."""
    b = struct.pack('>d', value)
    return b[4:] + b[:4]


def i24(value):
    return (value & 0xFFFFFF).to_bytes(3, 'big')


def pad(payload, length):
    return payload + bytes(length - len(payload))


def mid2(x, y, z, week=WEEK, tow=TOW, nsv=8):
    body = struct.pack('>Biii', 2, x, y, z) + bytes(9)
    body += struct.pack('>HiB', week - 1024, int(tow * 100), nsv)
    return pad(body, 41)


def mid6(version, customer):
    return bytes([6, len(version), len(customer)]) + version.encode() + customer.encode()


def mid7(week=WEEK, tow=TOW, nsv=8, drift=0, bias_ns=0):
    return pad(struct.pack('>BHIBII', 7, week, int(round(tow * 100)), nsv, drift, bias_ns), 20)


def mid28(sv, sw_time, pseudorange, freq=1000.0, phase=2.0e7, sync=0x13, cn0=42, channel=1):
    body = struct.pack('>BBIB', 28, channel, 0, sv)
    body += f64(sw_time) + f64(pseudorange) + struct.pack('>f', freq) + f64(phase)
    body += struct.pack('>HB', 100, sync) + bytes([cn0] * 10) + struct.pack('>H', 0)
    return pad(body, 56)


def gps_word(data):
    """GPS word with D29* = D30* = 0 and correct parity for 24 data bits."""
    word = (data & 0xFFFFFF) << 6
    parity = 0
    for i, mask in enumerate(gnss_osp.PARITY_BIT_MASK):
        parity |= (bin(mask & word).count('1') % 2) << (5 - i)
    return word | parity


def gps_subframes(iodc=0x22, iode2=0x22, iode3=0x22, ura=3, toc=7200, tow_count=1000):
    """Data words (24 bits) of subframes 1-3 with the fields used by the tests."""
    sf = [[0] * 10 for _ in range(3)]
    for i in range(3):
        sf[i][0] = 0x8B0000
        sf[i][1] = (tow_count << 7) | ((i + 1) << 2)
    sf[0][2] = (801 << 14) | (ura << 8)  # week mod 1024 and URA index
    sf[0][7] = (iodc << 16) | toc
    sf[1][2] = iode2 << 16
    sf[1][7] = 161                       # sqrtA = 161 * 2**24 * 2**-19 = 5152
    sf[2][9] = iode3 << 16
    return sf


def mid8(sv, data_words, channel=2):
    return struct.pack('>BBB', 8, channel, sv) + b''.join(
        struct.pack('>I', gps_word(w)) for w in data_words)


def mid15(sv, nav_w):
    return struct.pack('>BB', 15, sv) + b''.join(struct.pack('>H', w) for w in nav_w)


def mid70_sv(slot, freq=-4, day=1, ref=12, x=2048, valid=1, tau=1024):
    body = struct.pack('>BBBBHBB', valid, slot, freq & 0xFF, 0, day, ref, 0)
    body += struct.pack('>iii', x, -x, 2 * x)
    body += i24(1 << 20) + i24(0) + i24(-(1 << 20))
    body += bytes([0, 0, 0, 0]) + i24(tau)
    return body


def mid70(sv_blocks, n4=7):
    body = struct.pack('>BBB', 70, 12, 1) + i24(0) + struct.pack('>ihhBBB', 0, 0, 0, n4, 0, len(sv_blocks))
    return body + b''.join(sv_blocks)


def put_bits(words, bitpos, length, value):
    for i in range(length):
        if (value >> i) & 1:
            p = bitpos + i
            words[p // 32] |= 1 << (p % 32)


def glo_mid8(sv, string, channel=3):
    """MID8 carrying a GLONASS string given as its three 32-bit stream words."""
    s0, s1, s2 = string
    words = [(s2 << 4) | (s1 >> 28), (s1 >> 3) & 0x1FFFFFF,
             ((s1 & 0x7) << 22) | (s0 >> 10), (s0 & 0x3FF) << 15] + [0] * 6
    return struct.pack('>BBB', 8, channel, sv) + b''.join(struct.pack('>I', w) for w in words)


def glo_string(number, *fields):
    """String words with the string number and (bitpos, length, value) fields set."""
    words = [0, 0, 0]
    put_bits(words, 80, 4, number)
    for bitpos, length, value in fields:
        put_bits(words, bitpos, length, value)
    return words


def new_rinex(systems=('G',)):
    rinex = rinex_data.RinexData(rinex_data.Version.V302)
    for s in systems:
        rinex.set_field('SYS', s, ['C1C', 'L1C', 'D1C', 'S1C'])
    return rinex


def obs_values(rinex):
    return {(r[0], r[1], r[2]): r[3] for r in
            (rinex.get_obs_data(i) for i in range(len(rinex.obs_data)))}


# ============================================================
# GPS navigation message
# ============================================================

class TestGpsParity:
    @pytest.mark.parametrize("data", [0x000000, 0x8B0000, 0xABCDEF, 0xFFFFFF])
    def test_valid_words(self, data):
        assert gnss_osp.check_gps_parity(gps_word(data))

    def test_flipped_data_bit(self):
        assert not gnss_osp.check_gps_parity(gps_word(0xABCDEF) ^ (1 << 10))

    def test_flipped_parity_bit(self):
        assert not gnss_osp.check_gps_parity(gps_word(0x123456) ^ 0x01)

    def test_data_bits(self):
        assert gnss_osp.gps_data_bits(gps_word(0xABCDEF)) == 0xABCDEF

    def test_data_bits_inverted_by_d30(self):
        word = 0x40000000 | ((~0x123456 & 0xFFFFFF) << 6)
        assert gnss_osp.gps_data_bits(word) == 0x123456


class TestGpsEphemeris:
    def test_pack_puts_sv_in_tlm_place(self):
        nav_w = gnss_osp.pack_gps_subframes(9, gps_subframes())
        assert len(nav_w) == 45
        assert nav_w[0] == nav_w[15] == nav_w[30] == 9

    def test_extract(self):
        sv, bom = gnss_osp.extract_gps_ephemeris(gnss_osp.pack_gps_subframes(9, gps_subframes()))
        assert sv == 9
        assert bom[0][0] == 7200
        assert bom[1][0] == 0x22
        assert bom[2][3] == 161 << 24
        assert bom[5][2] == 1825
        assert bom[6][0] == 3
        assert bom[6][3] == 0x22
        assert bom[7][0] == 1000 * 600

    @pytest.mark.parametrize("iods", [(0x22, 0x23, 0x22), (0x22, 0x22, 0x21), (0x10, 0x22, 0x22)])
    def test_iod_mismatch(self, iods, caplog):
        nav_w = gnss_osp.pack_gps_subframes(9, gps_subframes(*iods))
        with caplog.at_level(logging.WARNING):
            assert gnss_osp.extract_gps_ephemeris(nav_w) is None
        assert "Different IODs" in caplog.text

    def test_different_svs(self):
        nav_w = gnss_osp.pack_gps_subframes(9, gps_subframes())
        nav_w[30] = 10
        assert gnss_osp.extract_gps_ephemeris(nav_w) is None

    def test_scale(self):
        _, bom = gnss_osp.extract_gps_ephemeris(gnss_osp.pack_gps_subframes(9, gps_subframes()))
        tag, bo = gnss_osp.scale_gps_ephemeris(bom)
        assert tag == gnss_utils.secs_from_week_tow(1825, 115200.0)
        assert bo.shape == (8, 4)
        assert bo[0][0] == 115200.0
        assert bo[2][3] == pytest.approx(5152.0)
        assert bo[6][0] == 5.7
        assert bo[7][0] == pytest.approx(6000.0)
        assert bo[7][1] == 4.0

    def test_scale_ura_saturates(self):
        bom = [[0] * 4 for _ in range(8)]
        bom[5][2] = 1825
        bom[6][0] = 15
        _, bo = gnss_osp.scale_gps_ephemeris(bom)
        assert bo[6][0] == 6144.0

    @pytest.mark.parametrize("flag,iodc,hours", [
        (0, 100, 4.0), (1, 240, 8.0), (1, 250, 14.0), (1, 496, 14.0),
        (1, 500, 26.0), (1, 1022, 26.0), (1, 100, 6.0),
    ])
    def test_fit_interval(self, flag, iodc, hours):
        assert gnss_osp.gps_fit_interval(flag, iodc) == hours


# ============================================================
# GLONASS navigation message
# ============================================================

class TestGlonass:
    def test_string_number(self):
        _, num = gnss_osp.glo_string_from_words([4 << 20] + [0] * 9)
        assert num == 4

    def test_hamming_accepts(self):
        assert gnss_osp.check_glo_hamming([0, 0, 0])

    def test_time_tag_is_utc(self):
        # 03:00 Moscow time on day 1 of the 2020 interval
        assert gnss_osp.glo_time_tag(7, 1, 10800) == gnss_utils.secs_from_date(2020, 1, 1)

    def test_frame_time_starts_monday(self):
        sunday = gnss_utils.secs_from_week_tow(WEEK, 0.0)
        assert gnss_osp.glo_frame_time(sunday) == 518400
        assert gnss_osp.glo_frame_time(sunday + 86400) == 0

    def strings(self, slot=3):
        strings = [[0, 0, 0] for _ in range(5)]
        put_bits(strings[3], 10, 5, slot)
        put_bits(strings[4], 31, 5, 7)      # N4
        put_bits(strings[3], 15, 11, 1)     # NT
        put_bits(strings[1], 69, 7, 12)     # tb: 12 x 15 min
        put_bits(strings[0], 8, 27, 2048)   # X
        put_bits(strings[0], 40, 24, (1 << 23) | 1024)  # vel X, negative
        return strings

    def test_extract(self):
        freq = [0] * 24
        freq[2] = -4
        slot, tag, bom = gnss_osp.extract_glo_ephemeris(self.strings(), freq)
        assert slot == 3
        assert tag == gnss_utils.secs_from_date(2020, 1, 1)
        assert bom[1][0] == 2048
        assert bom[1][1] == -1024
        assert bom[2][3] == -4
        bo = gnss_osp.scale_glo_ephemeris(bom)
        assert bo.shape == (8, 4)
        assert bo[1][0] == 1.0
        assert bo[1][1] == pytest.approx(-1024 * 2.0**-20)
        assert not bo[4:].any()

    def test_extract_bad_slot(self, caplog):
        assert gnss_osp.extract_glo_ephemeris(self.strings(slot=0), [0] * 24) is None
        assert "slot number out of range" in caplog.text


# ============================================================
# Decoder: header data
# ============================================================

class TestHeaderAcquisition:
    def test_all_header_data(self):
        stream = osp_stream(mid2(4849202, -360329, 4114913), mid6('GSD4e_4.1.2', 'CUST'),
                            mid7(), mid7(tow=TOW + 5))
        rinex = new_rinex()
        decoder = gnss_osp.GNSSDataFromOSP(stream)
        assert decoder.acq_header_data(rinex)
        assert rinex.get_field('APPXYZ') == (4849202.0, -360329.0, 4114913.0)
        assert rinex.get_field('RECEIVER') == ('GSD4e_4.1.2', 'SiRF', 'CUST')
        assert rinex.get_field('INT') == (5.0,)
        assert rinex.get_field('TOFO') == (WEEK, TOW, 'GPS')

    def test_missing_interval(self):
        stream = osp_stream(mid2(1, 2, 3), mid6('V', 'C'), mid7())
        assert not gnss_osp.GNSSDataFromOSP(stream).acq_header_data(new_rinex())

    def test_fix_with_few_satellites_ignored(self, caplog):
        stream = osp_stream(mid2(1, 2, 3, nsv=2))
        rinex = new_rinex()
        gnss_osp.GNSSDataFromOSP(stream).acq_header_data(rinex)
        assert rinex.get_field('APPXYZ') is None
        assert "few SVs" in caplog.text

    def test_rejected_fix_keeps_epoch_time(self):
        decoder = gnss_osp.GNSSDataFromOSP(osp_stream(mid2(1, 2, 3, tow=TOW + 100, nsv=2)))
        decoder.acq_header_data(new_rinex())
        assert decoder.epoch_week == 0
        assert decoder.epoch_tow == 0.0

    def test_rejected_time_keeps_epoch_time(self):
        decoder = gnss_osp.GNSSDataFromOSP(osp_stream(mid7(tow=TOW + 100, nsv=2)))
        decoder.acq_header_data(new_rinex())
        assert decoder.epoch_week == 0
        assert decoder.epoch_tow == 0.0

    def test_rejected_fix_does_not_change_interval(self):
        stream = osp_stream(mid6('V', 'C'), mid7(), mid2(1, 2, 3, tow=TOW + 3, nsv=2),
                            mid7(tow=TOW + 5))
        rinex = new_rinex()
        assert not gnss_osp.GNSSDataFromOSP(stream).acq_header_data(rinex)
        assert rinex.get_field('INT') == (5.0,)

    def test_short_message_logged(self, caplog):
        stream = osp_stream(mid7()[:10])
        with caplog.at_level(logging.WARNING):
            gnss_osp.GNSSDataFromOSP(stream).acq_header_data(new_rinex())
        assert "MID7 msg len <> 20" in caplog.text
        assert "U32 read after end" in caplog.text


# ============================================================
# Decoder: observables
# ============================================================

class TestEpochAcquisition:
    def test_epoch_observables(self):
        stream = osp_stream(mid28(5, 100.0, 21000000.0), mid28(12, 100.0, 22000000.0), mid7())
        rinex = new_rinex()
        decoder = gnss_osp.GNSSDataFromOSP(stream)
        assert decoder.acq_epoch_data(rinex)
        values = obs_values(rinex)
        assert len(values) == 8
        assert values[('G', 5, 'C1C')] == 21000000.0
        assert values[('G', 12, 'L1C')] == pytest.approx(2.0e7 * gnss_osp.L1_WL_INV)
        assert values[('G', 5, 'D1C')] == pytest.approx(1000.0 * gnss_osp.L1_WL_INV)
        assert values[('G', 5, 'S1C')] == 42.0
        assert rinex.get_obs_data(0)[5] == 7
        assert rinex.get_epoch_time()[:2] == (WEEK, TOW)
        assert not decoder.acq_epoch_data(rinex)

    def test_clock_bias_applied(self):
        stream = osp_stream(mid28(5, 100.0, 21000000.0), mid7(bias_ns=1000))
        rinex = new_rinex()
        gnss_osp.GNSSDataFromOSP(stream).acq_epoch_data(rinex)
        values = obs_values(rinex)
        assert values[('G', 5, 'C1C')] == pytest.approx(21000000.0 - 1.0e-6 * gnss_osp.C1C_ADJ)
        assert rinex.get_epoch_time()[2] == pytest.approx(1.0e-6)

    def test_clock_bias_moved_to_time(self):
        stream = osp_stream(mid28(5, 100.0, 21000000.0), mid7(bias_ns=1000))
        rinex = new_rinex()
        gnss_osp.GNSSDataFromOSP(stream, apply_bias=False).acq_epoch_data(rinex)
        assert obs_values(rinex)[('G', 5, 'C1C')] == 21000000.0
        week, tow, bias, _ = rinex.get_epoch_time()
        assert tow == pytest.approx(TOW + 1.0e-6)
        assert bias == 0.0

    def test_sync_flags(self):
        stream = osp_stream(mid28(5, 100.0, 21000000.0, sync=0x00),
                            mid28(6, 100.0, 21000000.0, sync=0x01), mid7())
        rinex = new_rinex()
        gnss_osp.GNSSDataFromOSP(stream).acq_epoch_data(rinex)
        values = obs_values(rinex)
        assert ('G', 5, 'C1C') not in values
        assert values[('G', 6, 'L1C')] == 0.0
        assert values[('G', 6, 'D1C')] == 0.0

    def test_glonass_and_sbas_numbers(self):
        stream = osp_stream(mid28(75, 100.0, 1.9e7), mid28(120, 100.0, 3.8e7), mid7())
        rinex = new_rinex(('G', 'R', 'S'))
        decoder = gnss_osp.GNSSDataFromOSP(stream)
        decoder.glo_slots[75 - gnss_osp.FIRST_GLO_SAT][1] = 14
        decoder.acq_epoch_data(rinex)
        values = obs_values(rinex)
        assert ('R', 14, 'C1C') in values
        assert ('S', 20, 'C1C') in values

    def test_few_satellites_epoch_not_closed(self, caplog):
        stream = osp_stream(mid28(5, 100.0, 21000000.0), mid7(nsv=2))
        rinex = new_rinex()
        assert not gnss_osp.GNSSDataFromOSP(stream).acq_epoch_data(rinex)
        assert rinex.obs_data == []
        assert "few SVs" in caplog.text

    def test_lost_epoch_time(self, caplog):
        stream = osp_stream(mid28(5, 100.0, 21000000.0), mid28(5, 101.0, 21000100.0), mid7())
        rinex = new_rinex()
        gnss_osp.GNSSDataFromOSP(stream).acq_epoch_data(rinex)
        assert "MID7 lost" in caplog.text
        assert obs_values(rinex)[('G', 5, 'C1C')] == 21000100.0


# ============================================================
# Decoder: ephemerides
# ============================================================

class TestEphemerisAcquisition:
    def test_mid15(self):
        nav_w = gnss_osp.pack_gps_subframes(9, gps_subframes())
        stream = osp_stream(mid7(), mid15(9, nav_w))
        rinex = new_rinex()
        gnss_osp.GNSSDataFromOSP(stream).acq_epoch_data(rinex)
        system, sat, bo, tag = rinex.get_nav_data(0)
        assert (system, sat) == ('G', 9)
        assert tag == gnss_utils.secs_from_week_tow(1825, 115200.0)
        assert bo[7][0] == pytest.approx(TOW)

    def test_mid15_wrong_data(self, caplog):
        nav_w = gnss_osp.pack_gps_subframes(9, gps_subframes(iode3=0x30))
        rinex = new_rinex()
        gnss_osp.GNSSDataFromOSP(osp_stream(mid15(9, nav_w))).acq_epoch_data(rinex)
        assert rinex.nav_data == []
        assert "Wrong data" in caplog.text

    def test_mid8_subframes(self):
        sf = gps_subframes()
        stream = osp_stream(mid8(9, sf[0]), mid8(9, sf[1]), mid8(9, sf[2]))
        rinex = new_rinex()
        gnss_osp.GNSSDataFromOSP(stream).acq_epoch_data(rinex, use_mid8_gps=True)
        assert len(rinex.nav_data) == 1
        system, sat, bo, _ = rinex.get_nav_data(0)
        assert (system, sat) == ('G', 9)
        assert bo[7][0] == pytest.approx(6000.0)

    def test_mid8_ignored_without_option(self):
        sf = gps_subframes()
        stream = osp_stream(mid8(9, sf[0]), mid8(9, sf[1]), mid8(9, sf[2]))
        rinex = new_rinex()
        gnss_osp.GNSSDataFromOSP(stream).acq_epoch_data(rinex)
        assert rinex.nav_data == []

    def test_mid8_iod_mismatch(self, caplog):
        sf = gps_subframes(iode3=0x23)
        stream = osp_stream(mid8(9, sf[0]), mid8(9, sf[1]), mid8(9, sf[2]))
        rinex = new_rinex()
        with caplog.at_level(gnss_utils.FINER):
            gnss_osp.GNSSDataFromOSP(stream).acq_epoch_data(rinex, use_mid8_gps=True)
        assert rinex.nav_data == []
        assert "IOD mismatch" in caplog.text

    def test_mid8_parity_error(self, caplog):
        sf = gps_subframes()
        bad = bytearray(mid8(9, sf[0]))
        bad[-1] ^= 0x01
        stream = osp_stream(bytes(bad), mid8(9, sf[1]), mid8(9, sf[2]))
        rinex = new_rinex()
        gnss_osp.GNSSDataFromOSP(stream).acq_epoch_data(rinex, use_mid8_gps=True)
        assert rinex.nav_data == []
        assert "wrong parity" in caplog.text

    def test_mid8_other_satellite_clears_channel(self):
        sf = gps_subframes()
        stream = osp_stream(mid8(9, sf[0]), mid8(9, sf[1]), mid8(10, sf[2]),
                            mid8(10, sf[0]), mid8(10, sf[1]))
        rinex = new_rinex()
        gnss_osp.GNSSDataFromOSP(stream).acq_epoch_data(rinex, use_mid8_gps=True)
        assert [(r.system, r.sat) for r in rinex.nav_data] == [('G', 10)]

    def test_mid70(self):
        stream = osp_stream(mid70([mid70_sv(3), mid70_sv(30)]))
        rinex = new_rinex(('G', 'R'))
        gnss_osp.GNSSDataFromOSP(stream).acq_epoch_data(rinex)
        assert len(rinex.nav_data) == 1
        system, sat, bo, tag = rinex.get_nav_data(0)
        assert (system, sat) == ('R', 3)
        assert tag == gnss_utils.secs_from_date(2020, 1, 1)
        assert bo[0][1] == pytest.approx(-1024 * 2.0**-30)
        assert bo[1][0] == 1.0
        assert bo[2][0] == -1.0
        assert bo[1][1] == pytest.approx(1.0)
        assert bo[3][1] == pytest.approx(-1.0)
        assert bo[2][3] == -4.0

    def test_mid70_invalid_entry(self, caplog):
        stream = osp_stream(mid70([mid70_sv(3, valid=0)]))
        rinex = new_rinex(('G', 'R'))
        gnss_osp.GNSSDataFromOSP(stream).acq_epoch_data(rinex)
        assert rinex.nav_data == []
        assert "not valid for 3" in caplog.text

    def test_mid70_ignored_with_mid8_option(self):
        stream = osp_stream(mid70([mid70_sv(3)]))
        rinex = new_rinex(('G', 'R'))
        gnss_osp.GNSSDataFromOSP(stream).acq_epoch_data(rinex, use_mid8_glo=True)
        assert rinex.nav_data == []

    def test_mid8_glonass_strings(self):
        strings = [
            glo_string(1, (8, 27, 2048), (40, 24, (1 << 23) | 1024)),
            glo_string(2, (69, 7, 12)),
            glo_string(3),
            glo_string(4, (10, 5, 3), (15, 11, 1)),
            glo_string(5, (31, 5, 7)),
        ]
        stream = osp_stream(*[glo_mid8(72, s, channel=3) for s in strings])
        rinex = new_rinex(('G', 'R'))
        decoder = gnss_osp.GNSSDataFromOSP(stream)
        decoder.acq_epoch_data(rinex, use_mid8_glo=True)
        assert len(rinex.nav_data) == 1
        system, sat, bo, tag = rinex.get_nav_data(0)
        assert (system, sat) == ('R', 3)
        assert tag == gnss_utils.secs_from_date(2020, 1, 1)
        assert bo[1][0] == 1.0
        assert bo[1][1] == pytest.approx(-1024 * 2.0**-20)
        assert decoder.glo_slot(72) == 3

    def test_duplicate_ephemeris_stored_once(self):
        nav_w = gnss_osp.pack_gps_subframes(9, gps_subframes())
        stream = osp_stream(mid15(9, nav_w), mid15(9, nav_w))
        rinex = new_rinex()
        gnss_osp.GNSSDataFromOSP(stream).acq_epoch_data(rinex)
        assert len(rinex.nav_data) == 1


class TestGloParams:
    def test_slot_from_string_4(self):
        words = [0] * 10
        # string number 4, slot 5
        words[0] = 4 << 20
        words[2] = 5
        stream = osp_stream(struct.pack('>BBB', 8, 3, 72) + b''.join(struct.pack('>I', w) for w in words))
        decoder = gnss_osp.GNSSDataFromOSP(stream)
        assert decoder.acq_glo_params()
        assert decoder.glo_slots[2] == [3, 5]
        assert decoder.glo_slot(72) == 5
        assert decoder.glo_slot(73) == 73

    def test_unreadable_message_skipped(self, caplog):
        stream = osp_stream(struct.pack('>BBB', 8, 1, 70) + bytes(7),
                            glo_mid8(72, glo_string(4, (10, 5, 5)), channel=3))
        decoder = gnss_osp.GNSSDataFromOSP(stream)
        assert not decoder.acq_glo_params()
        assert decoder.glo_slots[2] == [3, 5]
        assert "MID8 GLO" in caplog.text

    def test_carrier_frequency_from_almanac(self):
        stream = osp_stream(glo_mid8(71, glo_string(6, (72, 5, 5))),
                            glo_mid8(71, glo_string(7, (9, 5, 27))),
                            glo_mid8(71, glo_string(8, (72, 5, 6))),
                            glo_mid8(71, glo_string(9, (9, 5, 3))))
        decoder = gnss_osp.GNSSDataFromOSP(stream)
        assert decoder.acq_glo_params()
        # 27 is -5 in five bit two's complement
        assert decoder.carrier_freq[4] == -5
        assert decoder.carrier_freq[5] == 3

    def test_odd_string_without_its_pair_ignored(self):
        stream = osp_stream(glo_mid8(71, glo_string(6, (72, 5, 5))),
                            glo_mid8(71, glo_string(9, (9, 5, 3))))
        decoder = gnss_osp.GNSSDataFromOSP(stream)
        assert decoder.acq_glo_params()
        assert decoder.carrier_freq == [0] * len(decoder.carrier_freq)

    def test_bad_almanac_slot_logged(self, caplog):
        stream = osp_stream(glo_mid8(71, glo_string(6, (72, 5, 0))))
        gnss_osp.GNSSDataFromOSP(stream).acq_glo_params()
        assert "bad slot number = 0" in caplog.text
