#!/usr/bin/env python3
"""
gnss_osp.py -- Decode SiRF OSP binary messages into RINEX data.

Reads an OSP binary file (2-byte length + payload per message) and feeds a
RinexData instance with header data, per-epoch observables and GPS / GLONASS
broadcast ephemerides.

Messages used:
  MID2   Measured navigation data (approximate position)
  MID6   Software version (receiver identification)
  MID7   Clock status (epoch time, clock bias and drift)
  MID8   50 bps navigation data (GPS subframes, GLONASS strings)
  MID15  GPS ephemeris data
  MID28  Navigation library measurement data (observables)
  MID70  SID12 GLONASS broadcast ephemeris

Dependencies: numpy
"""

import logging
from collections import namedtuple

import numpy as np

from gnss_utils import (
    FINE, FINER, bits_set, get_bits, gps_tow, secs_from_date,
    secs_from_week_tow, sign_magnitude, twos_complement,
)
from osp_message import OSPMessage, OSPReadError

logger = logging.getLogger(__name__)

MAX_CHANNELS = 32
MAX_SUBFR = 5
MAX_GLO_SLOTS = 24
FIRST_GLO_SAT = 70
LAST_GLO_SAT = 83
MAX_GLO_SATS = 14
FIRST_GPS_SAT = 1
LAST_GPS_SAT = 32
FIRST_SBAS_SAT = 101
LAST_SBAS_SAT = 200

SPEED_OF_LIGHT = 299792458.0
L1_FREQ = 1575420000.0
C1C_ADJ = SPEED_OF_LIGHT      # pseudorange correction per second of clock bias
L1C_ADJ = L1_FREQ             # carrier phase correction per second of clock bias
L1_WL_INV = L1_FREQ / SPEED_OF_LIGHT
GPS_PI = 3.1415926535898

# Bits taking part in the computation of each GPS parity bit (D25..D30)
PARITY_BIT_MASK = [0xBB1F3480, 0x5D8F9A40, 0xAEC7CD00, 0x5763E680, 0x6BB1F340, 0x8B7A89C0]

# ---- Scale factors: raw broadcast orbit mantissas -> physical units ----

GPS_SCALE = np.array([
    [2.0**4, 2.0**-31, 2.0**-43, 2.0**-55],                     # Toc, Af0, Af1, Af2
    [1.0, 2.0**-5, 2.0**-43 * GPS_PI, 2.0**-31 * GPS_PI],       # IODE, Crs, DeltaN, M0
    [2.0**-29, 2.0**-33, 2.0**-29, 2.0**-19],                   # Cuc, e, Cus, sqrtA
    [2.0**4, 2.0**-29, 2.0**-31 * GPS_PI, 2.0**-29],            # Toe, Cic, Omega0, Cis
    [2.0**-31 * GPS_PI, 2.0**-5, 2.0**-31 * GPS_PI, 2.0**-43 * GPS_PI],  # i0, Crc, omega, OmegaDot
    [2.0**-43 * GPS_PI, 1.0, 1.0, 1.0],                         # IDOT, codes L2, week, L2P flag
    [1.0, 1.0, 2.0**-31, 1.0],                                  # URA index, health, TGD, IODC
    [0.01, 1.0, 0.0, 0.0],                                      # transmission time x100, fit
])

# User Range Accuracy in meters per URA index (IS-GPS-200 20.3.3.3.1.3)
GPS_URA = [2.0, 2.8, 4.0, 5.7, 8.0, 11.3, 2.0**4, 2.0**5, 2.0**6, 2.0**7,
           2.0**8, 2.0**9, 2.0**10, 2.0**11, 2.0**12, 6144.0]

GLO_SCALE = np.array([
    [1.0, 2.0**-30, 2.0**-40, 1.0],            # Toc, -TauN, +GammaN, frame time
    [2.0**-11, 2.0**-20, 2.0**-30, 1.0],       # X, vel X, acc X, health
    [2.0**-11, 2.0**-20, 2.0**-30, 1.0],       # Y, vel Y, acc Y, frequency number
    [2.0**-11, 2.0**-20, 2.0**-30, 1.0],       # Z, vel Z, acc Z, age of oper. info
])

ChannelObs = namedtuple('ChannelObs', [
    'system', 'sat', 'pseudorange', 'phase', 'doppler', 'strength',
    'lol', 'strength_index', 'tag',
])


# ---- GPS navigation message ----

def check_gps_parity(word):
    """Check the parity of a GPS word laid out as D29* D30* d1..d24 D25..D30."""
    to_check = word
    if word & 0x40000000:
        to_check = (word & 0xC0000000) | (~word & 0x3FFFFFFF)
    parity = 0
    for i, mask in enumerate(PARITY_BIT_MASK):
        parity |= (bits_set(mask & to_check) % 2) << (5 - i)
    return parity == (word & 0x3F)


def gps_data_bits(word):
    """Strip parity from a checked GPS word, undoing the D30* inversion."""
    if word & 0x40000000:
        return ~(word >> 6) & 0xFFFFFF
    return (word >> 6) & 0xFFFFFF


def pack_gps_subframes(sv, subframes):
    """Pack subframes 1-3 (10 data words of 24 bits each) into the 45 16-bit
    words layout of a MID15 message."""
    nav_w = [0] * 45
    for i in range(3):
        words = subframes[i]
        for j in range(5):
            base = i * 15 + j * 3
            nav_w[base] = (words[j * 2] >> 8) & 0xFFFF
            nav_w[base + 1] = ((words[j * 2] & 0xFF) << 8) | ((words[j * 2 + 1] >> 16) & 0xFF)
            nav_w[base + 2] = words[j * 2 + 1] & 0xFFFF
        # TLM word is not needed, its place holds the satellite number
        nav_w[i * 15] = sv
        nav_w[i * 15 + 1] &= 0xFF
    return nav_w


def extract_gps_ephemeris(nav_w):
    """Extract broadcast orbit mantissas from 45 packed subframe words.

    Returns (sv, bom) with bom an 8x4 list of integers, or None when the
    subframes belong to different satellites or their IODs do not match.
    """
    sv = nav_w[0] & 0xFF
    if not (sv == (nav_w[15] & 0xFF) and sv == (nav_w[30] & 0xFF)):
        logger.info("Different SVs in the channel data")
        return None
    iodc_lsb = nav_w[10] & 0xFF
    iode1 = (nav_w[18] >> 8) & 0xFF
    iode2 = nav_w[43] & 0xFF
    if not (iode1 == iode2 and iode1 == iodc_lsb):
        logger.warning(f"Different IODs:SV <{sv}> IODs <{iodc_lsb},{iode1},{iode2}>")
        return None

    s2 = nav_w[15:30]
    s3 = nav_w[30:45]
    tc = twos_complement
    bom = [[0] * 4 for _ in range(8)]
    # SV clock
    bom[0][0] = nav_w[11]
    bom[0][1] = tc(((nav_w[13] & 0xFF) << 14) | ((nav_w[14] >> 2) & 0x3FFF), 22)
    bom[0][2] = tc(((nav_w[12] & 0xFF) << 8) | ((nav_w[13] >> 8) & 0xFF), 16)
    bom[0][3] = tc((nav_w[12] >> 8) & 0xFF, 8)
    # broadcast orbit 1
    bom[1][0] = iode1
    bom[1][1] = tc(((s2[3] & 0xFF) << 8) | ((s2[4] >> 8) & 0xFF), 16)
    bom[1][2] = tc(((s2[4] & 0xFF) << 8) | ((s2[5] >> 8) & 0xFF), 16)
    bom[1][3] = tc(((s2[5] & 0xFF) << 24) | ((s2[6] & 0xFFFF) << 8) | ((s2[7] >> 8) & 0xFF), 32)
    # broadcast orbit 2 (e and sqrtA are unsigned)
    bom[2][0] = tc(((s2[7] & 0xFF) << 8) | ((s2[8] >> 8) & 0xFF), 16)
    bom[2][1] = ((s2[8] & 0xFF) << 24) | ((s2[9] & 0xFFFF) << 8) | ((s2[10] >> 8) & 0xFF)
    bom[2][2] = tc(((s2[10] & 0xFF) << 8) | ((s2[11] >> 8) & 0xFF), 16)
    bom[2][3] = ((s2[11] & 0xFF) << 24) | ((s2[12] & 0xFFFF) << 8) | ((s2[13] >> 8) & 0xFF)
    # broadcast orbit 3
    bom[3][0] = ((s2[13] & 0xFF) << 8) | ((s2[14] >> 8) & 0xFF)
    bom[3][1] = tc(s3[3], 16)
    bom[3][2] = tc(((s3[4] & 0xFFFF) << 16) | (s3[5] & 0xFFFF), 32)
    bom[3][3] = tc(s3[6], 16)
    # broadcast orbit 4
    bom[4][0] = tc(((s3[7] & 0xFFFF) << 16) | (s3[8] & 0xFFFF), 32)
    bom[4][1] = tc(s3[9], 16)
    bom[4][2] = tc(((s3[10] & 0xFFFF) << 16) | (s3[11] & 0xFFFF), 32)
    bom[4][3] = tc(((s3[12] & 0xFFFF) << 8) | ((s3[13] >> 8) & 0xFF), 24)
    # broadcast orbit 5
    bom[5][0] = tc((s3[14] >> 2) & 0x3FFF, 14)
    bom[5][1] = (nav_w[3] >> 4) & 0x03
    bom[5][2] = ((nav_w[3] >> 6) & 0x03FF) + 1024
    bom[5][3] = (nav_w[4] >> 7) & 0x01
    # broadcast orbit 6
    bom[6][0] = nav_w[3] & 0x0F
    bom[6][1] = (nav_w[4] >> 10) & 0x3F
    bom[6][2] = tc((nav_w[10] >> 8) & 0xFF, 8)
    bom[6][3] = iodc_lsb | (nav_w[4] & 0x0300)
    # broadcast orbit 7: HOW TOW count (6 s units) scaled by 100, fit flag
    bom[7][0] = (((nav_w[1] & 0xFF) << 9) | ((nav_w[2] >> 7) & 0x01FF)) * 600
    bom[7][1] = (s2[14] >> 7) & 0x01
    bom[7][2] = 0
    bom[7][3] = iode2
    return sv, bom


def gps_fit_interval(fit_flag, iodc):
    """Fit interval in hours from the fit interval flag and IODC."""
    if fit_flag == 0:
        return 4.0
    if 240 <= iodc <= 247:
        return 8.0
    if 248 <= iodc <= 255 or iodc == 496:
        return 14.0
    if 497 <= iodc <= 503 or 1021 <= iodc <= 1023:
        return 26.0
    return 6.0


def scale_gps_ephemeris(bom):
    """Apply GPS scale factors. Returns (time_tag, bo) with bo an 8x4 array."""
    tag = secs_from_week_tow(bom[5][2], bom[0][0] * GPS_SCALE[0][0])
    bo = np.array(bom, dtype=float) * GPS_SCALE
    bo[6][0] = GPS_URA[min(bom[6][0], 15)]
    bo[7][1] = gps_fit_interval(bom[7][1], bom[6][3])
    return tag, bo


# ---- GLONASS navigation message ----

def glo_string_from_words(osp_words):
    """Rebuild the 84 bits of a GLONASS string from the ten MID8 words.

    Returns (string_words, string_number); string_words holds stream bits
    0-31, 32-63 and 64-83.
    """
    w = osp_words
    s0 = (((w[2] & 0x003FFFFF) << 10) | ((w[3] & 0x01FF8000) >> 15)) & 0xFFFFFFFF
    s1 = (((w[0] & 0x0000000F) << 28) | ((w[1] & 0x01FFFFFF) << 3)
          | ((w[2] & 0x01C00000) >> 22)) & 0xFFFFFFFF
    s2 = (w[0] & 0x00FFFFF0) >> 4
    words = [s0, s1, s2]
    return words, get_bits(words, 80, 4)


def check_glo_hamming(string_words):
    # TODO: verify the KX Hamming code of the string; every string is accepted
    return True


def glo_time_tag(n4, day, seconds):
    """UTC instant (seconds from the GPS epoch) for a GLONASS four-year interval
    number, day in the interval and seconds of day (Moscow time)."""
    return secs_from_date(1996 + (n4 - 1) * 4, 1, day, 0, 0, seconds) - 3 * 3600


def glo_frame_time(tag):
    """Seconds of the UTC week (starting Monday 00:00) for a time tag."""
    return (int(gps_tow(tag)) + 518400) % 604800


def extract_glo_ephemeris(strings, carrier_freq):
    """Extract broadcast orbit mantissas from GLONASS strings 1 to 5.

    strings is a list of five 3-word bit streams. Returns (slot, tag, bom) or
    None when the slot number in string 4 is out of range.
    """
    slot = get_bits(strings[3], 10, 5)
    if slot == 0 or slot > MAX_GLO_SLOTS:
        logger.warning(f"50bps NAV ignored. In string 4 slot number out of range:{slot}")
        return None
    n4 = get_bits(strings[4], 31, 5)
    nt = get_bits(strings[3], 15, 11)
    tb = get_bits(strings[1], 69, 7) * 15 * 60
    tag = glo_time_tag(n4, nt, tb)
    sm = sign_magnitude
    bom = [[0] * 4 for _ in range(4)]
    bom[0][0] = int(tag)
    bom[0][1] = -sm(get_bits(strings[3], 58, 22), 22)
    bom[0][2] = sm(get_bits(strings[2], 68, 11), 11)
    bom[0][3] = glo_frame_time(tag)
    for line, s in ((1, strings[0]), (2, strings[1]), (3, strings[2])):
        bom[line][0] = sm(get_bits(s, 8, 27), 27)
        bom[line][1] = sm(get_bits(s, 40, 24), 24)
        bom[line][2] = sm(get_bits(s, 35, 5), 5)
    bom[1][3] = get_bits(strings[1], 77, 3)
    bom[2][3] = carrier_freq[slot - 1]
    bom[3][3] = get_bits(strings[1], 48, 5)
    return slot, tag, bom


def scale_glo_ephemeris(bom):
    """Apply GLONASS scale factors. Returns an 8x4 array (lines 4-7 unused)."""
    bo = np.zeros((8, 4))
    bo[:4] = np.array(bom, dtype=float) * GLO_SCALE
    return bo


# ---- Decoder ----

class GNSSDataFromOSP:
    """Stateful decoder of the messages in an OSP binary stream.

    Observables are buffered per channel until the MID7 that closes the epoch
    arrives; ephemerides are stored in the RinexData instance as soon as a
    complete and consistent set is decoded.
    """

    def __init__(self, stream, receiver='SiRF', min_sv=4, apply_bias=True):
        self.stream = stream
        self.receiver = receiver
        self.min_sv = min_sv
        self.apply_bias = apply_bias
        self.message = OSPMessage()
        self.epoch_week = 0
        self.epoch_tow = 0.0
        self.epoch_clk_bias = 0.0
        self.epoch_clk_drift = 0.0
        self.ch_sat_obs = []
        # per channel and subframe/string slot: [sv, words]
        self.subfrm = [[[0, [0] * 10] for _ in range(MAX_SUBFR)] for _ in range(MAX_CHANNELS)]
        # per GLONASS satellite number (70..83): [receiver channel, slot]
        self.glo_slots = [[0, 0] for _ in range(MAX_GLO_SATS)]
        self.carrier_freq = [0] * MAX_GLO_SLOTS
        # per channel: [almanac slot nA, string number expected to carry HnA]
        self.almanac_slot = [[0, 0] for _ in range(MAX_CHANNELS)]

    def rewind(self):
        self.stream.seek(0)

    def _check_len(self, length, text):
        if self.message.payload_len() != length:
            logger.warning(text)

    def _enough_sats(self, nsv, text):
        if nsv < self.min_sv:
            logger.warning(f"{text} ignored: few SVs in solution")
            return False
        return True

    # ---- Acquisition passes ----

    def acq_header_data(self, rinex):
        """Scan messages until position, receiver, first epoch time and
        interval are known. Returns True if all of them were found."""
        rx_id_set = apx_set = first_set = interval_begin = interval_set = False
        logger.info("RINEX header data acquisition:")
        while not (apx_set and rx_id_set and first_set and interval_set) \
                and self.message.fill(self.stream):
            mid = self.message.read_u8()
            if mid == 2:
                if not apx_set:
                    apx_set = self._mid2_position(rinex)
            elif mid == 6:
                if not rx_id_set:
                    rx_id_set = self._mid6_receiver(rinex)
            elif mid == 7:
                if not first_set:
                    interval_begin = first_set = self._mid7_time(rinex)
                    if first_set:
                        rinex.set_field('TOFO')
                elif not interval_begin:
                    interval_begin = self._mid7_time(rinex)
                elif not interval_set:
                    interval_begin = interval_set = self._mid7_interval(rinex)
        logger.info("Header data acquired:"
                    + (" Aprox. position;" if apx_set else ";")
                    + (" 1st epoch time;" if first_set else ";")
                    + (" Observation interval;" if interval_set else ";")
                    + (" Receiver version" if rx_id_set else ""))
        return apx_set and first_set and rx_id_set and interval_set

    def acq_glo_params(self):
        """Rewind and scan the whole input to fill the GLONASS slot and
        carrier frequency tables.

        A MID8 that cannot be read is logged and skipped. Returns False if
        any was.
        """
        self.rewind()
        logger.info("Acquisition of GLONASS parameters:")
        completed = True
        while self.message.fill(self.stream):
            try:
                if self.message.read_u8() == 8:
                    self._glo_params_from_mid8()
            except OSPReadError as e:
                logger.error(f"MID8 GLO {e}")
                completed = False
        logger.log(FINER, "GLONASS slot numbers used (from string 4 in MID8):")
        for i, (rcv_ch, slot) in enumerate(self.glo_slots):
            logger.log(FINER, "->sv=%2d slot=%2d rxChannel=%2d " % (i + FIRST_GLO_SAT, slot, rcv_ch))
        logger.log(FINER, "GLONASS carrier frequency numbers (from almanac in MID8):")
        for i, freq in enumerate(self.carrier_freq):
            logger.log(FINER, "->slot=%2d frequency=%2d" % (i + 1, freq))
        return completed

    def _glo_params_from_mid8(self):
        """Slot (string 4) and almanac carrier frequency (strings 6-15) of a MID8."""
        self._check_len(43, "MID8 msg len <> 43")
        ch = self.message.read_u8()
        if not 0 <= ch < MAX_CHANNELS:
            logger.warning("MID8 ignored: channel not in range")
            return
        sat = self.message.read_u8()
        if not FIRST_GLO_SAT <= sat <= LAST_GLO_SAT:
            return
        words, str_num = glo_string_from_words([self.message.read_u32() for _ in range(10)])
        if str_num == 4:
            entry = self.glo_slots[sat - FIRST_GLO_SAT]
            if entry[1] == 0:
                entry[0] = ch
                entry[1] = get_bits(words, 10, 5)
        elif str_num in (6, 8, 10, 12, 14):
            n_a = get_bits(words, 72, 5)
            if 0 < n_a <= MAX_GLO_SLOTS:
                self.almanac_slot[ch] = [n_a, str_num + 1]
            else:
                logger.warning(f"MID8 GLO almanac string {str_num} bad slot number = {n_a}")
        elif str_num in (7, 9, 11, 13, 15):
            n_a, expected = self.almanac_slot[ch]
            if expected == str_num:
                hn_a = get_bits(words, 9, 5)
                if hn_a >= 25:
                    hn_a -= 32
                self.carrier_freq[n_a - 1] = hn_a

    def acq_epoch_data(self, rinex, use_mid8_gps=False, use_mid8_glo=False):
        """Read messages until an epoch is complete and its observables stored.

        Ephemerides found on the way are stored too. Returns False at end of
        input.
        """
        while self.message.fill(self.stream):
            mid = self.message.read_u8()
            if mid == 7:
                if self._mid7_time(rinex):
                    logger.log(FINE, f"Epoch {self.epoch_tow} sats={len(self.ch_sat_obs)}")
                    if self.ch_sat_obs:
                        self._save_epoch_obs(rinex)
                        return True
            elif mid == 8:
                if use_mid8_gps or use_mid8_glo:
                    self._mid8_dispatch(rinex, use_mid8_gps, use_mid8_glo)
            elif mid == 15:
                if not use_mid8_gps:
                    self._mid15_gps_nav(rinex)
            elif mid == 28:
                stored, same_epoch = self._mid28_obs()
                if stored and not same_epoch:
                    # epoch time for the buffered data never arrived
                    logger.warning(f"Epoch {self.ch_sat_obs[0].tag} ignored: MID7 lost")
                    del self.ch_sat_obs[:-1]
            elif mid == 70:
                if not use_mid8_glo:
                    self._mid70_glo_nav(rinex)
        return False

    def _save_epoch_obs(self, rinex):
        bias = self.epoch_clk_bias if self.apply_bias else 0.0
        for obs in self.ch_sat_obs:
            value = obs.pseudorange
            if bias and value != 0.0:
                value -= bias * C1C_ADJ
            rinex.save_obs_data(obs.system, obs.sat, 'C1C', value, obs.lol, obs.strength_index, obs.tag)
            value = obs.phase * L1_WL_INV
            if bias and value != 0.0:
                value -= bias * L1C_ADJ
            rinex.save_obs_data(obs.system, obs.sat, 'L1C', value, obs.lol, obs.strength_index, obs.tag)
            value = obs.doppler * L1_WL_INV
            if self.apply_bias and value != 0.0:
                value -= self.epoch_clk_drift
            rinex.save_obs_data(obs.system, obs.sat, 'D1C', value, obs.lol, obs.strength_index, obs.tag)
            rinex.save_obs_data(obs.system, obs.sat, 'S1C', obs.strength, obs.lol, obs.strength_index, obs.tag)
        self.ch_sat_obs.clear()

    # ---- Per message decoding ----

    def _mid2_position(self, rinex):
        self._check_len(41, "MID2 msg len <> 41")
        m = self.message
        try:
            x = float(m.read_i32())
            y = float(m.read_i32())
            z = float(m.read_i32())
            m.skip(9)
            week = m.read_u16() + 1024
            tow = m.read_i32() / 100.0
            if not self._enough_sats(m.read_u8(), "MID2"):
                return False
        except OSPReadError as e:
            logger.error(f"MID2 {e}")
            return False
        self.epoch_week, self.epoch_tow = week, tow
        logger.log(FINER, "MID2 tow=%g x=%g y=%g z=%g" % (self.epoch_tow, x, y, z))
        rinex.set_field('APPXYZ', x, y, z)
        return True

    def _mid6_receiver(self, rinex):
        m = self.message
        try:
            version_len = m.read_u8()
            customer_len = m.read_u8()
            self._check_len(1 + 2 + version_len + customer_len,
                            "In MID6, message/receiver/customer length do not match")
            sw_version = ''.join(chr(m.read_u8()) for _ in range(version_len))
            sw_customer = ''.join(chr(m.read_u8()) for _ in range(customer_len))
        except OSPReadError as e:
            logger.error(f"MID6 {e}")
            return False
        rinex.set_field('RECEIVER', sw_version, self.receiver, sw_customer)
        logger.log(FINER, f"MID6 swV={sw_version} swC={sw_customer}")
        return True

    def _mid7_time(self, rinex):
        self._check_len(20, "MID7 msg len <> 20")
        m = self.message
        try:
            week = m.read_u16()
            tow = m.read_u32() / 100.0
            if not self._enough_sats(m.read_u8(), "MID7"):
                return False
            drift = float(m.read_u32())
            bias = m.read_u32() * 1.0e-9
        except OSPReadError as e:
            logger.error(f"MID7TimeData {e}")
            return False
        self.epoch_week, self.epoch_tow = week, tow
        self.epoch_clk_drift, self.epoch_clk_bias = drift, bias
        logger.log(FINER, "MID7 week=%d tow=%g bias=%g"
                   % (self.epoch_week, self.epoch_tow, self.epoch_clk_bias))
        if not self.apply_bias:
            self.epoch_tow += self.epoch_clk_bias
            self.epoch_clk_bias = 0.0
        rinex.set_epoch_time(self.epoch_week, self.epoch_tow, self.epoch_clk_bias, 0)
        return True

    def _mid7_interval(self, rinex):
        self._check_len(20, "MID7 msg len <> 20")
        m = self.message
        try:
            week = m.read_u16()
            tow = m.read_u32() / 100.0
            if not self._enough_sats(m.read_u8(), "MID7"):
                return False
        except OSPReadError as e:
            logger.error(f"MID7interval {e}")
            return False
        interval = tow - self.epoch_tow + (week - self.epoch_week) * 604800.0
        rinex.set_field('INT', interval)
        logger.log(FINER, f"MID7 interval={interval}")
        return True

    def _mid8_dispatch(self, rinex, use_gps, use_glo):
        m = self.message
        try:
            ch = m.read_u8()
            if not 0 <= ch < MAX_CHANNELS:
                logger.warning("MID8 ignored: channel not in range")
                return
            sv = m.read_u8()
            if FIRST_GPS_SAT <= sv <= LAST_GPS_SAT:
                if use_gps:
                    self._mid8_gps_nav(ch, sv, rinex)
            elif FIRST_GLO_SAT <= sv <= LAST_GLO_SAT:
                if use_glo:
                    self._mid8_glo_nav(ch, sv, rinex)
            else:
                logger.warning(f"MID8 ignored: satellite number out of GPS, GLONASS ranges:{sv}")
        except OSPReadError as e:
            logger.error(f"MID8 ignored: {e}")

    def _store_subframe(self, ch, index, sv, words):
        slots = self.subfrm[ch]
        if any(s[0] not in (0, sv) for s in slots):
            # a different satellite is now tracked in this channel
            logger.log(FINER, f"Channel {ch} data for other satellite cleared")
            self._clear_channel(ch)
        slots[index][0] = sv
        slots[index][1] = list(words) + [0] * (10 - len(words))

    def _clear_channel(self, ch):
        for slot in self.subfrm[ch]:
            slot[0] = 0

    def _gps_set_complete(self, ch):
        sf1, sf2, sf3 = self.subfrm[ch][:3]
        if sf1[0] == 0 or not (sf1[0] == sf2[0] == sf3[0]):
            return False
        iodc_lsb = (sf1[1][7] >> 16) & 0xFF
        iode_sf2 = (sf2[1][2] >> 16) & 0xFF
        iode_sf3 = (sf3[1][9] >> 16) & 0xFF
        if not iodc_lsb == iode_sf2 == iode_sf3:
            logger.log(FINER, f"MID8 GPS sv={sf1[0]} IOD mismatch <{iodc_lsb},{iode_sf2},{iode_sf3}>")
            return False
        return True

    def _mid8_gps_nav(self, ch, sv, rinex):
        self._check_len(43, "MID8 msg len <> 43")
        raw = [self.message.read_u32() for _ in range(10)]
        if not all(check_gps_parity(w) for w in raw):
            logger.warning("MID8 ignored: GPS wrong parity")
            return False
        wd = [gps_data_bits(w) for w in raw]
        subfrm_id = (wd[1] >> 2) & 0x07
        page_id = (wd[2] >> 16) & 0x3F
        logger.log(FINER, f"MID8 GPS ch={ch} sv={sv} subfrm={subfrm_id} page={page_id}")
        # subframes 1-3 and page 18 of subframe 4 (SV id 56)
        if not (0 < subfrm_id < 4 or (subfrm_id == 4 and page_id == 56)):
            return True
        self._store_subframe(ch, subfrm_id - 1, sv, wd)
        if self._gps_set_complete(ch):
            nav_w = pack_gps_subframes(sv, [self.subfrm[ch][i][1] for i in range(3)])
            result = extract_gps_ephemeris(nav_w)
            if result is not None:
                sat, bom = result
                tag, bo = scale_gps_ephemeris(bom)
                rinex.save_nav_data('G', sat, bo, tag)
            self._clear_channel(ch)
        return True

    def glo_slot(self, sv):
        """Slot number for a receiver GLONASS satellite number, if known."""
        if FIRST_GLO_SAT <= sv <= LAST_GLO_SAT and self.glo_slots[sv - FIRST_GLO_SAT][1] > 0:
            return self.glo_slots[sv - FIRST_GLO_SAT][1]
        return sv

    def _mid8_glo_nav(self, ch, sv, rinex):
        self._check_len(43, "MID8 msg len <> 43")
        words, str_num = glo_string_from_words([self.message.read_u32() for _ in range(10)])
        if not check_glo_hamming(words):
            logger.warning("MID8 ignored: GLONASS wrong Hamming code")
            return False
        text = f"MID8 GLONASS ch={ch} sv={sv} str={str_num}"
        if not 0 < str_num <= MAX_SUBFR:
            logger.log(FINER, text + " ignored")
            return True
        if str_num == 4:
            slot = get_bits(words, 10, 5)
            if 0 < slot <= MAX_GLO_SLOTS:
                entry = self.glo_slots[sv - FIRST_GLO_SAT]
                if entry[1] != slot:
                    logger.log(FINER, f"{text} slot={entry[1]} updated to slot={slot}")
                    entry[0] = ch
                    entry[1] = slot
            else:
                text += f" wrong slot={slot}"
        self._store_subframe(ch, str_num - 1, sv, words)
        logger.log(FINER, text + " saved")
        if all(s[0] != 0 for s in self.subfrm[ch]):
            strings = [s[1] for s in self.subfrm[ch]]
            result = extract_glo_ephemeris(strings, self.carrier_freq)
            if result is not None:
                slot, tag, bom = result
                rinex.save_nav_data('R', slot, scale_glo_ephemeris(bom), tag)
            self._clear_channel(ch)
        return True

    def _mid15_gps_nav(self, rinex):
        self._check_len(92, "MID15 msg len <> 92")
        m = self.message
        try:
            sv_id = m.read_u8()
            nav_w = [m.read_u16() for _ in range(45)]
        except OSPReadError as e:
            logger.error(f"MID15 {e}")
            return False
        text = f"MID15 GPS ephemeris sv={sv_id}"
        # no HOW data in MID15
        nav_w[1] &= 0xFF00
        nav_w[2] &= 0x0003
        result = extract_gps_ephemeris(nav_w)
        if result is None:
            logger.warning(text + " Wrong data")
            return False
        logger.log(FINER, text + " Ephemeris OK")
        sat, bom = result
        bom[7][0] = int(self.epoch_tow * 100.0)
        tag, bo = scale_gps_ephemeris(bom)
        rinex.save_nav_data('G', sat, bo, tag)
        return True

    def _mid28_obs(self):
        """Decode one satellite measurement. Returns (stored, same_epoch)."""
        self._check_len(56, "MID28 msg len <> 56")
        m = self.message
        try:
            channel = m.read_u8()
            m.read_u32()  # receiver time tag, not used
            sv = m.read_u8()
            if FIRST_GPS_SAT <= sv <= LAST_GPS_SAT:
                system, sat = 'G', sv
            elif FIRST_GLO_SAT <= sv <= LAST_GLO_SAT:
                system, sat = 'R', self.glo_slot(sv)
            elif FIRST_SBAS_SAT <= sv <= LAST_SBAS_SAT:
                system, sat = 'S', sv - 100
            else:
                logger.warning(f"MID28 satellite number out of GPS, SBAS, GLONASS ranges:{sv}")
                return False, False
            sw_time = m.read_f64()
            pseudorange = m.read_f64()
            carrier_freq = float(m.read_f32())
            carrier_phase = m.read_f64()
            m.read_u16()  # time in track
            sync_flags = m.read_u8()
            # the worst of the ten C/N0 values
            strength = min(m.read_u8() for _ in range(10))
            m.read_u16()  # delta range interval
        except OSPReadError as e:
            logger.error(f"MID28 {e}")
            return False, False
        text = "MID28 tTag=%g ch=%2d sv=%2d sat=%c%02d psr=%g SynFlg=%02X " % (
            sw_time, channel, sv, system, sat, pseudorange, sync_flags)
        strength_index = min(max(strength // 6, 1), 9)
        if not sync_flags & 0x01:
            logger.log(FINER, text + "IGNORED")
            return False, False
        if not sync_flags & 0x02:
            carrier_phase = 0.0
        if not sync_flags & 0x10:
            carrier_freq = 0.0
        self.ch_sat_obs.append(ChannelObs(system, sat, pseudorange, carrier_phase, carrier_freq,
                                          float(strength), 0, strength_index, sw_time))
        logger.log(FINER, text + "SAVED")
        return True, sw_time == self.ch_sat_obs[0].tag

    def _mid70_glo_nav(self, rinex):
        m = self.message
        try:
            if m.read_u8() != 12:
                return False  # not a GLONASS broadcast ephemeris response
            if m.read_u8() != 1:
                return False  # TAU_GPS to KP fields not valid
            m.read_i24()   # tau GPS
            m.read_i32()   # tau UTC
            m.read_i16()   # B1
            m.read_i16()   # B2
            n4 = m.read_u8()
            m.read_u8()    # KP
            n_svs = m.read_u8()
            logger.log(FINER, f"MID70 SID12 GLONASS ephem. for nSVs={n_svs}")
            for _ in range(n_svs):
                valid = m.read_u8() == 1
                slot = m.read_u8()
                bom = [[0] * 4 for _ in range(4)]
                bom[2][3] = twos_complement(m.read_u8(), 8)   # frequency number
                bom[1][3] = m.read_u8()                       # health
                day = m.read_u16()
                ref_time = m.read_u8() * 900
                m.read_u8()                                   # age of oper. info
                bom[1][0] = m.read_i32()
                bom[2][0] = m.read_i32()
                bom[3][0] = m.read_i32()
                bom[1][1] = m.read_i24()
                bom[2][1] = m.read_i24()
                bom[3][1] = m.read_i24()
                bom[1][2] = twos_complement(m.read_u8(), 8)
                bom[2][2] = twos_complement(m.read_u8(), 8)
                bom[3][2] = twos_complement(m.read_u8(), 8)
                m.read_u8()                                   # group delay
                bom[0][1] = -m.read_i24()
                if not (valid and 0 < slot <= MAX_GLO_SLOTS):
                    logger.warning(f"GLONASS ephem. not valid for {slot}")
                    continue
                tag = glo_time_tag(n4, day, ref_time)
                bom[0][0] = int(tag)
                bom[0][3] = glo_frame_time(tag)
                rinex.save_nav_data('R', slot, scale_glo_ephemeris(bom), tag)
        except OSPReadError as e:
            logger.error(f"MID70 SID12 {e}")
            return False
        return True
