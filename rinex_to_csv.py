#!/usr/bin/env python3
"""
rinex_to_csv.py -- Export the content of a RINEX file to CSV tables.

Writes, next to the input file (dots in its name replaced by underscores):

  <name>_HDR.CSV      header records having data
  <name>_OBS.CSV      one row per observable (observation files)
  <name>_GPSNAV.CSV   one row per ephemeris (navigation files; GAL, GLO and SBAS
                      files for the other systems)

Optionally the data are exported too as an xarray Dataset in a netCDF file,
loaded with georinex when it can read the file and with the built-in RINEX
reader otherwise.

Dependencies: numpy, xarray, georinex, scipy (netCDF output)

Usage:
  rinex_to_csv.py PNT10010.15O
  rinex_to_csv.py PNT10010.15O -s G -o GC1C,GL1C -f 2015,1,1,0,0,0 -t 2015,1,1,1,0,0
  rinex_to_csv.py BRDC00WRD_R_20150010000_01D_MN.rnx -s R
  rinex_to_csv.py brdc0010.15n --netcdf brdc.nc
"""

import argparse
import contextlib
import csv
import logging
import os
import sys
import warnings

import georinex as gr
import numpy as np

from gnss_utils import LOG_LEVELS, get_tokens, gps_tow, gps_week, setup_logging
from rinex_data import (
    LABEL_TEXT, LIST_LABELS, NAV_LAYOUT, Label, NavStatus, ObsStatus, RinexData,
    RinexError, Version, open_rinex, to_nav_dataset, to_obs_dataset,
)
from rinex_to_rinex import parse_time, selected_observables

logger = logging.getLogger(__name__)

# Output file suffix and column names (after Sys,Sat,Week,TOW) per system
NAV_CSV = {
    'G': ('GPSNAV', [
        'Af0', 'Af1', 'Af2', 'IODE', 'Crs', 'Delta N', 'M0', 'Cuc', 'e', 'Cus', 'sqrt(A)',
        'Toe', 'Cic', 'OMEGA0', 'Cis', 'i0', 'Crc', 'W', 'WDOT', 'IDOT', 'Codes on L2',
        'GPS Week', 'L2 P flag', 'SV accuracy', 'SV health', 'TGD', 'IODC', 'Transm. time',
        'Fit interval']),
    'E': ('GALNAV', [
        'Af0', 'Af1', 'Af2', 'IODnav', 'Crs', 'Delta N', 'M0', 'Cuc', 'e', 'Cus', 'sqrt(A)',
        'Toe', 'Cic', 'OMEGA0', 'Cis', 'i0', 'Crc', 'W', 'WDOT', 'IDOT', 'Data sources',
        'Gal Week', 'SISA', 'SV health', 'BGD E5a/E1', 'BGD E5b/E1', 'Transm. time']),
    'R': ('GLONAV', [
        '-TauN', '+GammaN', 'Msg.frm.t', 'Sat.X', 'Sat.vel.X', 'Sat.acc.X', 'Sat.health',
        'Sat.Y', 'Sat.vel.Y', 'Sat.acc.Y', 'Sat.frq.', 'Sat.Z', 'Sat.vel.Z', 'Sat.acc.Z',
        'Age']),
    'S': ('SBASNAV', [
        'aGf0', 'aGf1', 'Transm.time', 'Sat.X', 'Sat.vel.X', 'Sat.acc.X', 'Sat.health',
        'Sat.Y', 'Sat.vel.Y', 'Sat.acc.Y', 'Sat.URA', 'Sat.Z', 'Sat.vel.Z', 'Sat.acc.Z',
        'IODN']),
}


def nav_row_values(system, bo):
    """Values of a broadcast orbit in the order of the NAV_CSV columns."""
    values = list(bo[0][1:4]) + list(np.asarray(bo)[1:].ravel()[:NAV_LAYOUT[system][1]])
    if system == 'E':
        # spare field after the Galileo week
        del values[3 + 19]
    return values


def build_parser():
    parser = argparse.ArgumentParser(
        description='Export RINEX header, observation or navigation data to CSV files',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Time arguments are y,m,d,h,m,s (e.g. 2015,1,1,12,0,0); the window includes both ends.

Examples:
  %(prog)s PNT10010.15O
  %(prog)s PNT10010.15O -s G -o GC1C,GL1C
  %(prog)s BRDC00WRD_R_20150010000_01D_MN.rnx -s R
  %(prog)s brdc0010.15n --netcdf brdc.nc
        """,
    )
    parser.add_argument('input', help='RINEX observation or navigation file')
    parser.add_argument('-f', '--fromtime', default='', help='Start of the time window')
    parser.add_argument('-t', '--totime', default='', help='End of the time window')
    parser.add_argument('-l', '--llevel', default='INFO', type=str.upper, choices=list(LOG_LEVELS),
                        help='Log level (default: INFO)')
    parser.add_argument('-o', '--selobs', default='',
                        help='Comma separated V3 observables to keep (e.g. GC1C,RL1C)')
    parser.add_argument('-p', '--selobs2', default='',
                        help='Comma separated V2 observables to keep (e.g. GC1,GL1)')
    parser.add_argument('-s', '--selsat', default='',
                        help='Comma separated systems or satellites to keep (e.g. G,R05); '
                             'the first one gives the system of a mixed navigation file')
    parser.add_argument('--netcdf', metavar='FILE', help='Also export the data as a netCDF file')
    return parser


def output_prefix(input_path):
    directory, name = os.path.split(input_path)
    return os.path.join(directory, name.replace('.', '_'))


def _in_window(tag, window):
    start, end = window
    return (start is None or tag >= start) and (end is None or tag <= end)


def write_header_csv(rinex, out):
    writer = csv.writer(out, lineterminator='\n')
    writer.writerow(['RINEX header record', 'Values'])
    comments = 0
    for label in rinex.labels_with_data():
        text = LABEL_TEXT[label]
        if label == Label.COMM:
            writer.writerow([text, rinex.get_field(label, comments)[0]])
            comments += 1
        elif label == Label.VERSION:
            version, file_type, system = rinex.get_field(Label.INFILEVER)
            writer.writerow([text, '%f' % version, file_type, system])
        elif label in (Label.SYS, Label.TOBS):
            for index in range(len(rinex.systems)):
                system, obs_types = rinex.get_field(label, index)
                writer.writerow([text, system] + obs_types)
        elif label in (Label.APPXYZ, Label.INT):
            writer.writerow([text] + ['%f' % v for v in rinex.get_field(label)])
        elif label in LIST_LABELS:
            for entry in rinex.lists[label]:
                writer.writerow([text] + [str(v) for v in entry])
        elif label != Label.EOH:
            values = rinex.get_field(label)
            if values is not None:
                writer.writerow([text] + [str(v) for v in values])


def write_obs_csv(rinex, inp, out, window):
    """Rows of the observables in the window. Returns the number of rows."""
    writer = csv.writer(out, lineterminator='\n')
    writer.writerow(['Week', 'TOW', 'Sys', 'Sat', 'Obs', 'Value', 'LoL', 'Strg'])
    rows = 0
    while True:
        status = rinex.read_obs_epoch(inp)
        if status in (ObsStatus.EOF, ObsStatus.UNKNOWN_VERSION):
            break
        if status != ObsStatus.OK or not _in_window(rinex.epoch_time_tag, window):
            continue
        rinex.filter_obs_data()
        for index in range(len(rinex.obs_data)):
            system, sat, obs, value, lol, strength, tag = rinex.get_obs_data(index)
            writer.writerow([gps_week(tag), '%f' % gps_tow(tag), system, sat, obs,
                             '%f' % value, lol, strength])
            rows += 1
    return rows


def write_nav_csv(rinex, inp, out, system, window):
    """Rows of the ephemerides of a system in the window. Returns the number of rows."""
    writer = csv.writer(out, lineterminator='\n')
    writer.writerow(['Sys', 'Sat', 'Week', 'TOW'] + NAV_CSV[system][1])
    rows = 0
    while True:
        status = rinex.read_nav_epoch(inp)
        if status in (NavStatus.EOF, NavStatus.UNKNOWN_VERSION):
            break
        if status in (NavStatus.OK, NavStatus.NEW_EPOCH):
            rec = rinex.nav_data[-1]
            if rec.system == system and _in_window(rec.tag, window) and rinex.filter_nav_data():
                writer.writerow([rec.system, rec.sat, gps_week(rec.tag), '%f' % gps_tow(rec.tag)]
                                + ['%19.12E' % v for v in nav_row_values(system, rec.bo)])
                rows += 1
            rinex.clear_nav_data()
        else:
            logger.warning(f"Expected {system} epoch. Ephemeris ignored")
    return rows


# ---- netCDF export ----

def read_datasets(path, file_type):
    """xarray Dataset of a RINEX file using the built-in reader."""
    rinex = RinexData()
    with open(path) as inp:
        rinex.read_rinex_header(inp)
        records = []
        if file_type == 'O':
            while True:
                status = rinex.read_obs_epoch(inp)
                if status in (ObsStatus.EOF, ObsStatus.UNKNOWN_VERSION):
                    break
                if status != ObsStatus.OK:
                    continue
                for index in range(len(rinex.obs_data)):
                    system, sat, obs, value, _, _, tag = rinex.get_obs_data(index)
                    records.append((tag, '%s%02d' % (system, sat), obs, value))
            return to_obs_dataset(records)
        while True:
            status = rinex.read_nav_epoch(inp)
            if status in (NavStatus.EOF, NavStatus.UNKNOWN_VERSION):
                break
            if status in (NavStatus.OK, NavStatus.NEW_EPOCH):
                rec = rinex.nav_data[-1]
                records.append((rec.tag, rec.system, rec.sat, rec.bo))
                rinex.clear_nav_data()
        return to_nav_dataset(records)


def load_dataset(path, file_type):
    """Load a RINEX file with georinex, falling back to the built-in reader."""
    try:
        with warnings.catch_warnings():
            warnings.simplefilter('ignore')
            ds = gr.load(path)
        if len(ds.coords.get('sv', [])) > 0:
            return ds
    except Exception as e:
        logger.info(f"georinex cannot load {path} ({e}); using the built-in reader")
    return read_datasets(path, file_type)


def write_netcdf(path, file_type, output):
    """Write the file contents as netCDF. Returns the exit code."""
    ds = load_dataset(path, file_type)
    try:
        ds.to_netcdf(output, engine='scipy')
    except OSError as e:
        print(f"Error: cannot create {output}: {e}", file=sys.stderr)
        return 6
    print(output)
    return 0


def export_file(path, inp, args, window):
    rinex = RinexData(Version.VTBD)
    rinex.read_rinex_header(inp)
    in_file = rinex.get_field(Label.INFILEVER)
    if in_file is None:
        print("Error: input file version not defined or header not read", file=sys.stderr)
        return 3
    _, file_type, system = in_file
    sel_sats = get_tokens(args.selsat.upper(), ',')
    if file_type == 'N' and system == 'M':
        if not sel_sats:
            print("Error: a system must be selected (-s) for a mixed navigation file", file=sys.stderr)
            return 4
        system = sel_sats[0][0]
    if not rinex.set_filter(sel_sats, selected_observables(args)):
        logger.warning("Filtering data not coherent with the input file")
    prefix = output_prefix(args.input)
    try:
        with open(prefix + '_HDR.CSV', 'w', newline='') as out:
            write_header_csv(rinex, out)
    except OSError as e:
        print(f"Error: cannot create {prefix}_HDR.CSV: {e}", file=sys.stderr)
        return 6
    print(prefix + '_HDR.CSV')
    rinex.clear_header_data()
    if file_type == 'O':
        name = prefix + '_OBS.CSV'
    elif file_type == 'N' and system in NAV_CSV:
        name = prefix + '_' + NAV_CSV[system][0] + '.CSV'
    else:
        print(f"Error: unexpected file type {file_type} / system {system}", file=sys.stderr)
        return 7
    try:
        out = open(name, 'w', newline='')
    except OSError as e:
        print(f"Error: cannot create {name}: {e}", file=sys.stderr)
        return 6
    with out:
        if file_type == 'O':
            rows = write_obs_csv(rinex, inp, out, window)
        else:
            rows = write_nav_csv(rinex, inp, out, system, window)
    print(name)
    logger.info(f"Rows written: {rows}")
    if args.netcdf:
        code = write_netcdf(path, file_type, args.netcdf)
        if code:
            return code
    return 0 if rows > 0 else 5


def convert(args):
    """Run the export. Returns the exit code."""
    try:
        window = (parse_time(args.fromtime) if args.fromtime else None,
                  parse_time(args.totime) if args.totime else None)
    except ValueError as e:
        print(f"Error: invalid time: {e}", file=sys.stderr)
        return 1
    with contextlib.ExitStack() as stack:
        try:
            path = stack.enter_context(open_rinex(args.input))
            inp = stack.enter_context(open(path))
        except OSError as e:
            print(f"Error: cannot open {args.input}: {e}", file=sys.stderr)
            return 2
        try:
            return export_file(path, inp, args, window)
        except RinexError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 3


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(args.llevel)
    sys.exit(convert(args))


if __name__ == '__main__':
    main()
