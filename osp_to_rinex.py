#!/usr/bin/env python3
"""
osp_to_rinex.py -- Convert a SiRF OSP binary file to RINEX files.

Produces a RINEX observation file with the C1C / L1C / D1C / S1C observables of
the GPS satellites (and GLONASS / SBAS when selected), and optionally the
navigation files with the broadcast ephemerides found in the OSP data:
one mixed file in V3.02, one file per system in V2.10.

Dependencies: numpy, xarray

Usage:
  osp_to_rinex.py DATA.OSP
  osp_to_rinex.py capture.OSP -v V210 -n -s R
  osp_to_rinex.py capture.OSP -m SITE -u 10 -r SITE -a
"""

import argparse
import logging
import sys

from gnss_osp import GNSSDataFromOSP
from gnss_utils import LOG_LEVELS, get_tokens, setup_logging
from rinex_data import RinexData, RinexError, Version

logger = logging.getLogger(__name__)

# Observables produced for each system
OBS_TYPES = ['C1C', 'L1C', 'D1C', 'S1C']

# V2.10 navigation file type letter per system
V2_NAV_SUFFIX = {'G': 'N', 'R': 'G', 'S': 'H'}


def build_parser():
    parser = argparse.ArgumentParser(
        description='Convert SiRF OSP binary data to RINEX observation and navigation files',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s DATA.OSP
  %(prog)s capture.OSP -v V210 -n
  %(prog)s capture.OSP -s R -n -c
  %(prog)s capture.OSP -m SITE -u 10 -r SITE -a -l FINE
        """,
    )
    parser.add_argument('input', nargs='?', default='DATA.OSP',
                        help='OSP binary input file (default: DATA.OSP)')
    parser.add_argument('-a', '--aend', action='store_true',
                        help='Append an end of file event to the observation file')
    parser.add_argument('-b', '--no-bias', action='store_true',
                        help='Do not apply the receiver clock bias to observables')
    parser.add_argument('-c', '--glo50bps', action='store_true',
                        help='GLONASS ephemeris from 50 bps strings (MID8) instead of MID70')
    parser.add_argument('-d', '--gps50bps', action='store_true',
                        help='GPS ephemeris from 50 bps subframes (MID8) instead of MID15')
    parser.add_argument('-i', '--minsv', type=int, default=4,
                        help='Minimum satellites in a fix to accept it (default: 4)')
    parser.add_argument('-j', '--antnum', default='Antenna#', help='Antenna number')
    parser.add_argument('-k', '--antype', default='AntennaType', help='Antenna type')
    parser.add_argument('-l', '--llevel', default='INFO', type=str.upper, choices=list(LOG_LEVELS),
                        help='Log level (default: INFO)')
    parser.add_argument('-m', '--mrkname', default='MRKNAME', help='Marker name')
    parser.add_argument('-n', '--nav', action='store_true', help='Also generate navigation files')
    parser.add_argument('-o', '--observer', default='OBSERVER', help='Observer name')
    parser.add_argument('-p', '--program', default='OSPtoRINEX', help='Program generating the files')
    parser.add_argument('-q', '--runby', default='RUNBY', help='Who runs the program')
    parser.add_argument('-r', '--rinex', default='PNT1', help='RINEX file name prefix (default: PNT1)')
    parser.add_argument('-s', '--selsys', default='',
                        help='Comma separated systems to process beside GPS (e.g. R or R,S)')
    parser.add_argument('-u', '--mrknum', default='MRKNUMBER', help='Marker number')
    parser.add_argument('-v', '--ver', default='V302', choices=['V210', 'V302'],
                        help='RINEX version to generate (default: V302)')
    parser.add_argument('-y', '--agency', default='AGENCY', help='Agency name')
    return parser


def set_header_defaults(rinex, args, systems):
    rinex.set_field('RUNBY', args.program, args.runby)
    rinex.set_field('MRKNAME', args.mrkname)
    rinex.set_field('MRKNUMBER', args.mrknum)
    rinex.set_field('ANTTYPE', args.antnum, args.antype)
    rinex.set_field('ANTHEN', 0.0, 0.0, 0.0)
    rinex.set_field('AGENCY', args.observer, args.agency)
    rinex.set_field('TOFO', 'GPS')
    rinex.set_field('WVLEN', 1, 0)
    for system in systems:
        rinex.set_field('SYS', system, OBS_TYPES)
    rinex.set_filter(systems, [])


def write_nav_files(rinex, prefix, systems, args):
    """Print the ephemerides stored. Returns the names of the files written."""
    if not rinex.nav_data:
        logger.info("No navigation data to print")
        return []
    rinex.set_field('RUNBY', args.program, args.runby)
    if rinex.version == Version.V302:
        plan = [(systems, 'N')]
    else:
        plan = [([s], V2_NAV_SUFFIX[s]) for s in systems if s in V2_NAV_SUFFIX]
    names = []
    for selected, suffix in plan:
        rinex.set_filter(selected, [])
        if rinex.version == Version.V302:
            rinex.filter_nav_data()
        elif not any(rec.system == selected[0] for rec in rinex.nav_data):
            logger.info(f"No navigation data for system {selected[0]}")
            continue
        name = rinex.get_nav_file_name(prefix, suffix)
        with open(name, 'w') as out:
            rinex.print_nav_header(out)
            rinex.print_nav_epoch(out)
        names.append(name)
    return names


def convert(args):
    """Run the conversion. Returns the exit code."""
    systems = ['G'] + [s.upper() for s in get_tokens(args.selsys, ',') if s.upper() != 'G']
    for s in systems:
        if s not in ('G', 'R', 'S'):
            print(f"Error: system {s} cannot be generated from OSP data", file=sys.stderr)
            return 1
    rinex = RinexData(Version[args.ver])
    set_header_defaults(rinex, args, systems)
    try:
        inp = open(args.input, 'rb')
    except OSError as e:
        print(f"Error: cannot open {args.input}: {e}", file=sys.stderr)
        return 2
    with inp:
        decoder = GNSSDataFromOSP(inp, min_sv=args.minsv, apply_bias=not args.no_bias)
        if not decoder.acq_header_data(rinex):
            logger.warning("Not all RINEX header data have been acquired")
        if 'R' in systems:
            decoder.acq_glo_params()
        obs_name = rinex.get_obs_file_name(args.rinex)
        try:
            out = open(obs_name, 'w')
        except OSError as e:
            print(f"Error: cannot create {obs_name}: {e}", file=sys.stderr)
            return 3
        n_epochs = 0
        try:
            with out:
                rinex.print_obs_header(out)
                decoder.rewind()
                while decoder.acq_epoch_data(rinex, args.gps50bps, args.glo50bps):
                    rinex.print_obs_epoch(out)
                    n_epochs += 1
                if args.aend:
                    rinex.print_obs_eof(out)
            print(obs_name)
            logger.info(f"Observation epochs printed: {n_epochs}")
            if args.nav:
                for name in write_nav_files(rinex, args.rinex, systems, args):
                    print(name)
        except RinexError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 3
        except OSError as e:
            print(f"Error writing RINEX file: {e}", file=sys.stderr)
            return 3
    return 0 if n_epochs > 0 else 3


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(args.llevel)
    sys.exit(convert(args))


if __name__ == '__main__':
    main()
