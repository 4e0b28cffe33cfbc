#!/usr/bin/env python3
"""
rinex_to_rinex.py -- Convert RINEX files between versions 2.10 and 3.02.

Reads a RINEX observation or navigation file and prints it again in the
requested version, optionally keeping only some systems, satellites and
observables and only the epochs inside a time window. Gzip-compressed input
(.gz) is accepted.

Dependencies: numpy, xarray

Usage:
  rinex_to_rinex.py PNT10010.15O -v V302
  rinex_to_rinex.py PNT1001A00.15O -v V210 -s G01,R -o GC1C
  rinex_to_rinex.py brdc0010.15n.gz -f 2015,1,1,0,0,0 -t 2015,1,1,12,0,0
"""

import argparse
import contextlib
import logging
import sys

from gnss_utils import LOG_LEVELS, get_tokens, secs_from_week_tow, set_week_tow, setup_logging
from rinex_data import (
    V2_NAV_TYPES, Label, NavStatus, ObsStatus, RinexData, RinexError, Version,
    obs_v2_to_v3, open_rinex,
)

logger = logging.getLogger(__name__)

VERSIONS = {'TBD': Version.VTBD, 'V210': Version.V210, 'V302': Version.V302}


def parse_time(text):
    """Seconds from the GPS epoch for a "y,m,d,h,m,s" argument.

    Raises ValueError when it is not six numbers.
    """
    tokens = get_tokens(text, ',')
    if len(tokens) != 6:
        raise ValueError(f"six comma separated values expected in {text}")
    year, month, day, hour, minute = (int(t) for t in tokens[:5])
    return secs_from_week_tow(*set_week_tow(year, month, day, hour, minute, float(tokens[5])))


def selected_observables(args):
    """V3 observable selection from the -o and -p arguments."""
    sel_obs = [o.upper() for o in get_tokens(args.selobs, ',')]
    for item in get_tokens(args.selobs2, ','):
        v3 = obs_v2_to_v3(item[1:].upper())
        if v3:
            sel_obs.append(item[0].upper() + v3)
        else:
            logger.warning(f"Observable {item} has no V3.02 equivalent. Ignored")
    return sel_obs


def build_parser():
    parser = argparse.ArgumentParser(
        description='Convert RINEX files between versions 2.10 and 3.02, with filtering',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Time arguments are y,m,d,h,m,s (e.g. 2015,1,1,12,0,0).

Examples:
  %(prog)s PNT10010.15O -v V302
  %(prog)s PNT1001A00.15O -v V210 -s G01,R -o GC1C
  %(prog)s PNT10010.15O -p GC1,GL1 -r SITE
  %(prog)s brdc0010.15n.gz -f 2015,1,1,0,0,0 -t 2015,1,1,12,0,0
        """,
    )
    parser.add_argument('input', help='RINEX observation or navigation file')
    parser.add_argument('-f', '--fromtime', default='', help='Start of the time window')
    parser.add_argument('-t', '--totime', default='', help='End of the time window (excluded)')
    parser.add_argument('-k', '--skipe', action='store_true',
                        help='Skip event epochs and epochs with bad observables')
    parser.add_argument('-l', '--llevel', default='INFO', type=str.upper, choices=list(LOG_LEVELS),
                        help='Log level (default: INFO)')
    parser.add_argument('-o', '--selobs', default='',
                        help='Comma separated V3 observables to keep (e.g. GC1C,RL1C)')
    parser.add_argument('-p', '--selobs2', default='',
                        help='Comma separated V2 observables to keep (e.g. GC1,GL1)')
    parser.add_argument('-r', '--rinex', default='RTOR', help='RINEX file name prefix (default: RTOR)')
    parser.add_argument('-s', '--selsat', default='',
                        help='Comma separated systems or satellites to keep (e.g. G,R05)')
    parser.add_argument('-u', '--runby', default='RUNBY', help='Who runs the program')
    parser.add_argument('-v', '--ver', default='TBD', choices=list(VERSIONS),
                        help='RINEX version to print (default: TBD, as the input file)')
    return parser


def _in_window(tag, window):
    start, end = window
    return (start is None or tag >= start) and (end is None or tag < end)


def copy_obs(rinex, inp, args, window):
    """Print the observation epochs of inp. Returns the exit code."""
    week, tow, _ = rinex.get_field(Label.TOFO) or (0, 0.0, '')
    rinex.set_epoch_time(week, tow, 0.0, 0)
    name = rinex.get_obs_file_name(args.rinex)
    try:
        out = open(name, 'w')
    except OSError as e:
        print(f"Error: cannot create {name}: {e}", file=sys.stderr)
        return 6
    good = bad = 0
    with out:
        rinex.print_obs_header(out)
        rinex.clear_header_data()
        while True:
            status = rinex.read_obs_epoch(inp)
            if status in (ObsStatus.EOF, ObsStatus.UNKNOWN_VERSION):
                break
            if status in (ObsStatus.OK, ObsStatus.BAD_OBSERVABLES) \
                    and not _in_window(rinex.epoch_time_tag, window):
                continue
            if status == ObsStatus.OK:
                rinex.print_obs_epoch(out)
                good += 1
            elif status == ObsStatus.EVENT:
                if not args.skipe:
                    rinex.print_obs_epoch(out)
                rinex.clear_header_data()
            elif status == ObsStatus.BAD_OBSERVABLES:
                if not args.skipe:
                    rinex.print_obs_epoch(out)
                bad += 1
            elif status in (ObsStatus.BAD_EPOCH, ObsStatus.BAD_FLAG):
                bad += 1
            else:
                if not args.skipe:
                    rinex.print_obs_epoch(out)
                rinex.clear_header_data()
    print(name)
    logger.info(f"End of RINEX observation file. Epochs read: good={good} bad={bad}")
    return 0 if good > 0 else 5


def copy_nav(rinex, inp, args, window):
    """Print the ephemerides of inp. Returns the exit code."""
    status = rinex.read_nav_epoch(inp)
    if rinex.version == Version.V210:
        system = rinex.system_id
        if rinex.in_file_ver != Version.V210 and rinex.selected_sats:
            system = rinex.selected_sats[0][0]
        suffix = V2_NAV_TYPES.get(system, ('N',))[0]
    else:
        suffix = 'N'
    name = rinex.get_nav_file_name(args.rinex, suffix)
    try:
        out = open(name, 'w')
    except OSError as e:
        print(f"Error: cannot create {name}: {e}", file=sys.stderr)
        return 6
    good = bad = 0
    with out:
        rinex.print_nav_header(out)
        while status not in (NavStatus.EOF, NavStatus.UNKNOWN_VERSION):
            if status in (NavStatus.OK, NavStatus.NEW_EPOCH):
                if _in_window(rinex.nav_data[-1].tag, window) and rinex.filter_nav_data():
                    rinex.print_nav_epoch(out)
                    good += 1
                rinex.clear_nav_data()
            else:
                bad += 1
            status = rinex.read_nav_epoch(inp)
    print(name)
    logger.info(f"End of RINEX navigation file. Ephemerides read: good={good} bad={bad}")
    return 0 if good > 0 else 5


def convert_file(inp, args, window):
    rinex = RinexData(VERSIONS[args.ver])
    rinex.read_rinex_header(inp)
    in_file = rinex.get_field(Label.INFILEVER)
    if in_file is None:
        print("Error: input file version not defined or header not read", file=sys.stderr)
        return 3
    if rinex.version == Version.VTBD:
        rinex.version = rinex.in_file_ver
    rinex.set_field('RUNBY', 'RINEXtoRINEX', args.runby)
    if not rinex.set_filter(get_tokens(args.selsat.upper(), ','), selected_observables(args)):
        logger.warning("Filtering data not coherent with the input file")
    if in_file[1] == 'O':
        return copy_obs(rinex, inp, args, window)
    if in_file[1] == 'N':
        return copy_nav(rinex, inp, args, window)
    print(f"Error: file type {in_file[1]} cannot be processed", file=sys.stderr)
    return 3


def convert(args):
    """Run the conversion. Returns the exit code."""
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
            return convert_file(inp, args, window)
        except RinexError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 5


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(args.llevel)
    sys.exit(convert(args))


if __name__ == '__main__':
    main()
