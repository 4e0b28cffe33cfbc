"""
Unit tests for rinex_to_csv.py

Tests cover:
  - Header, observation and navigation CSV tables
  - Inclusive time window, satellite and observable selection
  - Mixed navigation files and the system argument
  - netCDF export with georinex and the built-in reader
  - Exit codes
"""

import csv
import io
import sys
import os

import numpy as np
import pytest
import xarray as xr

# Add repo root to path so we can import the module
sys.path.insert(0, os.path.dirname(__file__))

import importlib
rinex_to_csv = importlib.import_module("rinex_to_csv")
gnss_utils = importlib.import_module("gnss_utils")
rinex_data = importlib.import_module("rinex_data")

Version = rinex_data.Version

WEEK = 1825
TOW = 345600.0  # 2015-01-01 00:00:00
OBS = ['C1C', 'L1C', 'D1C', 'S1C']


# ============================================================
# Helpers
# ============================================================

def obs_file_text(n_epochs=3):
    """V3.02 GPS observation file, satellites 5 and 12 every 5 s."""
    rinex = rinex_data.RinexData(Version.V302)
    rinex.set_field('RUNBY', 'TESTPGM', 'TESTER')
    rinex.set_field('MRKNAME', 'PNT1')
    rinex.set_field('RECEIVER', '3', 'SiRF', 'GSD4e_4.1.2')
    rinex.set_field('APPXYZ', 4849202.3940, -360328.9929, 4114913.1862)
    rinex.set_field('SYS', 'G', OBS)
    rinex.set_field('INT', 5.0)
    rinex.set_epoch_time(WEEK, TOW, 0.0, 0)
    rinex.set_field('TOFO', 'GPS')
    out = io.StringIO()
    rinex.print_obs_header(out)
    for k in range(n_epochs):
        tag = rinex.set_epoch_time(WEEK, TOW + 5 * k, 0.0, 0)
        for sat in (5, 12):
            for i, obs in enumerate(OBS):
                rinex.save_obs_data('G', sat, obs, 20000000.0 + sat * 1000 + i, 0, 7, tag)
        rinex.print_obs_epoch(out)
    return out.getvalue()


def nav_file_text():
    """V3.02 mixed navigation file: G09 and R03 at 02:00, R04 at 02:15."""
    rinex = rinex_data.RinexData(Version.V302)
    rinex.set_field('RUNBY', 'TESTPGM', 'TESTER')
    out = io.StringIO()
    rinex.print_nav_header(out)
    tag = gnss_utils.secs_from_week_tow(WEEK, TOW + 7200)
    bo = np.arange(32, dtype=float).reshape(8, 4) + 1.0
    rinex.save_nav_data('G', 9, bo, tag)
    rinex.save_nav_data('R', 3, bo, tag)
    rinex.save_nav_data('R', 4, bo, tag + 900)
    rinex.print_nav_epoch(out)
    return out.getvalue()


def run(monkeypatch, tmp_path, *argv):
    monkeypatch.chdir(tmp_path)
    args = rinex_to_csv.build_parser().parse_args(list(argv))
    return rinex_to_csv.convert(args)


def read_csv(path):
    with open(path, newline='') as f:
        return list(csv.reader(f))


# ============================================================
# Output names and values
# ============================================================

class TestOutputPrefix:
    def test_dots_replaced(self):
        assert rinex_to_csv.output_prefix('PNT10010.15O') == 'PNT10010_15O'

    def test_directory_kept(self):
        path = os.path.join('data', 'brdc0010.15n')
        assert rinex_to_csv.output_prefix(path) == os.path.join('data', 'brdc0010_15n')


class TestNavRowValues:
    BO = np.arange(32, dtype=float).reshape(8, 4)

    @pytest.mark.parametrize("system, length", [('G', 29), ('E', 27), ('R', 15), ('S', 15)])
    def test_lengths_match_columns(self, system, length):
        values = rinex_to_csv.nav_row_values(system, self.BO)
        assert len(values) == length
        assert len(rinex_to_csv.NAV_CSV[system][1]) == length

    def test_clock_first(self):
        assert rinex_to_csv.nav_row_values('G', self.BO)[:4] == [1.0, 2.0, 3.0, 4.0]

    def test_galileo_spare_dropped(self):
        values = rinex_to_csv.nav_row_values('E', self.BO)
        assert 23.0 not in values
        assert values[21:23] == [22.0, 24.0]


# ============================================================
# Observation files
# ============================================================

class TestObsExport:
    def test_header_table(self, tmp_path, monkeypatch, capsys):
        (tmp_path / 'PNT1.rnx').write_text(obs_file_text())
        assert run(monkeypatch, tmp_path, 'PNT1.rnx') == 0
        assert capsys.readouterr().out.split() == ['PNT1_rnx_HDR.CSV', 'PNT1_rnx_OBS.CSV']
        rows = read_csv(tmp_path / 'PNT1_rnx_HDR.CSV')
        assert rows[0] == ['RINEX header record', 'Values']
        assert ['RINEX VERSION / TYPE', '3.020000', 'O', 'G'] in rows
        assert ['MARKER NAME', 'PNT1'] in rows
        assert ['SYS / # / OBS TYPES', 'G'] + OBS in rows
        assert ['INTERVAL', '5.000000'] in rows

    def test_observation_rows(self, tmp_path, monkeypatch):
        (tmp_path / 'PNT1.rnx').write_text(obs_file_text())
        assert run(monkeypatch, tmp_path, 'PNT1.rnx') == 0
        rows = read_csv(tmp_path / 'PNT1_rnx_OBS.CSV')
        assert rows[0] == ['Week', 'TOW', 'Sys', 'Sat', 'Obs', 'Value', 'LoL', 'Strg']
        assert len(rows) == 1 + 3 * 2 * 4
        assert rows[1] == ['1825', '345600.000000', 'G', '5', 'C1C', '20005000.000000', '0', '7']
        assert rows[-1] == ['1825', '345610.000000', 'G', '12', 'S1C', '20012003.000000', '0', '7']

    def test_window_includes_both_ends(self, tmp_path, monkeypatch):
        (tmp_path / 'PNT1.rnx').write_text(obs_file_text())
        assert run(monkeypatch, tmp_path, 'PNT1.rnx',
                   '-f', '2015,1,1,0,0,5', '-t', '2015,1,1,0,0,10') == 0
        rows = read_csv(tmp_path / 'PNT1_rnx_OBS.CSV')[1:]
        assert sorted(set(row[1] for row in rows)) == ['345605.000000', '345610.000000']

    def test_selection(self, tmp_path, monkeypatch):
        (tmp_path / 'PNT1.rnx').write_text(obs_file_text())
        assert run(monkeypatch, tmp_path, 'PNT1.rnx', '-s', 'G05', '-o', 'GC1C') == 0
        rows = read_csv(tmp_path / 'PNT1_rnx_OBS.CSV')[1:]
        assert [(row[3], row[4]) for row in rows] == [('5', 'C1C')] * 3

    def test_no_rows(self, tmp_path, monkeypatch):
        (tmp_path / 'PNT1.rnx').write_text(obs_file_text())
        assert run(monkeypatch, tmp_path, 'PNT1.rnx', '-f', '2016,1,1,0,0,0') == 5
        assert len(read_csv(tmp_path / 'PNT1_rnx_OBS.CSV')) == 1


# ============================================================
# Navigation files
# ============================================================

class TestNavExport:
    def test_mixed_file_needs_system(self, tmp_path, monkeypatch, capsys):
        (tmp_path / 'nav.rnx').write_text(nav_file_text())
        assert run(monkeypatch, tmp_path, 'nav.rnx') == 4
        assert "must be selected" in capsys.readouterr().err

    def test_gps_table(self, tmp_path, monkeypatch):
        (tmp_path / 'nav.rnx').write_text(nav_file_text())
        assert run(monkeypatch, tmp_path, 'nav.rnx', '-s', 'G') == 0
        rows = read_csv(tmp_path / 'nav_rnx_GPSNAV.CSV')
        assert rows[0][:5] == ['Sys', 'Sat', 'Week', 'TOW', 'Af0']
        assert len(rows) == 2
        assert len(rows[1]) == 33
        assert rows[1][:4] == ['G', '9', '1825', '352800.000000']
        assert float(rows[1][4]) == 2.0
        assert float(rows[1][-1]) == 30.0

    def test_glonass_table_window(self, tmp_path, monkeypatch):
        (tmp_path / 'nav.rnx').write_text(nav_file_text())
        assert run(monkeypatch, tmp_path, 'nav.rnx', '-s', 'R') == 0
        rows = read_csv(tmp_path / 'nav_rnx_GLONAV.CSV')
        assert [row[1] for row in rows[1:]] == ['3', '4']
        assert all(len(row) == 19 for row in rows)
        assert run(monkeypatch, tmp_path, 'nav.rnx', '-s', 'R', '-t', '2015,1,1,2,0,0') == 0
        rows = read_csv(tmp_path / 'nav_rnx_GLONAV.CSV')
        assert [row[1] for row in rows[1:]] == ['3']


# ============================================================
# netCDF export
# ============================================================

class TestNetcdf:
    def test_georinex_dataset_used(self, monkeypatch):
        ds = xr.Dataset(coords={'sv': ['G05']})
        monkeypatch.setattr(rinex_to_csv.gr, 'load', lambda path: ds)
        assert rinex_to_csv.load_dataset('any.rnx', 'O') is ds

    def test_fallback_to_builtin_reader(self, tmp_path, monkeypatch):
        (tmp_path / 'PNT1.rnx').write_text(obs_file_text())

        def fail(path):
            raise ValueError("not a RINEX file georinex can read")

        monkeypatch.setattr(rinex_to_csv.gr, 'load', fail)
        ds = rinex_to_csv.load_dataset(str(tmp_path / 'PNT1.rnx'), 'O')
        assert list(ds.sv.values) == ['G05', 'G12']
        assert ds.sizes['time'] == 3
        assert float(ds['C1C'].sel(sv='G12').values[0]) == 20012000.0

    def test_empty_georinex_dataset_falls_back(self, tmp_path, monkeypatch):
        (tmp_path / 'nav.rnx').write_text(nav_file_text())
        monkeypatch.setattr(rinex_to_csv.gr, 'load', lambda path: xr.Dataset())
        ds = rinex_to_csv.load_dataset(str(tmp_path / 'nav.rnx'), 'N')
        assert list(ds.sv.values) == ['G09', 'R03', 'R04']
        assert 'SVclockBias' in ds

    def test_netcdf_file_written(self, tmp_path, monkeypatch, capsys):
        (tmp_path / 'PNT1.rnx').write_text(obs_file_text())

        def fail(path):
            raise ValueError("unreadable")

        monkeypatch.setattr(rinex_to_csv.gr, 'load', fail)
        assert run(monkeypatch, tmp_path, 'PNT1.rnx', '--netcdf', 'out.nc') == 0
        assert capsys.readouterr().out.split()[-1] == 'out.nc'
        assert (tmp_path / 'out.nc').stat().st_size > 0

    def test_netcdf_cannot_create(self, tmp_path, monkeypatch, capsys):
        (tmp_path / 'PNT1.rnx').write_text(obs_file_text())

        def fail(path):
            raise ValueError("unreadable")

        monkeypatch.setattr(rinex_to_csv.gr, 'load', fail)
        assert run(monkeypatch, tmp_path, 'PNT1.rnx', '--netcdf', 'missing/out.nc') == 6
        assert "cannot create missing/out.nc" in capsys.readouterr().err
        assert (tmp_path / 'PNT1_rnx_OBS.CSV').exists()


# ============================================================
# Errors
# ============================================================

class TestErrors:
    def test_bad_time(self, tmp_path, monkeypatch, capsys):
        assert run(monkeypatch, tmp_path, 'in.rnx', '-t', 'noon') == 1
        assert "invalid time" in capsys.readouterr().err

    def test_missing_input(self, tmp_path, monkeypatch, capsys):
        assert run(monkeypatch, tmp_path, 'missing.rnx') == 2
        assert "cannot open" in capsys.readouterr().err

    def test_not_a_rinex_file(self, tmp_path, monkeypatch):
        (tmp_path / 'notes.txt').write_text('just some text\n')
        assert run(monkeypatch, tmp_path, 'notes.txt') == 3
