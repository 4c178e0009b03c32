"""
End-to-end tests for the command-line interface.
"""

import json

import pytest
import yaml

from closedorbit.run import create_parser, main

from conftest import CIRCULAR_PERIOD, CIRCULAR_SPEED

TINY = ['--frames', '8', '--subframes', '4', '--substeps', '50']


def circular_entry(name="circular"):
    return {
        'name': name,
        'period': float(CIRCULAR_PERIOD),
        'energy': -0.5,
        'masses': [1.0, 1.0],
        'positions': [[0.5, 0.0], [-0.5, 0.0]],
        'velocities': [[0.0, float(CIRCULAR_SPEED)], [0.0, -float(CIRCULAR_SPEED)]],
    }


def runaway_entry():
    return {
        'name': 'runaway',
        'period': 1.0,
        'masses': [1.0],
        'positions': [[0.0, 0.0]],
        'velocities': [[1.0, 0.0]],
    }


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "orbits.yaml"
    path.write_text(yaml.safe_dump({'orbits': [circular_entry()]}))
    return str(path)


class TestParser:

    def test_defaults(self):
        args = create_parser().parse_args(['orbits.yaml'])
        assert args.output_dir == 'output'
        assert args.frames is None
        assert not args.drop_dc
        assert not args.processes

    def test_rejects_unknown_format(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(['orbits.yaml', '--format', 'xml'])

    def test_config_required(self):
        with pytest.raises(SystemExit) as info:
            main([])
        assert info.value.code == 2


class TestMain:

    def test_create_example(self, tmp_path):
        path = tmp_path / "example.yaml"
        assert main(['--create-example', str(path)]) == 0
        assert path.exists()
        assert main([str(path), '--validate-only']) == 0

    def test_validate_only(self, config_path, tmp_path, capsys):
        assert main([config_path, '--validate-only', '--output-dir', str(tmp_path / "out")]) == 0
        assert "validated successfully" in capsys.readouterr().out
        assert not (tmp_path / "out").exists()

    def test_missing_config(self, tmp_path):
        assert main([str(tmp_path / "nope.yaml")]) == 1

    def test_invalid_config(self, tmp_path):
        path = tmp_path / "bad.yaml"
        entry = circular_entry()
        entry['masses'] = [1.0]
        path.write_text(yaml.safe_dump({'orbits': [entry]}))
        assert main([str(path), '--validate-only']) == 1

    def test_bake_json(self, config_path, tmp_path, capsys):
        out = tmp_path / "out"
        assert main([config_path, '--output-dir', str(out), '--no-render'] + TINY) == 0

        orbits = json.loads((out / "orbits.json").read_text())
        assert [orbit['name'] for orbit in orbits] == ["circular"]
        assert orbits[0]['energy'] == -0.5
        assert len(orbits[0]['bodies']) == 2

        diagnostics = json.loads((out / "diagnostics.json").read_text())
        assert diagnostics['circular']['ok'] is True
        assert diagnostics['circular']['energy_computed'] == pytest.approx(-0.5)
        assert not list(out.glob("*.gif"))

        assert "BAKE SUMMARY" in capsys.readouterr().out

    def test_bake_elm(self, config_path, tmp_path):
        out = tmp_path / "out"
        assert main([config_path, '--output-dir', str(out), '--no-render',
                     '--format', 'elm'] + TINY) == 0
        source = (out / "Orbits.elm").read_text()
        assert source.startswith("module Orbits exposing")
        assert not (out / "orbits.json").exists()

    def test_failed_orbit_does_not_block_batch(self, tmp_path):
        path = tmp_path / "mixed.yaml"
        path.write_text(yaml.safe_dump({'orbits': [runaway_entry(), circular_entry()]}))
        out = tmp_path / "out"

        assert main([str(path), '--output-dir', str(out), '--no-render'] + TINY) == 1

        orbits = json.loads((out / "orbits.json").read_text())
        assert [orbit['name'] for orbit in orbits] == ["circular"]
        diagnostics = json.loads((out / "diagnostics.json").read_text())
        assert diagnostics['runaway']['ok'] is False
        assert "ClosureError" in diagnostics['runaway']['error']

    def test_orbit_missing_field_does_not_block_batch(self, tmp_path):
        broken = circular_entry("broken")
        del broken['period']
        path = tmp_path / "partial.yaml"
        path.write_text(yaml.safe_dump({'orbits': [circular_entry(), broken]}))
        out = tmp_path / "out"

        assert main([str(path), '--output-dir', str(out), '--no-render'] + TINY) == 1

        orbits = json.loads((out / "orbits.json").read_text())
        assert [orbit['name'] for orbit in orbits] == ["circular"]
        diagnostics = json.loads((out / "diagnostics.json").read_text())
        assert diagnostics['broken']['ok'] is False
        assert "period is missing" in diagnostics['broken']['error']

    def test_render(self, config_path, tmp_path):
        out = tmp_path / "out"
        assert main([config_path, '--output-dir', str(out)] + TINY) == 0
        assert (out / "circular.gif").read_bytes()[:4] == b"GIF8"
