"""
Tests for configuration loading, validation and export.
"""

import json

import numpy as np
import pytest
import yaml

from closedorbit.io_cfg import (
    create_example_config,
    format_orbits_elm,
    load_config,
    save_diagnostics_json,
    save_orbits_elm,
    save_orbits_json,
    validate_config,
)
from closedorbit.pipeline import BakedOrbit
from closedorbit.spectrum import BakedBody, FrequencyComponent


def write_yaml(path, content):
    path.write_text(yaml.safe_dump(content))
    return str(path)


def orbit_entry(name="pair", **overrides):
    entry = {
        'name': name,
        'period': 4.442882938158366,
        'masses': [1.0, 1.0],
        'positions': [[0.5, 0.0], [-0.5, 0.0]],
        'velocities': [[0.0, 0.7071067811865476], [0.0, -0.7071067811865476]],
    }
    entry.update(overrides)
    return entry


def baked_orbit(name="pair", energy=None, amplitude=0.5):
    bodies = [
        BakedBody([
            FrequencyComponent(freq=0.0, amplitude=0.000123456789, phase=3.141592653589793),
            FrequencyComponent(freq=-1.0, amplitude=amplitude, phase=0.0),
        ]),
        BakedBody([FrequencyComponent(freq=-1.0, amplitude=0.5, phase=np.pi)]),
    ]
    return BakedOrbit(name=name, period=4.4, energy=energy, bodies=bodies,
                      positions=np.zeros((4, 2, 2)))


class TestLoadConfig:
    """Tests for YAML parsing."""

    def test_example_round_trip(self, tmp_path):
        path = tmp_path / "example.yaml"
        create_example_config(str(path))
        config = load_config(str(path))

        sim = config['simulation']
        assert (sim.frames, sim.subframes, sim.substeps) == (140, 100, 100)
        assert config['compression'] == {
            'cutoff': 0.001, 'keep_dc': True, 'closure_tolerance': 0.001,
        }
        assert config['outputs'] == {'render': True, 'format': 'json'}

        (orbit,) = config['orbits']
        assert orbit.name == "figure-eight"
        assert orbit.period == pytest.approx(6.325897)
        assert orbit.energy == pytest.approx(-1.287146)
        assert orbit.to_orbit().n_bodies == 3

    def test_defaults(self, tmp_path):
        config = load_config(write_yaml(tmp_path / "c.yaml", {'orbits': [orbit_entry()]}))
        assert config['simulation'].substeps == 100
        assert config['compression']['keep_dc'] is True
        assert config['orbits'][0].energy is None

    def test_unnamed_orbit_gets_index_name(self, tmp_path):
        entry = orbit_entry()
        del entry['name']
        config = load_config(write_yaml(tmp_path / "c.yaml", {'orbits': [orbit_entry(), entry]}))
        assert config['orbits'][1].name == "orbit-1"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        with pytest.raises(ValueError, match="Empty"):
            load_config(str(path))

    def test_missing_orbits(self, tmp_path):
        with pytest.raises(KeyError, match="orbits"):
            load_config(write_yaml(tmp_path / "c.yaml", {'simulation': {'frames': 10}}))

    def test_missing_orbit_field_is_loaded_as_none(self, tmp_path):
        entry = orbit_entry("broken")
        del entry['period']
        config = load_config(write_yaml(tmp_path / "c.yaml", {'orbits': [orbit_entry(), entry]}))

        good, broken = config['orbits']
        assert good.validate() == []
        assert broken.period is None
        assert broken.validate() == ["Orbit 'broken': period is missing"]

    def test_malformed_orbit_fields_kept_as_written(self, tmp_path):
        entry = orbit_entry("broken", masses=None, velocities=3.0)
        config = load_config(write_yaml(tmp_path / "c.yaml", {'orbits': [entry, orbit_entry()]}))

        problems = config['orbits'][0].validate()
        assert "Orbit 'broken': masses is missing" in problems
        assert any("velocities must be a list" in p for p in problems)
        assert config['orbits'][1].validate() == []

    def test_non_mapping_orbit_entry(self, tmp_path):
        config = load_config(write_yaml(tmp_path / "c.yaml", {'orbits': ["oops", orbit_entry()]}))
        assert config['orbits'][0].name == "orbit-0"
        assert any("period is missing" in p for p in config['orbits'][0].validate())

    @pytest.mark.parametrize("section,key", [("compression", "keep_dc"), ("outputs", "render")])
    def test_quoted_boolean_rejected(self, tmp_path, section, key):
        content = {section: {key: "false"}, 'orbits': [orbit_entry()]}
        with pytest.raises(ValueError, match=f"{section}.{key}"):
            load_config(write_yaml(tmp_path / "c.yaml", content))

    def test_boolean_options(self, tmp_path):
        content = {
            'compression': {'keep_dc': False},
            'outputs': {'render': False},
            'orbits': [orbit_entry()],
        }
        config = load_config(write_yaml(tmp_path / "c.yaml", content))
        assert config['compression']['keep_dc'] is False
        assert config['outputs']['render'] is False

    def test_bad_format(self, tmp_path):
        content = {'outputs': {'format': 'xml'}, 'orbits': [orbit_entry()]}
        with pytest.raises(ValueError, match="format"):
            load_config(write_yaml(tmp_path / "c.yaml", content))

    def test_bad_simulation(self, tmp_path):
        content = {'simulation': {'frames': 0}, 'orbits': [orbit_entry()]}
        with pytest.raises(ValueError, match="frames"):
            load_config(write_yaml(tmp_path / "c.yaml", content))


class TestValidateConfig:
    """Tests for batch-level validation."""

    def load(self, tmp_path, orbits, **sections):
        content = dict(sections, orbits=orbits)
        return load_config(write_yaml(tmp_path / "c.yaml", content))

    def test_valid(self, tmp_path):
        is_valid, warnings_list = validate_config(self.load(tmp_path, [orbit_entry()]))
        assert is_valid
        assert warnings_list == []

    def test_partially_invalid_batch_still_runs(self, tmp_path):
        config = self.load(tmp_path, [orbit_entry(), orbit_entry("bad", period=-1.0)])
        is_valid, warnings_list = validate_config(config)
        assert is_valid
        assert any("'bad'" in w and "period" in w for w in warnings_list)

    def test_no_buildable_orbit(self, tmp_path):
        config = self.load(tmp_path, [orbit_entry(masses=[1.0])])
        is_valid, warnings_list = validate_config(config)
        assert not is_valid
        assert "No valid orbit in configuration" in warnings_list

    def test_missing_field_does_not_invalidate_batch(self, tmp_path):
        entry = orbit_entry("broken")
        del entry['masses']
        is_valid, warnings_list = validate_config(self.load(tmp_path, [entry, orbit_entry()]))
        assert is_valid
        assert "Orbit 'broken': masses is missing" in warnings_list

    def test_duplicate_names(self, tmp_path):
        config = self.load(tmp_path, [orbit_entry(), orbit_entry()])
        is_valid, warnings_list = validate_config(config)
        assert is_valid
        assert any("more than once" in w for w in warnings_list)

    def test_single_body_flagged(self, tmp_path):
        lonely = orbit_entry("lonely", masses=[1.0], positions=[[0, 0]], velocities=[[0, 0]])
        is_valid, warnings_list = validate_config(self.load(tmp_path, [lonely]))
        assert is_valid
        assert any("single body" in w for w in warnings_list)

    def test_negative_cutoff(self, tmp_path):
        config = self.load(tmp_path, [orbit_entry()], compression={'cutoff': -1.0})
        is_valid, warnings_list = validate_config(config)
        assert not is_valid
        assert any("Cutoff" in w for w in warnings_list)

    def test_missing_section(self):
        is_valid, warnings_list = validate_config({'orbits': []})
        assert not is_valid
        assert "compression" in warnings_list[0]


class TestJsonExport:
    """Tests for the JSON frequency-set export."""

    def test_structure_and_rounding(self, tmp_path):
        path = tmp_path / "out" / "orbits.json"
        save_orbits_json(str(path), [baked_orbit(energy=-0.5), baked_orbit("other")])

        data = json.loads(path.read_text())
        assert [orbit['name'] for orbit in data] == ["pair", "other"]
        assert data[0]['energy'] == -0.5
        assert data[1]['energy'] is None
        assert data[0]['period'] == 4.4

        dc = data[0]['bodies'][0]['frequencies'][0]
        assert dc == {'freq': 0.0, 'amplitude': 0.00012346, 'phase': 3.14159265}
        assert len(data[0]['bodies'][1]['frequencies']) == 1

    def test_non_finite_rejected(self, tmp_path):
        path = tmp_path / "orbits.json"
        with pytest.raises(ValueError, match="Non-finite"):
            save_orbits_json(str(path), [baked_orbit(), baked_orbit("nan", amplitude=np.nan)])
        assert not path.exists()

    def test_non_finite_energy_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="energy"):
            save_orbits_json(str(tmp_path / "orbits.json"), [baked_orbit(energy=np.inf)])


class TestElmExport:
    """Tests for the Elm module export."""

    def test_module_header_and_types(self):
        source = format_orbits_elm([baked_orbit()])
        assert source.startswith("module Orbits exposing (Body, Frequency, Orbit, orbits)\n")
        assert "type alias Frequency =" in source
        assert "orbits : List Orbit" in source

    def test_values(self):
        source = format_orbits_elm([baked_orbit(energy=-1.5), baked_orbit("other", energy=2.0)])
        assert 'name = "pair"' in source
        assert "energy = Just (-1.5)" in source
        assert "energy = Just 2.0" in source
        assert "period = 4.4" in source
        assert "{ freq = -1.0, amplitude = 0.5, phase = 0.0 }" in source
        assert "amplitude = 0.00012346" in source

    def test_name_escaping(self):
        source = format_orbits_elm([baked_orbit('Tri\u00e8dre "\u221e"\\\n\x01')])
        assert 'name = "Tri\u00e8dre \\"\u221e\\"\\\\\\n\\u{0001}"' in source
        assert "\\u00e8" not in source

    def test_missing_energy_is_nothing(self):
        assert "energy = Nothing" in format_orbits_elm([baked_orbit()])

    def test_custom_module_name(self):
        assert format_orbits_elm([], "Data.Orbits").startswith("module Data.Orbits exposing")

    def test_save(self, tmp_path):
        path = tmp_path / "Orbits.elm"
        save_orbits_elm(str(path), [baked_orbit()])
        assert path.read_text() == format_orbits_elm([baked_orbit()])

    def test_non_finite_rejected(self, tmp_path):
        path = tmp_path / "Orbits.elm"
        with pytest.raises(ValueError):
            save_orbits_elm(str(path), [baked_orbit(amplitude=np.inf)])
        assert not path.exists()


class TestDiagnosticsJson:

    def test_numpy_and_tuples_converted(self, tmp_path):
        path = tmp_path / "diagnostics.json"
        save_diagnostics_json(str(path), {
            'pair': {
                'closure_errors': [np.float64(1e-6), np.float64(2e-6)],
                'component_counts': [(64, 3), (64, 2)],
                'positions': np.zeros((2, 2)),
                'ok': True,
            },
        })
        data = json.loads(path.read_text())
        assert data['pair']['component_counts'] == [[64, 3], [64, 2]]
        assert data['pair']['closure_errors'] == [1e-6, 2e-6]
        assert data['pair']['positions'] == [[0.0, 0.0], [0.0, 0.0]]
