"""Configuration and I/O module for the closed-orbit baker.

This module provides:
- YAML configuration loading and validation
- Example config generation (figure-eight three-body orbit)
- JSON and Elm export of baked orbits
- JSON output for diagnostics

The core pipeline never touches the disk; everything file-shaped lives here.
"""

from typing import Dict, List, Tuple, Any, Sequence
import numpy as np
import yaml
import json
from pathlib import Path

from closedorbit.bodies import OrbitConfig, SimulationConfig
from closedorbit.closure import DEFAULT_CLOSURE_TOLERANCE
from closedorbit.pipeline import DEFAULT_CUTOFF, BakedOrbit

# Exported frequency components are rounded to this many decimals
EXPORT_DECIMALS = 8

EXPORT_FORMATS = ('json', 'elm')


def _bool_option(section: Dict[str, Any], key: str, default: bool, section_name: str) -> bool:
    """Read a YAML boolean; quoted strings such as "false" are rejected."""
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"{section_name}.{key} must be true or false, got {value!r}")
    return value


def load_config(yaml_path: str) -> Dict[str, Any]:
    """Load and parse a YAML configuration file.

    Reads a YAML configuration listing orbits (initial conditions and
    period), sampling density, compression options and output preferences.

    Parameters
    ----------
    yaml_path : str
        Path to YAML configuration file.

    Returns
    -------
    dict
        Configuration dictionary with keys:
        - 'simulation': SimulationConfig (frames, subframes, substeps)
        - 'compression': dict with 'cutoff', 'keep_dc', 'closure_tolerance'
        - 'outputs': dict with 'render', 'format'
        - 'orbits': list of OrbitConfig, unvalidated

    Raises
    ------
    FileNotFoundError
        If yaml_path does not exist.
    yaml.YAMLError
        If YAML parsing fails.
    KeyError
        If the 'orbits' section is missing.
    ValueError
        If a section has the wrong type or a global option is invalid.

    Notes
    -----
    Per-orbit fields (presence, lengths, signs, vector shapes) are NOT
    checked here. Use validate_config() or OrbitConfig.to_orbit(); a bad
    orbit is then reported on its own while the rest of the batch still runs.

    Examples
    --------
    >>> config = load_config("orbits.yaml")
    >>> print(f"Loaded {len(config['orbits'])} orbits")
    Loaded 1 orbits
    >>> config['simulation']
    SimulationConfig(frames=140, subframes=100, substeps=100)
    """
    yaml_path = Path(yaml_path)
    if not yaml_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

    with open(yaml_path, 'r') as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        raise ValueError(f"Empty or invalid YAML file: {yaml_path}")
    if not isinstance(raw_config, dict):
        raise ValueError(f"Top level of {yaml_path} must be a mapping")

    # Parse simulation
    sim_cfg = raw_config.get('simulation') or {}
    defaults = SimulationConfig()
    simulation = SimulationConfig(
        frames=int(sim_cfg.get('frames', defaults.frames)),
        subframes=int(sim_cfg.get('subframes', defaults.subframes)),
        substeps=int(sim_cfg.get('substeps', defaults.substeps)),
    )

    # Parse compression
    comp_cfg = raw_config.get('compression') or {}
    compression = {
        'cutoff': float(comp_cfg.get('cutoff', DEFAULT_CUTOFF)),
        'keep_dc': _bool_option(comp_cfg, 'keep_dc', True, 'compression'),
        'closure_tolerance': float(comp_cfg.get('closure_tolerance', DEFAULT_CLOSURE_TOLERANCE)),
    }

    # Parse outputs
    outputs_cfg = raw_config.get('outputs') or {}
    outputs = {
        'render': _bool_option(outputs_cfg, 'render', True, 'outputs'),
        'format': str(outputs_cfg.get('format', 'json')).lower(),
    }
    if outputs['format'] not in EXPORT_FORMATS:
        raise ValueError(f"outputs.format must be one of {EXPORT_FORMATS}, got {outputs['format']!r}")

    # Parse orbits
    if 'orbits' not in raw_config:
        raise KeyError("Configuration missing required section 'orbits'")

    orbits_cfg = raw_config['orbits']
    if not isinstance(orbits_cfg, list) or len(orbits_cfg) == 0:
        raise ValueError("Configuration 'orbits' must be a non-empty list")

    # Orbit fields are kept as written; OrbitConfig.validate() reports problems
    orbits = []
    for i, orbit_cfg in enumerate(orbits_cfg):
        if not isinstance(orbit_cfg, dict):
            orbit_cfg = {}
        orbits.append(OrbitConfig(
            name=str(orbit_cfg.get('name', f"orbit-{i}")),
            period=orbit_cfg.get('period'),
            masses=orbit_cfg.get('masses'),
            positions=orbit_cfg.get('positions'),
            velocities=orbit_cfg.get('velocities'),
            energy=orbit_cfg.get('energy'),
        ))

    return {
        'simulation': simulation,
        'compression': compression,
        'outputs': outputs,
        'orbits': orbits,
    }


def validate_config(config: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """Validate a loaded configuration.

    Parameters
    ----------
    config : dict
        Configuration dictionary from load_config().

    Returns
    -------
    is_valid : bool
        False if a global option is unusable or NO orbit can be built.
        A batch with some invalid orbits is still valid: those orbits are
        reported and will fail on their own.
    warnings_list : list of str
        Every problem found, global and per orbit.

    Notes
    -----
    **Checks performed**:

    1. Compression: cutoff >= 0, closure_tolerance > 0
    2. Orbit names are unique (they name output files)
    3. Per orbit: OrbitConfig.validate() (lengths, period, masses, vectors)
    4. Single-body orbits are flagged: they move in a straight line and
       will not close unless the velocity is zero
    """
    warnings_list = []
    is_valid = True

    try:
        compression = config['compression']
        orbits = config['orbits']
    except KeyError as e:
        return False, [f"Missing required config section: {e}"]

    if compression['cutoff'] < 0:
        is_valid = False
        warnings_list.append(f"Cutoff must be non-negative, got {compression['cutoff']}")

    if compression['closure_tolerance'] <= 0:
        is_valid = False
        warnings_list.append(
            f"Closure tolerance must be positive, got {compression['closure_tolerance']}"
        )

    seen = set()
    n_buildable = 0
    for orbit_config in orbits:
        if orbit_config.name in seen:
            warnings_list.append(
                f"Orbit name '{orbit_config.name}' is used more than once; "
                f"output files will overwrite each other"
            )
        seen.add(orbit_config.name)

        problems = orbit_config.validate()
        warnings_list.extend(problems)
        if problems:
            continue
        n_buildable += 1

        if len(orbit_config.masses) == 1:
            warnings_list.append(
                f"Orbit '{orbit_config.name}' has a single body: no forces act, "
                f"the trajectory is a straight line"
            )

    if n_buildable == 0:
        is_valid = False
        warnings_list.append("No valid orbit in configuration")

    return is_valid, warnings_list


def create_example_config(output_path: str) -> None:
    """Generate an example YAML configuration file.

    Writes a commented configuration with the figure-eight three-body
    choreography (three unit masses chasing each other along a figure
    eight). This serves as a template for users to modify.

    Parameters
    ----------
    output_path : str
        Path where YAML file will be written.
    """
    yaml_content = f"""# Closed-orbit baker configuration
#
# Every orbit below is simulated for one period, closed by forward/backward
# blending, decomposed into rotating Fourier components and compressed.
# Units: gravitational constant G = 1.

# ============================================================================
# Simulation: sampling density of one period
# ============================================================================
simulation:
  # Output animation frames per period
  frames: 140

  # Recorded samples per output frame
  subframes: 100

  # Integrator micro-steps per recorded sample (accuracy vs speed)
  substeps: 100

# ============================================================================
# Compression: frequency truncation and closure check
# ============================================================================
compression:
  # Components with amplitude <= cutoff are dropped
  cutoff: {DEFAULT_CUTOFF}

  # Keep the zero-frequency (mean position) component regardless of cutoff
  keep_dc: true

  # Maximum forward/backward mismatch (mean squared distance) per body
  closure_tolerance: {DEFAULT_CLOSURE_TOLERANCE}

# ============================================================================
# Outputs
# ============================================================================
outputs:
  # Write an animated GIF per orbit
  render: true

  # Export format for the frequency sets: json or elm
  format: json

# ============================================================================
# Orbits
# ============================================================================
orbits:
  - name: figure-eight
    period: 6.325897
    # Optional tag, passed through to the export unchanged
    energy: -1.287146
    masses: [1.0, 1.0, 1.0]
    positions:
      - [-1.0, 0.0]
      - [1.0, 0.0]
      - [0.0, 0.0]
    velocities:
      - [0.347113, 0.532727]
      - [0.347113, 0.532727]
      - [-0.694226, -1.065454]
"""

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w') as f:
        f.write(yaml_content)

    print(f"Example configuration written to: {output_path}")


# ============================================================================
# Export
# ============================================================================

def save_orbits_json(filepath: str, baked_orbits: Sequence[BakedOrbit]) -> None:
    """Save baked orbits (name, period, energy, frequency sets) to JSON.

    Notes
    -----
    **JSON format**:
    ```
    [
      {
        "name": "figure-eight",
        "period": 6.325897,
        "energy": -1.287146,
        "bodies": [
          {"frequencies": [{"freq": 0.0, "amplitude": 0.0, "phase": 0.0}, ...]},
          ...
        ]
      }
    ]
    ```
    Frequency components are rounded to 8 decimals. A missing energy tag
    is written as null.

    Raises
    ------
    ValueError
        If any orbit holds a non-finite number.
    """
    for orbit in baked_orbits:
        orbit.check_finite()

    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    payload = [orbit.to_dict(EXPORT_DECIMALS) for orbit in baked_orbits]
    with open(filepath, 'w') as f:
        json.dump(payload, f, indent=2, allow_nan=False)

    print(f"Saved {len(payload)} orbits to {filepath}")


def _elm_float(value: float) -> str:
    text = f"{round(float(value), EXPORT_DECIMALS):.{EXPORT_DECIMALS}f}".rstrip('0')
    if text.endswith('.'):
        text += '0'
    return '0.0' if text == '-0.0' else text


_ELM_ESCAPES = {'"': '\\"', '\\': '\\\\', '\n': '\\n', '\r': '\\r', '\t': '\\t'}


def _elm_string(text: str) -> str:
    """Elm string literal; other control characters use Elm's \\u{XXXX} form."""
    chars = []
    for char in str(text):
        if char in _ELM_ESCAPES:
            chars.append(_ELM_ESCAPES[char])
        elif ord(char) < 0x20 or ord(char) == 0x7f:
            chars.append(f"\\u{{{ord(char):04X}}}")
        else:
            chars.append(char)
    return '"' + ''.join(chars) + '"'


def _elm_list(items: List[str], indent: str) -> str:
    if not items:
        return "[]"
    lines = [f"[ {items[0]}"]
    lines.extend(f"{indent}, {item}" for item in items[1:])
    lines.append(f"{indent}]")
    return "\n".join(lines)


def format_orbits_elm(baked_orbits: Sequence[BakedOrbit], module_name: str = "Orbits") -> str:
    """Render baked orbits as an Elm module exposing `orbits : List Orbit`."""
    orbit_docs = []
    for orbit in baked_orbits:
        body_docs = []
        for body in orbit.bodies:
            freq_docs = [
                f"{{ freq = {_elm_float(c.freq)}, amplitude = {_elm_float(c.amplitude)}, "
                f"phase = {_elm_float(c.phase)} }}"
                for c in body.frequencies
            ]
            body_docs.append("{ frequencies =\n" + " " * 16
                             + _elm_list(freq_docs, " " * 16) + "\n" + " " * 12 + "}")

        energy = "Nothing" if orbit.energy is None else f"Just {_elm_float(orbit.energy)}"
        if energy.startswith("Just -"):
            energy = f"Just ({_elm_float(orbit.energy)})"

        orbit_docs.append(
            f"{{ name = {_elm_string(orbit.name)}\n"
            f"      , period = {_elm_float(orbit.period)}\n"
            f"      , energy = {energy}\n"
            f"      , bodies =\n"
            f"            {_elm_list(body_docs, ' ' * 12)}\n"
            f"      }}"
        )

    return (
        f"module {module_name} exposing (Body, Frequency, Orbit, orbits)\n"
        "\n"
        "\n"
        "type alias Frequency =\n"
        "    { freq : Float, amplitude : Float, phase : Float }\n"
        "\n"
        "\n"
        "type alias Body =\n"
        "    { frequencies : List Frequency }\n"
        "\n"
        "\n"
        "type alias Orbit =\n"
        "    { name : String, period : Float, energy : Maybe Float, bodies : List Body }\n"
        "\n"
        "\n"
        "orbits : List Orbit\n"
        "orbits =\n"
        f"    {_elm_list(orbit_docs, '    ')}\n"
    )


def save_orbits_elm(
    filepath: str,
    baked_orbits: Sequence[BakedOrbit],
    module_name: str = "Orbits",
) -> None:
    """Save baked orbits as an Elm module (see format_orbits_elm).

    Raises
    ------
    ValueError
        If any orbit holds a non-finite number.
    """
    for orbit in baked_orbits:
        orbit.check_finite()

    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    with open(filepath, 'w') as f:
        f.write(format_orbits_elm(baked_orbits, module_name))

    print(f"Saved {len(baked_orbits)} orbits to {filepath}")


def save_diagnostics_json(filepath: str, diagnostics: Dict[str, Any]) -> None:
    """Save diagnostics data to JSON file.

    Numpy arrays and scalars are converted to plain Python values. Typical
    content is one entry per orbit with drifts, closure errors, component
    counts and reconstruction errors, or the failure message.
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    # Convert numpy arrays to lists for JSON serialization
    def convert_to_json_serializable(obj):
        """Recursively convert numpy arrays to lists."""
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        elif isinstance(obj, dict):
            return {key: convert_to_json_serializable(val) for key, val in obj.items()}
        elif isinstance(obj, (list, tuple)):
            return [convert_to_json_serializable(item) for item in obj]
        elif isinstance(obj, (np.integer, np.floating)):
            return obj.item()
        else:
            return obj

    serializable_diagnostics = convert_to_json_serializable(diagnostics)

    with open(filepath, 'w') as f:
        json.dump(serializable_diagnostics, f, indent=2)

    n_keys = len(diagnostics)
    print(f"Saved diagnostics to {filepath} ({n_keys} top-level keys)")
