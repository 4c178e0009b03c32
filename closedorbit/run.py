#!/usr/bin/env python3
"""
Main command-line interface for the closed-orbit baker.

This script bakes every orbit listed in a YAML configuration:
- Configuration loading and validation
- Parallel baking (closed simulation, frequency analysis, truncation)
- Per-orbit summary of drift, closure error and compression
- JSON or Elm export of the frequency sets
- Optional animated GIF per orbit

Usage:
    python -m closedorbit.run orbits.yaml
    python -m closedorbit.run orbits.yaml --output-dir results --verbose
    python -m closedorbit.run orbits.yaml --validate-only
    python -m closedorbit.run --create-example orbits.yaml

A failing orbit (invalid configuration, orbit that does not close) is
reported and skipped; the others are still baked and exported. The exit
status is 1 if any orbit failed.
"""

import argparse
import sys
import time
import traceback
from pathlib import Path
from typing import Any, Dict, List

from closedorbit.bodies import SimulationConfig
from closedorbit.diagnostics import total_energy
from closedorbit.io_cfg import (
    EXPORT_FORMATS,
    create_example_config,
    load_config,
    save_diagnostics_json,
    save_orbits_elm,
    save_orbits_json,
    validate_config,
)
from closedorbit.pipeline import BakeResult, bake_all


def apply_overrides(config: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    """Return a copy of `config` with command-line options applied."""
    sim = config['simulation']
    simulation = SimulationConfig(
        frames=args.frames if args.frames is not None else sim.frames,
        subframes=args.subframes if args.subframes is not None else sim.subframes,
        substeps=args.substeps if args.substeps is not None else sim.substeps,
    )

    compression = dict(config['compression'])
    if args.cutoff is not None:
        compression['cutoff'] = args.cutoff
    if args.drop_dc:
        compression['keep_dc'] = False

    outputs = dict(config['outputs'])
    if args.format is not None:
        outputs['format'] = args.format
    if args.no_render:
        outputs['render'] = False

    return dict(config, simulation=simulation, compression=compression, outputs=outputs)


def summarize_result(result: BakeResult, orbit_config) -> Dict[str, Any]:
    """Diagnostics record for one orbit, as saved to diagnostics.json."""
    if not result.ok:
        return {'name': result.name, 'ok': False, 'error': result.error}

    baked = result.orbit
    diag = baked.diagnostics
    summary = {
        'name': baked.name,
        'ok': True,
        'period': baked.period,
        'energy_tag': baked.energy,
        'energy_computed': total_energy(orbit_config.to_orbit().initial_conditions),
    }
    summary.update(diag)
    return summary


def print_summary(summaries: List[Dict[str, Any]], verbose: bool = False) -> None:
    """
    Print human-readable summary of a batch.

    Parameters
    ----------
    summaries : List[dict]
        Records from summarize_result, in configuration order
    verbose : bool
        Print per-body details
    """
    print()
    print("=" * 80)
    print("BAKE SUMMARY")
    print("=" * 80)
    print()

    for s in summaries:
        if not s['ok']:
            print(f"✗ {s['name']}: FAILED")
            print(f"    {s['error']}")
            print()
            continue

        counts = s['component_counts']
        kept = sum(after for _, after in counts)
        total = sum(before for before, _ in counts)
        print(f"✓ {s['name']}:")
        print(f"    Period:             {s['period']:.6f}")
        if s['energy_tag'] is not None:
            print(f"    Energy (tag):       {s['energy_tag']:+.6f}")
        print(f"    Energy (computed):  {s['energy_computed']:+.6f}")
        print(f"    Drift fwd/bwd:      {s['forward_drift']:.3e} / {s['backward_drift']:.3e}")
        print(f"    Max closure error:  {max(s['closure_errors']):.3e}")
        print(f"    Components kept:    {kept} of {total}")
        print(f"    Max recon. error:   {max(s['optimization_errors']):.3e}")
        print(f"    Wall time:          {s['elapsed_seconds']:.2f} seconds")

        if verbose:
            for i, ((before, after), error) in enumerate(
                zip(counts, s['optimization_errors'])
            ):
                print(f"      body {i}: {before} -> {after} components, error {error:.3e}")
        print()


def save_outputs(
    config: Dict[str, Any],
    results: List[BakeResult],
    summaries: List[Dict[str, Any]],
    output_dir: Path,
    verbose: bool = False,
) -> None:
    """
    Save batch outputs (frequency sets, diagnostics, animations).

    Only successfully baked orbits are exported and rendered.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    baked = [result.orbit for result in results if result.ok]

    if baked:
        if config['outputs']['format'] == 'elm':
            save_orbits_elm(str(output_dir / "Orbits.elm"), baked)
        else:
            save_orbits_json(str(output_dir / "orbits.json"), baked)

    save_diagnostics_json(
        str(output_dir / "diagnostics.json"),
        {s['name']: s for s in summaries},
    )

    if config['outputs']['render'] and baked:
        from closedorbit.viz import render_orbit_gif

        for orbit in baked:
            if verbose:
                print(f"Rendering '{orbit.name}'...")
            render_orbit_gif(config['simulation'], orbit, str(output_dir / f"{orbit.name}.gif"))

    print()
    print(f"✓ Outputs saved to: {output_dir.absolute()}")
    print()


# ============================================================================
# Command-line interface
# ============================================================================

def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog='closedorbit.run',
        description=(
            'Closed-orbit baker: simulate periodic N-body orbits, close them '
            'exactly by forward/backward blending, and compress each body '
            'into a truncated Fourier series.'
        ),
        epilog=(
            'Examples:\n'
            '  python -m closedorbit.run orbits.yaml\n'
            '  python -m closedorbit.run orbits.yaml --output-dir results --verbose\n'
            '  python -m closedorbit.run orbits.yaml --validate-only\n'
            '  python -m closedorbit.run --create-example orbits.yaml\n'
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        'config',
        type=str,
        nargs='?',
        help='Path to YAML configuration file',
    )

    parser.add_argument(
        '--create-example',
        type=str,
        metavar='PATH',
        help='Write an example configuration to PATH and exit',
    )

    parser.add_argument(
        '--output-dir',
        type=str,
        default='output',
        help='Output directory for results (default: output/)',
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output (integration progress, per-body details)',
    )

    parser.add_argument(
        '--validate-only',
        action='store_true',
        help='Validate configuration and exit (no simulation)',
    )

    parser.add_argument('--frames', type=int, help='Animation frames per period')
    parser.add_argument('--subframes', type=int, help='Samples per animation frame')
    parser.add_argument('--substeps', type=int, help='Integrator steps per sample')

    parser.add_argument(
        '--cutoff',
        type=float,
        help='Amplitude cutoff for frequency truncation',
    )

    parser.add_argument(
        '--drop-dc',
        action='store_true',
        help='Let the zero-frequency component be truncated like any other',
    )

    parser.add_argument(
        '--format',
        choices=EXPORT_FORMATS,
        help='Export format for frequency sets (default: from config, else json)',
    )

    parser.add_argument(
        '--no-render',
        action='store_true',
        help='Skip GIF rendering',
    )

    parser.add_argument(
        '--workers',
        type=int,
        default=None,
        help='Number of orbits baked concurrently (default: executor default)',
    )

    parser.add_argument(
        '--processes',
        action='store_true',
        help='Bake orbits in separate processes instead of threads',
    )

    return parser


def main(argv=None):
    """Main entry point for CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.create_example:
        create_example_config(args.create_example)
        return 0

    if args.config is None:
        parser.error("the following arguments are required: config")

    output_dir = Path(args.output_dir)

    # 1) Load configuration
    try:
        if args.verbose:
            print(f"Loading configuration from: {args.config}")
            print()
        config = apply_overrides(load_config(args.config), args)
    except FileNotFoundError:
        print(f"ERROR: Configuration file not found: {args.config}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"ERROR: Failed to load configuration: {e}", file=sys.stderr)
        if args.verbose:
            traceback.print_exc()
        return 1

    # 2) Validate configuration
    is_valid, warnings_list = validate_config(config)

    if warnings_list:
        print("⚠️  Configuration warnings/errors:")
        for w in warnings_list:
            print(f"    - {w}")
        print()

    if not is_valid:
        print("❌ Configuration is INVALID. Please fix errors above.", file=sys.stderr)
        return 1

    if args.validate_only:
        print("✓ Configuration validated successfully. Exiting (--validate-only mode).")
        return 0

    # 3) Bake
    sim_config = config['simulation']
    compression = config['compression']
    if args.verbose:
        print(f"Baking {len(config['orbits'])} orbits: "
              f"{sim_config.frames} frames x {sim_config.subframes} subframes x "
              f"{sim_config.substeps} substeps, cutoff={compression['cutoff']}, "
              f"keep_dc={compression['keep_dc']}")
        print()

    t_start = time.time()
    results = bake_all(
        sim_config,
        config['orbits'],
        cutoff=compression['cutoff'],
        keep_dc=compression['keep_dc'],
        closure_tolerance=compression['closure_tolerance'],
        max_workers=args.workers,
        processes=args.processes,
        verbose=args.verbose,
    )
    elapsed = time.time() - t_start

    summaries = [
        summarize_result(result, orbit_config)
        for result, orbit_config in zip(results, config['orbits'])
    ]

    # 4) Print summary
    print_summary(summaries, verbose=args.verbose)

    # 5) Save outputs
    try:
        save_outputs(config, results, summaries, output_dir, verbose=args.verbose)
    except Exception as e:
        print(f"ERROR: Failed to save outputs: {e}", file=sys.stderr)
        if args.verbose:
            traceback.print_exc()
        return 1

    n_failed = sum(1 for result in results if not result.ok)
    print("=" * 80)
    print(f"Baked {len(results) - n_failed} of {len(results)} orbits in {elapsed:.2f} seconds")
    print("=" * 80)

    return 1 if n_failed else 0


if __name__ == '__main__':
    sys.exit(main())
