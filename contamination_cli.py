#!/usr/bin/env python3
"""
Contaminant Food-Chain Model - CLI Interface
============================================

Command-line interface for the five-compartment contamination model.

Usage:
    python contamination_cli.py --t-max=500 --param b=0.2 --param theta=0.01
    python contamination_cli.py --mode=show

For programmatic use, import contamination_results.run_pipeline instead.
"""

import argparse
import json
import sys

from contamination_model import (
    COMPARTMENTS,
    PARAMETER_DOCS,
    PARAMETERS,
    ConfigurationError,
    ContaminationModel,
    ModelError,
)
from contamination_results import OUTPUT_ROOT, run_identifier, run_pipeline
from contamination_solver import T_MAX


def parse_param(text):
    """NAME=VALUE -> (name, float)."""
    name, sep, value = text.partition("=")
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {text!r}")
    try:
        return name.strip(), float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"value of {name} is not a number: {value!r}")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Contaminant food-chain model - CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Modes:
  run         Integrate and save artifacts under OUTPUT/<identifier>/ (default)
  show        Print equations, parameters and run identifier without integrating

Parameters (defaults):
""" + "\n".join(f"  {name:<10}{value:<8g}{PARAMETER_DOCS[name]}"
                for name, value in PARAMETERS.items())
    )
    parser.add_argument("--mode", choices=["run", "show"], default="run", help="Run mode")
    parser.add_argument("--param", action="append", type=parse_param, default=[],
                        metavar="NAME=VALUE", help="Override a parameter (repeatable)")
    parser.add_argument("--params-file", default=None,
                        help="JSON file with 'parameters', 'initial_state' and/or 't_max'")
    parser.add_argument("--initial", type=float, nargs=len(COMPARTMENTS), default=None,
                        metavar=tuple(COMPARTMENTS), help="Initial compartment values")
    parser.add_argument("--t-max", type=float, default=None, help=f"Time horizon (default {T_MAX:g})")
    parser.add_argument("--output", default=str(OUTPUT_ROOT), help="Output root directory")
    parser.add_argument("--fingerprint-parameters", action="store_true",
                        help="Append a parameter fingerprint to the run identifier")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    return parser.parse_args(argv)


def load_config(path):
    """Read a JSON run configuration."""
    with open(path, "r") as f:
        config = json.load(f)
    if not isinstance(config, dict):
        raise ConfigurationError(f"{path}: expected a JSON object")
    unknown = set(config) - {'parameters', 'initial_state', 't_max'}
    if unknown:
        raise ConfigurationError(f"{path}: unknown keys {sorted(unknown)}")
    return config


def resolve_settings(args):
    """Merge config file and command-line flags; flags win."""
    config = load_config(args.params_file) if args.params_file else {}
    params = dict(config.get('parameters', {}))
    params.update(dict(args.param))
    initial_state = args.initial if args.initial is not None else config.get('initial_state')
    t_max = args.t_max if args.t_max is not None else config.get('t_max', T_MAX)
    return params, initial_state, t_max


def show_model(params, initial_state, fingerprint_parameters=False):
    model = ContaminationModel(params, initial_state)

    print("=" * 70)
    print("CONTAMINANT FOOD-CHAIN MODEL")
    print("=" * 70)
    print("\nEquations:")
    for line in model.system.latex_lines():
        print(f"  {line}")

    print("\nParameters:")
    for name, value in model.params.items():
        print(f"  {name:<10}{value:<10g}{PARAMETER_DOCS[name]}")

    print("\nInitial state:")
    for name, value in zip(COMPARTMENTS, model.initial_state):
        print(f"  {name:<10}{value:g}")

    if fingerprint_parameters:
        identifier = run_identifier(model.system, model.params, model.initial_state)
    else:
        identifier = run_identifier(model.system)
    print(f"\nRun identifier: {identifier}")
    return identifier


def main(argv=None):
    args = parse_args(argv)

    try:
        params, initial_state, t_max = resolve_settings(args)
        if args.mode == "show":
            show_model(params, initial_state, args.fingerprint_parameters)
            return 0

        result = run_pipeline(params, initial_state, t_max=t_max, output_root=args.output,
                              fingerprint_parameters=args.fingerprint_parameters,
                              verbose=not args.quiet)
    except (ModelError, OSError, json.JSONDecodeError) as e:
        print(f"Run failed: {e}", file=sys.stderr)
        return 1

    if not args.quiet:
        final = result['trajectory'].final_state()
        print("\n" + "=" * 70)
        print("FINAL STATE")
        print("=" * 70)
        for name in COMPARTMENTS:
            print(f"  {name:<6}{final[name]:.6g}")
        print(f"\nArtifacts in {result['run_dir']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
