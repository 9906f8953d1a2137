#!/usr/bin/env python3
"""
Reproduce Model Scenarios
=========================

Runs the reference scenarios of the contaminant food-chain model and prints
one table per scenario. Everything is computed; nothing is read back from
earlier runs.

Usage:
    python reproduce_scenarios.py [--output DIR]

Scenarios:
    1. Default run         default parameters, [1, 0, 0, 1, 1], T_max = 500
    2. Zero input          empty compartments, all rates zero
    3. Logistic ceiling    no contamination, no predation, no plant mortality
    4. Contaminant balance total contaminant with input and leaching
    5. Singular state      P(0) = 0
"""

import argparse

import numpy as np

from contamination_model import COMPARTMENTS, PARAMETERS, ContaminationModel, ModelError
from contamination_results import contaminant_balance, run_pipeline
from contamination_solver import integrate


def print_separator(title: str):
    print("\n" + "=" * 70)
    print(title)
    print("=" * 70 + "\n")


def reproduce_default_run(output_root="output"):
    """Scenario 1: default parameters through the full pipeline."""
    print_separator("SCENARIO 1: DEFAULT RUN")

    result = run_pipeline(output_root=output_root, verbose=False)
    final = result['trajectory'].final_state()

    print(f"{'Compartment':<15} {'t = 0':<12} {'t = 500':<12}")
    print("-" * 40)
    initial = result['model'].initial_state
    for i, name in enumerate(COMPARTMENTS):
        print(f"{name:<15} {initial[i]:<12.4f} {final[name]:<12.4f}")
    print(f"\nIdentifier: {result['identifier']}")
    print(f"Artifacts:  {', '.join(sorted(result['artifacts']))}")
    return result


def reproduce_zero_input():
    """Scenario 2: no mass and no processes -> nothing happens."""
    print_separator("SCENARIO 2: ZERO INPUT")

    rates = {name: 0.0 for name in PARAMETERS if name != 'K'}
    model = ContaminationModel(rates, [0, 0, 0, 0, 0])
    trajectory = integrate(model, 100.0)
    max_abs = float(np.max(np.abs(trajectory.y)))
    print(f"Samples: {len(trajectory)}, max |state| = {max_abs:.3g}")
    return max_abs


def reproduce_logistic_ceiling():
    """Scenario 3: plants grow logistically towards K and never pass it."""
    print_separator("SCENARIO 3: LOGISTIC CEILING")

    model = ContaminationModel({'theta': 0.0, 'mu': 0.0, 'a': 0.0, 'm_P': 0.0})
    trajectory = integrate(model, 200.0)
    plants = trajectory['P']
    K = model.params['K']

    print(f"{'t':<8} {'P(t)':<12} {'K - P(t)':<12}")
    print("-" * 35)
    for t in (0, 10, 25, 50, 100, 200):
        print(f"{t:<8} {plants[t]:<12.5f} {K - plants[t]:<12.3g}")
    print(f"\nmax P = {plants.max():.6f} (K = {K:g})")
    return plants


def reproduce_contaminant_balance():
    """Scenario 4: contaminant mass is only created by theta and removed by mu."""
    print_separator("SCENARIO 4: CONTAMINANT BALANCE")

    print(f"{'theta':<8} {'mu':<8} {'expected':<12} {'observed':<12}")
    print("-" * 42)
    rows = []
    for theta, mu in ((0.0, 0.0), (0.01, 0.0), (0.01, 0.02)):
        model = ContaminationModel({'theta': theta, 'mu': mu})
        trajectory = integrate(model, 200.0)
        balance = contaminant_balance(model, trajectory)
        rows.append(balance)
        print(f"{theta:<8g} {mu:<8g} {balance['expected_change']:<12.5f} "
              f"{balance['observed_change']:<12.5f}")
    return rows


def reproduce_singular_state():
    """Scenario 5: integration must fail when plant biomass starts at zero."""
    print_separator("SCENARIO 5: SINGULAR STATE")

    model = ContaminationModel(None, [1, 0, 0, 0, 1])
    try:
        integrate(model, 500.0)
    except ModelError as e:
        print(f"Failed as expected: {type(e).__name__}: {e}")
        return e
    print("Integration completed - zero plant biomass was not detected")
    return None


def main():
    parser = argparse.ArgumentParser(description="Reproduce model scenarios")
    parser.add_argument("--output", default="output", help="Output root for the default run")
    args = parser.parse_args()

    reproduce_default_run(args.output)
    reproduce_zero_input()
    reproduce_logistic_ceiling()
    reproduce_contaminant_balance()
    reproduce_singular_state()

    print("\nDone!")


if __name__ == "__main__":
    main()
