#!/usr/bin/env python3
"""
Contaminant Food-Chain Model - Results Pipeline
===============================================

assemble -> integrate -> derive -> persist

Runs are stored under output/<run-identifier>/ where the identifier is a
hash of the symbolic structure of the equations. Runs sharing the same
equations but different parameter values therefore share a directory and
the last one wins, unless the parameter fingerprint is requested.

Output:
    output/<identifier>/
        - model.png             (rendered equation system)
        - parameters.csv        (one row, ten parameters)
        - results_overview.png  (population, contaminant, phase portrait)
        - trajectory.csv        (time + five compartments)
        - summary.json          (run metadata)
"""

import hashlib
import json
import os
import shutil
import tempfile
from datetime import datetime
from pathlib import Path

import numpy as np
import pandas as pd
from scipy.integrate import trapezoid

from contamination_model import (
    COMPARTMENTS,
    PARAMETER_DOCS,
    PARAMETERS,
    ConfigurationError,
    ContaminationModel,
    PersistenceError,
)
from contamination_solver import SOLVER_PARAMS, T_MAX, integrate
import contamination_figures as figures

OUTPUT_ROOT = Path("output")

# Bump when the serialization format of the structure changes
FINGERPRINT_VERSION = "v1"
IDENTIFIER_LENGTH = 16

ARTIFACT_FILES = ("model.png", "parameters.csv", "results_overview.png",
                  "trajectory.csv", "summary.json")


def log(msg, verbose=True):
    """Timestamped logging."""
    if verbose:
        print(f"[{datetime.now().strftime('%H:%M:%S')}] {msg}", flush=True)


# ============================================================================
# RUN IDENTIFIER
# ============================================================================

def structure_fingerprint(system) -> str:
    """SHA-256 of the versioned structural serialization of the system."""
    text = system.serialize(FINGERPRINT_VERSION)
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def parameter_fingerprint(params, initial_state) -> str:
    """SHA-256 of parameter values and initial state (repr keeps full precision)."""
    payload = {
        'parameters': {name: repr(float(params[name])) for name in PARAMETERS},
        'initial_state': [repr(float(v)) for v in initial_state],
    }
    text = json.dumps(payload, sort_keys=True)
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def run_identifier(system, params=None, initial_state=None) -> str:
    """
    Directory name for a run.

    By default only the equation structure enters the identifier. Passing
    params and initial_state appends a fingerprint of the values so runs
    with different settings no longer overwrite each other.
    """
    identifier = structure_fingerprint(system)[:IDENTIFIER_LENGTH]
    if params is not None or initial_state is not None:
        if params is None or initial_state is None:
            raise ConfigurationError("params and initial_state must be given together")
        identifier += "-" + parameter_fingerprint(params, initial_state)[:8]
    return identifier


# ============================================================================
# ARTIFACTS
# ============================================================================

def parameters_frame(params) -> pd.DataFrame:
    return pd.DataFrame([{name: params[name] for name in PARAMETERS}], columns=list(PARAMETERS))


def trajectory_frame(trajectory) -> pd.DataFrame:
    data = {'t': trajectory.t}
    for name in COMPARTMENTS:
        data[name] = trajectory[name]
    return pd.DataFrame(data)


def contaminant_balance(model, trajectory):
    """
    Total contaminant at start and end against the change explained by
    input (theta) and leaching (mu * C), integrated with the trapezoid rule.
    """
    total = trajectory.total_contaminant()
    leached = model.params['mu'] * trapezoid(trajectory['C'], trajectory.t)
    supplied = model.params['theta'] * (trajectory.t[-1] - trajectory.t[0])
    return {
        'initial_total': float(total[0]),
        'final_total': float(total[-1]),
        'expected_change': float(supplied - leached),
        'observed_change': float(total[-1] - total[0]),
    }


def _to_builtin(obj):
    """Convert numpy types to native Python for json."""
    if isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        return float(obj)
    elif isinstance(obj, np.ndarray):
        return obj.tolist()
    elif isinstance(obj, dict):
        return {k: _to_builtin(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [_to_builtin(v) for v in obj]
    return obj


def build_summary(model, trajectory, identifier):
    return _to_builtin({
        'identifier': identifier,
        'structure_fingerprint': structure_fingerprint(model.system),
        'fingerprint_version': FINGERPRINT_VERSION,
        'parameters': model.params,
        'parameter_docs': PARAMETER_DOCS,
        'initial_state': dict(zip(COMPARTMENTS, model.initial_state)),
        't_max': trajectory.t[-1],
        'n_samples': len(trajectory),
        'solver': trajectory.stats,
        'final_state': trajectory.final_state(),
        'contaminant_balance': contaminant_balance(model, trajectory),
        'created': datetime.now().isoformat(timespec='seconds'),
    })


def build_artifacts(model, trajectory, identifier):
    """
    Render every artifact in memory.

    Returns: dict filename -> bytes. Nothing touches the filesystem here, so
    a rendering failure cannot leave a half-written run behind.
    """
    artifacts = {}
    artifacts["model.png"] = figures.figure_to_png(figures.plot_model(model.system))
    artifacts["parameters.csv"] = parameters_frame(model.params).to_csv(index=False).encode("utf-8")
    overview = figures.plot_results_overview(trajectory, title=f"Run {identifier}")
    artifacts["results_overview.png"] = figures.figure_to_png(overview)
    artifacts["trajectory.csv"] = trajectory_frame(trajectory).to_csv(index=False).encode("utf-8")
    summary = build_summary(model, trajectory, identifier)
    artifacts["summary.json"] = json.dumps(summary, indent=2).encode("utf-8")
    return artifacts


# ============================================================================
# PERSISTENCE
# ============================================================================

def persist_artifacts(artifacts, run_dir) -> dict:
    """
    Write artifacts under run_dir, creating it if needed.

    Files are written to a staging directory next to run_dir first and then
    moved into place with os.replace; an existing run keeps its files if any
    write fails.

    Returns: dict filename -> Path of the persisted file.
    """
    run_dir = Path(run_dir)
    staging = None
    try:
        run_dir.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f".{run_dir.name}-", dir=run_dir.parent))
        for name, payload in artifacts.items():
            with open(staging / name, 'wb') as f:
                f.write(payload)
        paths = {}
        for name in artifacts:
            os.replace(staging / name, run_dir / name)
            paths[name] = run_dir / name
    except OSError as e:
        raise PersistenceError(f"Could not write results to {run_dir}: {e}") from e
    finally:
        if staging is not None:
            shutil.rmtree(staging, ignore_errors=True)
    return paths


# ============================================================================
# PIPELINE
# ============================================================================

def run_pipeline(params=None, initial_state=None, t_max=T_MAX, output_root=OUTPUT_ROOT,
                 fingerprint_parameters=False, solver_params=None, verbose=True):
    """
    Assemble, integrate and persist one run.

    Returns: dict with identifier, run_dir, model, trajectory and artifact
    paths. Any ModelError propagates; no artifacts are written for a failed
    run.
    """
    model = ContaminationModel(params, initial_state)
    log(f"Model assembled: {model}", verbose)

    if fingerprint_parameters:
        identifier = run_identifier(model.system, model.params, model.initial_state)
    else:
        identifier = run_identifier(model.system)
    log(f"Run identifier: {identifier}", verbose)

    options = dict(SOLVER_PARAMS)
    options.update(solver_params or {})
    log(f"Integrating over [0, {t_max}] ({options['method']}, rtol={options['rtol']:g})", verbose)
    trajectory = integrate(model, t_max, solver_params)
    final = trajectory.final_state()
    log(f"Integration complete: {len(trajectory)} samples, "
        f"P={final['P']:.4f}, H={final['H']:.4f}", verbose)

    artifacts = build_artifacts(model, trajectory, identifier)
    run_dir = Path(output_root) / identifier
    paths = persist_artifacts(artifacts, run_dir)
    log(f"Results saved to {run_dir}", verbose)

    return {
        'identifier': identifier,
        'run_dir': run_dir,
        'model': model,
        'trajectory': trajectory,
        'artifacts': paths,
    }
