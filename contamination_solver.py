#!/usr/bin/env python3
"""
Contaminant Food-Chain Model - Integrator
=========================================

Advances a ContaminationModel from t=0 to T_max with an adaptive explicit
Runge-Kutta solver and returns the state at every integer time unit.

Compartments are never clamped. Small negative excursions near empty
compartments are part of the solution, not something to repair here.
"""

import math
from typing import Dict, Optional

import numpy as np
from scipy.integrate import solve_ivp

from contamination_model import (
    BIOMASS_COMPARTMENTS,
    COMPARTMENTS,
    CONTAMINANT_COMPARTMENTS,
    ConfigurationError,
    NumericalInstabilityError,
    SingularStateError,
)

# ============================================================================
# SOLVER CONFIGURATION
# ============================================================================

T_MAX = 500.0

SOLVER_PARAMS = {
    'method': 'RK45',   # Adaptive explicit Dormand-Prince
    'rtol': 1e-6,
    'atol': 1e-9,
}


def sample_times(t_max: float) -> np.ndarray:
    """Uniform grid 0, 1, ..., floor(t_max)."""
    if not isinstance(t_max, (int, float)) or isinstance(t_max, bool):
        raise ConfigurationError(f"T_max must be a number, got {t_max!r}")
    if not math.isfinite(t_max) or t_max <= 0:
        raise ConfigurationError(f"T_max must be finite and positive, got {t_max}")
    return np.arange(0, math.floor(t_max) + 1, dtype=float)


# ============================================================================
# TRAJECTORY
# ============================================================================

class Trajectory:
    """
    Sampled solution: t has shape (n,), y has shape (5, n) in compartment
    order [C, C_P, C_H, P, H].
    """

    def __init__(self, t, y, stats=None):
        self.t = np.asarray(t, dtype=float)
        self.y = np.asarray(y, dtype=float)
        self.stats = dict(stats or {})
        self.t.setflags(write=False)
        self.y.setflags(write=False)

    def __len__(self):
        return len(self.t)

    def __getitem__(self, name) -> np.ndarray:
        if name == 't':
            return self.t
        try:
            return self.y[COMPARTMENTS.index(name)]
        except ValueError:
            raise KeyError(f"Unknown compartment: {name}. Choose from {list(COMPARTMENTS)}")

    def state_at(self, index: int) -> Dict[str, float]:
        return {name: float(self.y[i, index]) for i, name in enumerate(COMPARTMENTS)}

    def final_state(self) -> Dict[str, float]:
        return self.state_at(-1)

    def total_contaminant(self) -> np.ndarray:
        return sum(self[name] for name in CONTAMINANT_COMPARTMENTS)

    def total_biomass(self) -> np.ndarray:
        return sum(self[name] for name in BIOMASS_COMPARTMENTS)

    def __repr__(self):
        return f"Trajectory(samples={len(self)}, t=[{self.t[0]:g}, {self.t[-1]:g}])"


# ============================================================================
# INTEGRATION
# ============================================================================

def integrate(model, t_max: float = T_MAX, solver_params: Optional[Dict] = None) -> Trajectory:
    """
    Integrate model.derivatives from model.initial_state over [0, t_max].

    Args:
        model: ContaminationModel (anything with derivatives(t, y) and
               initial_state)
        t_max: Final time; samples are taken at every integer in [0, t_max]
        solver_params: Overrides for SOLVER_PARAMS (method, rtol, atol, ...)

    Returns: Trajectory with floor(t_max) + 1 samples.

    Raises:
        SingularStateError: a concentration ratio hit zero biomass
        NumericalInstabilityError: non-finite derivative or solver failure
    """
    t_eval = sample_times(t_max)
    options = dict(SOLVER_PARAMS)
    options.update(solver_params or {})

    def rhs(t, y):
        try:
            dydt = model.derivatives(t, y)
        except ZeroDivisionError:
            empty = [name for name, value in zip(COMPARTMENTS, y)
                     if name in BIOMASS_COMPARTMENTS and value == 0]
            raise SingularStateError(t, empty) from None
        except OverflowError as e:
            raise NumericalInstabilityError(t, f"overflow in derivative ({e})") from None
        if not np.all(np.isfinite(dydt)):
            raise NumericalInstabilityError(t, "non-finite derivative")
        return dydt

    sol = solve_ivp(rhs, (0.0, float(t_max)), model.initial_state,
                    t_eval=t_eval, **options)

    if not sol.success:
        reached = float(sol.t[-1]) if len(sol.t) else 0.0
        raise NumericalInstabilityError(reached, sol.message)
    if len(sol.t) != len(t_eval) or not np.all(np.isfinite(sol.y)):
        reached = float(sol.t[-1]) if len(sol.t) else 0.0
        raise NumericalInstabilityError(reached, "solution does not cover the sampling grid")

    stats = {
        'method': options['method'],
        'rtol': options.get('rtol'),
        'atol': options.get('atol'),
        'nfev': int(sol.nfev),
        'message': sol.message,
    }
    # Grid points are returned exactly as requested
    return Trajectory(t_eval, sol.y, stats)
