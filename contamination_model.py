#!/usr/bin/env python3
"""
Contaminant Food-Chain Model - Model Definition
================================================

Five compartments coupled by growth, predation, absorption and mortality:

    C    contaminant in the soil
    C_P  contaminant stored in plant biomass
    C_H  contaminant stored in herbivore biomass
    P    plant biomass
    H    herbivore biomass

Process terms are built once as sympy expressions and combined into the five
right-hand sides. Contaminant leaves the plant and herbivore pools in
proportion to the biomass flux it is dissolved in (C_P/P, C_H/H), so the
transfers between soil, plants and herbivores conserve contaminant mass.

The symbolic system carries no parameter values. ContaminationModel binds a
parameter set and an initial state, then compiles the right-hand sides into
plain-float Python with sympy.lambdify.

Usage:
    from contamination_model import ContaminationModel
    model = ContaminationModel({'b': 0.2})
    dydt = model.derivatives(0.0, model.initial_state)
"""

import math
import numbers
from typing import Dict, List, Optional

import numpy as np
import sympy as sp

# ============================================================================
# COMPARTMENTS AND PARAMETERS
# ============================================================================

COMPARTMENTS = ("C", "C_P", "C_H", "P", "H")
BIOMASS_COMPARTMENTS = ("P", "H")
CONTAMINANT_COMPARTMENTS = ("C", "C_P", "C_H")

PARAMETERS = {
    'theta': 0.0,       # Contaminant input rate
    'mu': 0.0,          # Contaminant leaching rate
    'a': 0.2,           # Attack rate
    'epsilon': 0.6,     # Biomass conversion efficiency (0 <= epsilon <= 1)
    'b': 0.1,           # Contaminant absorption rate by plants
    'gamma_H': 0.05,    # Contaminant-induced herbivore mortality
    'm_P': 0.08,        # Natural plant mortality
    'm_H': 0.08,        # Natural herbivore mortality
    'r': 0.2,           # Plant growth rate
    'K': 10.0,          # Plant carrying capacity
}

PARAMETER_DOCS = {
    'theta': "contaminant input rate",
    'mu': "contaminant leaching rate",
    'a': "attack rate of herbivores on plants",
    'epsilon': "conversion efficiency of eaten plant biomass",
    'b': "contaminant absorption rate by plants",
    'gamma_H': "herbivore mortality caused by stored contaminant",
    'm_P': "natural plant mortality",
    'm_H': "natural herbivore mortality",
    'r': "plant growth rate",
    'K': "plant carrying capacity",
}

PARAMETER_ALIASES = {
    'θ': 'theta',
    'μ': 'mu',
    'ϵ': 'epsilon',
    'ε': 'epsilon',
    'γ_H': 'gamma_H',
}

# [C(0), C_P(0), C_H(0), P(0), H(0)]
INITIAL_STATE = (1.0, 0.0, 0.0, 1.0, 1.0)

# Symbols
STATE_SYMBOLS = sp.symbols("C C_P C_H P H")
C, C_P, C_H, P, H = STATE_SYMBOLS
PARAMETER_SYMBOLS = {name: sp.Symbol(name) for name in PARAMETERS}


# ============================================================================
# ERRORS
# ============================================================================

class ModelError(Exception):
    """Base class for every failure of a simulation run."""


class ConfigurationError(ModelError, ValueError):
    """Malformed parameter set, initial state or horizon."""


class SingularStateError(ModelError):
    """A concentration ratio was evaluated while its biomass was zero."""

    def __init__(self, t, compartments=()):
        self.t = t
        self.compartments = tuple(compartments)
        where = ", ".join(f"{name}=0" for name in self.compartments) or "zero biomass"
        super().__init__(f"singular state at t={t:g} ({where})")


class NumericalInstabilityError(ModelError):
    """The solver produced non-finite values or could not meet its tolerance."""

    def __init__(self, t, reason):
        self.t = t
        self.reason = reason
        super().__init__(f"integration failed after t={t:g}: {reason}")


class PersistenceError(ModelError, OSError):
    """Artifacts could not be written to the results location."""


# ============================================================================
# SYMBOLIC SYSTEM
# ============================================================================

def concentration(mass, biomass):
    """
    Contaminant carried per unit of biomass.

    Kept unevaluated so sympy never cancels the biomass against the flux it
    multiplies; the compiled code divides explicitly.
    """
    return sp.UnevaluatedExpr(mass / biomass)


def process_terms() -> Dict[str, sp.Expr]:
    """The eight named processes, in a fixed order."""
    s = PARAMETER_SYMBOLS
    predation = s['a'] * P * H
    return {
        'contamination': s['theta'] - s['mu'] * C,
        'absorption': s['b'] * P * C,
        'growth': s['r'] * P * (1 - P / s['K']),
        'predation': predation,
        'conversion': s['epsilon'] * predation,
        'plant_mortality': s['m_P'] * P,
        'herbivore_mortality': s['m_H'] * H,
        'contaminant_mortality': s['gamma_H'] * concentration(C_H, H) * H,
    }


class ModelSystem:
    """
    Process terms plus the five right-hand sides, free of parameter values.

    equations maps a compartment name to the expression of its time
    derivative.
    """

    def __init__(self, terms, equations):
        self.terms = dict(terms)
        self.equations = dict(equations)
        missing = [name for name in COMPARTMENTS if name not in self.equations]
        if missing:
            raise ConfigurationError(f"Missing equations for compartments: {missing}")

    def serialize(self, version: str) -> str:
        """Canonical text form of the structure (srepr, fixed ordering)."""
        lines = [f"contamination-model/{version}"]
        for name in sorted(self.terms):
            lines.append(f"term {name} = {sp.srepr(self.terms[name])}")
        for name in COMPARTMENTS:
            lines.append(f"d{name}/dt = {sp.srepr(self.equations[name])}")
        return "\n".join(lines)

    def latex_lines(self) -> List[str]:
        lines = []
        for name in COMPARTMENTS:
            lhs = r"\frac{d%s}{dt}" % sp.latex(sp.Symbol(name))
            lines.append(f"{lhs} = {sp.latex(self.equations[name])}")
        return lines

    def __repr__(self):
        return f"ModelSystem(terms={list(self.terms)}, compartments={list(COMPARTMENTS)})"


def build_system() -> ModelSystem:
    """Assemble the five coupled equations from the process terms."""
    terms = process_terms()
    plant_ratio = concentration(C_P, P)
    herbivore_ratio = concentration(C_H, H)

    equations = {
        # Soil: input/leaching, uptake by plants, return through mortality
        'C': (terms['contamination']
              - terms['absorption']
              + terms['plant_mortality'] * plant_ratio
              + terms['contaminant_mortality'] * herbivore_ratio
              + terms['herbivore_mortality'] * herbivore_ratio),
        # Plants: uptake, loss with dead and eaten biomass
        'C_P': (terms['absorption']
                - terms['plant_mortality'] * plant_ratio
                - terms['predation'] * plant_ratio),
        # Herbivores: intake with eaten plants, loss with dead biomass
        'C_H': (terms['predation'] * plant_ratio
                - terms['herbivore_mortality'] * herbivore_ratio
                - terms['contaminant_mortality'] * herbivore_ratio),
        'P': terms['growth'] - terms['predation'] - terms['plant_mortality'],
        'H': (terms['conversion']
              - terms['herbivore_mortality']
              - terms['contaminant_mortality']),
    }
    return ModelSystem(terms, equations)


# ============================================================================
# VALIDATION
# ============================================================================

def _is_number(value):
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def validate_parameters(params: Optional[Dict] = None) -> Dict[str, float]:
    """
    Merge overrides into the defaults and check every value.

    Args:
        params: Mapping of parameter name (ASCII or unicode alias) to value.
                Missing names keep their default.

    Returns: a new dict with all ten parameters as floats.
    """
    resolved = dict(PARAMETERS)
    if params is None:
        return resolved
    if not hasattr(params, 'items'):
        raise ConfigurationError(
            f"Parameters must be a mapping of name to value, got {type(params).__name__}")

    for key, value in params.items():
        name = PARAMETER_ALIASES.get(key, key)
        if name not in PARAMETERS:
            raise ConfigurationError(
                f"Unknown parameter: {key}. Choose from {list(PARAMETERS.keys())}")
        if not _is_number(value):
            raise ConfigurationError(f"Parameter {name} must be a real number, got {value!r}")
        value = float(value)
        if not math.isfinite(value) or value < 0:
            raise ConfigurationError(f"Parameter {name} must be finite and non-negative, got {value}")
        resolved[name] = value

    if resolved['K'] == 0:
        raise ConfigurationError("Carrying capacity K must be positive")
    return resolved


def validate_initial_state(initial_state=None) -> np.ndarray:
    """Return the initial compartment vector as a float array of length 5."""
    if initial_state is None:
        return np.array(INITIAL_STATE, dtype=float)
    try:
        values = list(initial_state)
    except TypeError:
        raise ConfigurationError(
            f"Initial state must be a sequence of {len(COMPARTMENTS)} numbers, got {initial_state!r}")
    if len(values) != len(COMPARTMENTS):
        raise ConfigurationError(
            f"Initial state needs {len(COMPARTMENTS)} values {list(COMPARTMENTS)}, got {len(values)}")
    for name, value in zip(COMPARTMENTS, values):
        if not _is_number(value) or not math.isfinite(value):
            raise ConfigurationError(f"Initial value of {name} must be a finite number, got {value!r}")
    return np.array(values, dtype=float)


# ============================================================================
# COMPILED MODEL
# ============================================================================

class ContaminationModel:
    """
    A parameterized, compiled instance of the food-chain system.

    Parameters are substituted before compilation: a process whose rate
    constant is zero drops out of the equations together with its
    concentration ratio. The compiled functions take plain floats, so a
    ratio evaluated at zero biomass raises ZeroDivisionError.
    """

    def __init__(self, params=None, initial_state=None, system=None):
        self.params = validate_parameters(params)
        self.initial_state = validate_initial_state(initial_state)
        self.system = system if system is not None else build_system()

        values = {}
        for name, value in self.params.items():
            values[PARAMETER_SYMBOLS[name]] = sp.Integer(0) if value == 0 else sp.Float(value)

        rhs = [self.system.equations[name].subs(values) for name in COMPARTMENTS]
        self._rhs = sp.lambdify(STATE_SYMBOLS, rhs, modules="math")

        self.term_names = list(self.system.terms)
        terms = [self.system.terms[name].subs(values) for name in self.term_names]
        self._terms = sp.lambdify(STATE_SYMBOLS, terms, modules="math")

    def derivatives(self, t, y):
        """dy/dt for state y = [C, C_P, C_H, P, H]. Autonomous: t is unused."""
        state = [float(v) for v in y]
        return np.array(self._rhs(*state), dtype=float)

    def process_rates(self, y) -> Dict[str, float]:
        """Numeric value of every process term at state y."""
        state = [float(v) for v in y]
        return dict(zip(self.term_names, (float(v) for v in self._terms(*state))))

    def contaminant_fluxes(self, y) -> Dict[str, float]:
        """
        Contaminant moved between pools per unit time at state y.

        Every transfer leaves one pool and enters another, so
        dC + dC_P + dC_H == input - leaching.
        """
        rates = self.process_rates(y)
        c, c_p, c_h, p, h = (float(v) for v in y)
        fluxes = {
            'input': self.params['theta'],
            'leaching': self.params['mu'] * c,
            'soil_to_plant': rates['absorption'],
            'plant_to_soil': 0.0,
            'plant_to_herbivore': 0.0,
            'herbivore_to_soil': 0.0,
        }
        # Switched-off processes carry nothing, matching the compiled equations
        if self.params['m_P']:
            fluxes['plant_to_soil'] = rates['plant_mortality'] * (c_p / p)
        if self.params['a']:
            fluxes['plant_to_herbivore'] = rates['predation'] * (c_p / p)
        if self.params['m_H']:
            fluxes['herbivore_to_soil'] += rates['herbivore_mortality'] * (c_h / h)
        if self.params['gamma_H']:
            fluxes['herbivore_to_soil'] += rates['contaminant_mortality'] * (c_h / h)
        return fluxes

    def __repr__(self):
        params = ", ".join(f"{k}={v:g}" for k, v in self.params.items())
        return f"ContaminationModel({params})"
