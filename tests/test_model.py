#!/usr/bin/env python3
"""
Unit tests for the model definition: process terms, equation assembly,
parameter validation and the compiled derivatives.

Run from the repository root:
    python -m pytest tests/test_model.py -v
"""

import sys
from pathlib import Path

import numpy as np
import pytest
import sympy as sp

_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from contamination_model import (
    COMPARTMENTS,
    INITIAL_STATE,
    PARAMETERS,
    ConfigurationError,
    ContaminationModel,
    build_system,
    process_terms,
    validate_initial_state,
    validate_parameters,
)


def reference_derivatives(params, y):
    """The five right-hand sides written out by hand."""
    c, c_p, c_h, p, h = y
    th, mu, a, eps = params['theta'], params['mu'], params['a'], params['epsilon']
    b, g, m_p, m_h = params['b'], params['gamma_H'], params['m_P'], params['m_H']
    r, K = params['r'], params['K']

    contamination = th - mu * c
    absorption = b * p * c
    growth = r * p * (1 - p / K)
    predation = a * p * h
    conversion = eps * predation
    plant_mortality = m_p * p
    herbivore_mortality = m_h * h
    contaminant_mortality = g * (c_h / h) * h

    return np.array([
        contamination - absorption + plant_mortality * (c_p / p)
        + contaminant_mortality * (c_h / h) + herbivore_mortality * (c_h / h),
        absorption - plant_mortality * (c_p / p) - predation * (c_p / p),
        predation * (c_p / p) - herbivore_mortality * (c_h / h) - contaminant_mortality * (c_h / h),
        growth - predation - plant_mortality,
        conversion - herbivore_mortality - contaminant_mortality,
    ])


# ── Process terms and assembly ───────────────────────────────────────


class TestSymbolicSystem:
    def test_eight_named_terms(self):
        names = list(process_terms())
        assert names == [
            'contamination', 'absorption', 'growth', 'predation', 'conversion',
            'plant_mortality', 'herbivore_mortality', 'contaminant_mortality',
        ]

    def test_one_equation_per_compartment(self):
        system = build_system()
        assert set(system.equations) == set(COMPARTMENTS)

    def test_ratio_factors_are_not_cancelled(self):
        """P/P and H/H must survive assembly so the division stays explicit."""
        system = build_system()
        ratios = system.equations['C_P'].atoms(sp.UnevaluatedExpr)
        assert ratios, "dC_P/dt lost its C_P/P factor"
        herbivore = system.terms['contaminant_mortality'].atoms(sp.UnevaluatedExpr)
        assert herbivore

    def test_system_has_no_parameter_values(self):
        system = build_system()
        for expr in system.equations.values():
            assert not expr.atoms(sp.Float)

    def test_latex_lines(self):
        lines = build_system().latex_lines()
        assert len(lines) == 5
        assert lines[0].startswith(r"\frac{dC}{dt} =")
        assert r"\gamma_{H}" in lines[2]


# ── Validation ───────────────────────────────────────────────────────


class TestValidation:
    def test_defaults(self):
        params = validate_parameters()
        assert params == PARAMETERS
        assert params is not PARAMETERS

    def test_unicode_aliases(self):
        params = validate_parameters({'θ': 0.5, 'γ_H': 0.1, 'ϵ': 0.3, 'μ': 0.2})
        assert params['theta'] == 0.5
        assert params['gamma_H'] == 0.1
        assert params['epsilon'] == 0.3
        assert params['mu'] == 0.2

    @pytest.mark.parametrize("params", [
        {'zeta': 1.0},
        {'a': "0.2"},
        {'a': None},
        {'a': True},
        {'b': -0.1},
        {'r': float('nan')},
        {'K': 0.0},
        [('a', 0.2)],
    ])
    def test_malformed_parameters(self, params):
        with pytest.raises(ConfigurationError):
            validate_parameters(params)

    def test_initial_state_default(self):
        np.testing.assert_array_equal(validate_initial_state(), INITIAL_STATE)

    @pytest.mark.parametrize("state", [[1, 0, 0, 1], [1, 0, 0, 1, 1, 0], [1, 0, 0, "x", 1], 5,
                                       [1, 0, 0, float('inf'), 1]])
    def test_malformed_initial_state(self, state):
        with pytest.raises(ConfigurationError):
            validate_initial_state(state)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            ContaminationModel({'a': 'fast'})


# ── Compiled derivatives ─────────────────────────────────────────────


class TestDerivatives:
    def test_matches_hand_written_equations(self):
        rng = np.random.default_rng(0)
        overrides = {'theta': 0.03, 'mu': 0.02}
        model = ContaminationModel(overrides)
        for _ in range(20):
            y = rng.uniform(0.1, 5.0, size=5)
            np.testing.assert_allclose(
                model.derivatives(0.0, y),
                reference_derivatives(model.params, y),
                rtol=1e-10, atol=1e-12,
            )

    def test_default_initial_derivatives(self):
        """[1, 0, 0, 1, 1] with defaults: only absorption moves contaminant."""
        model = ContaminationModel()
        dydt = model.derivatives(0.0, model.initial_state)
        np.testing.assert_allclose(dydt[0], -0.1)
        np.testing.assert_allclose(dydt[1], 0.1)
        np.testing.assert_allclose(dydt[2], 0.0)
        np.testing.assert_allclose(dydt[3], 0.2 * 0.9 - 0.2 - 0.08)
        np.testing.assert_allclose(dydt[4], 0.6 * 0.2 - 0.08)

    def test_zero_biomass_raises(self):
        model = ContaminationModel()
        with pytest.raises(ZeroDivisionError):
            model.derivatives(0.0, [1, 0, 0, 0, 1])

    def test_switched_off_processes_drop_ratio(self):
        """All rates zero: empty compartments are a valid fixed point."""
        rates = {name: 0.0 for name in PARAMETERS if name != 'K'}
        model = ContaminationModel(rates, [0, 0, 0, 0, 0])
        np.testing.assert_array_equal(model.derivatives(0.0, model.initial_state), np.zeros(5))

    def test_process_rates(self):
        model = ContaminationModel()
        rates = model.process_rates([1.0, 0.5, 0.2, 2.0, 0.5])
        np.testing.assert_allclose(rates['predation'], 0.2 * 2.0 * 0.5)
        np.testing.assert_allclose(rates['conversion'], 0.6 * rates['predation'])
        np.testing.assert_allclose(rates['growth'], 0.2 * 2.0 * (1 - 2.0 / 10.0))
        np.testing.assert_allclose(rates['contaminant_mortality'], 0.05 * 0.2)


# ── Mass-transfer consistency ────────────────────────────────────────


class TestContaminantTransfer:
    def test_total_contaminant_rate_is_input_minus_leaching(self):
        rng = np.random.default_rng(1)
        model = ContaminationModel({'theta': 0.05, 'mu': 0.03})
        for _ in range(20):
            y = rng.uniform(0.05, 3.0, size=5)
            dydt = model.derivatives(0.0, y)
            expected = model.params['theta'] - model.params['mu'] * y[0]
            np.testing.assert_allclose(dydt[:3].sum(), expected, rtol=1e-10, atol=1e-12)

    def test_fluxes_account_for_each_pool(self):
        model = ContaminationModel({'theta': 0.05, 'mu': 0.03})
        y = np.array([1.2, 0.4, 0.3, 2.5, 0.8])
        dydt = model.derivatives(0.0, y)
        f = model.contaminant_fluxes(y)

        soil = f['input'] - f['leaching'] - f['soil_to_plant'] + f['plant_to_soil'] + f['herbivore_to_soil']
        plant = f['soil_to_plant'] - f['plant_to_soil'] - f['plant_to_herbivore']
        herbivore = f['plant_to_herbivore'] - f['herbivore_to_soil']

        np.testing.assert_allclose(dydt[0], soil, rtol=1e-12)
        np.testing.assert_allclose(dydt[1], plant, rtol=1e-12)
        np.testing.assert_allclose(dydt[2], herbivore, rtol=1e-12)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
