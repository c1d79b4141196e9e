"""Minimal test suite - verify code interprets correctly."""

import jax.numpy as jnp


def test_import_package():
    import dynocc
    from dynocc import InputShapeError, NumericalDegeneracyError, ParameterDomainError

    assert issubclass(ParameterDomainError, dynocc.DynoccError)
    assert issubclass(InputShapeError, ValueError)
    assert issubclass(NumericalDegeneracyError, ArithmeticError)


def test_x64_enabled():
    import dynocc  # noqa: F401

    assert jnp.zeros(1).dtype == jnp.float64


def test_import_models():
    from dynocc.models import EncounterData, FitResult, fit, simulate

    assert callable(fit)
    assert callable(simulate)
    assert EncounterData.__name__ == "EncounterData"
    assert FitResult.__name__ == "FitResult"


def test_import_samplers():
    from dynocc.models.bayes import fit_gibbs, fit_nuts
    from dynocc.models.mle import fit_mle

    assert callable(fit_gibbs)
    assert callable(fit_nuts)
    assert callable(fit_mle)


def test_import_benchmarks():
    from benchmarks.problems import ALL_PROBLEMS

    assert "reference" in ALL_PROBLEMS
    assert "low_detection" in ALL_PROBLEMS


def test_degeneracy_error_message():
    from dynocc.errors import NumericalDegeneracyError

    err = NumericalDegeneracyError(list(range(12)))
    assert err.sites == list(range(12))
    assert "12 site(s)" in str(err)
    assert "(+2 more)" in str(err)
