"""Tests for the Bayesian fitters.

Fast tests cover the FFBS step, posterior summaries and input checks.
Sampler runs on simulated data are marked slow.
"""

import jax.numpy as jnp
import jax.random as random
import numpy as np
import pytest

from dynocc.errors import InputShapeError
from dynocc.models import fit
from dynocc.models.bayes import backward_sample, expand_sites, fit_gibbs, summarize_draws
from tests.helpers import assert_recovery_ci, make_data

NAMES = ("psi", "p", "gamma", "epsilon")

# =============================================================================
# Building blocks
# =============================================================================


class TestBackwardSample:
    def test_deterministic_filter(self):
        """Degenerate filtered rows pin the sampled path."""
        filtered = jnp.array([[0.0, 1.0], [1.0, 0.0], [0.0, 1.0]])
        phi = jnp.array([[0.7, 0.3], [0.4, 0.6]])
        z = backward_sample(random.PRNGKey(0), filtered, phi)
        np.testing.assert_array_equal(z, [1, 0, 1])

    def test_transition_constrains_earlier_state(self):
        """An identity transition copies the known last state back to earlier seasons."""
        filtered = jnp.array([[0.5, 0.5], [0.0, 1.0]])
        phi = jnp.array([[1.0, 0.0], [0.0, 1.0]])
        keys = random.split(random.PRNGKey(1), 50)
        draws = np.stack([np.asarray(backward_sample(k, filtered, phi)) for k in keys])
        np.testing.assert_array_equal(draws, np.ones((50, 2)))

    def test_single_season(self):
        z = backward_sample(random.PRNGKey(2), jnp.array([[0.0, 1.0]]), jnp.eye(2))
        np.testing.assert_array_equal(z, [1])


class TestSummaries:
    def test_summarize_draws(self):
        rng = np.random.default_rng(0)
        chains = {"psi": rng.beta(6, 4, size=(2, 500)), "p": rng.beta(70, 30, size=(2, 500))}
        result = summarize_draws("gibbs", chains, runtime_s=1.0)
        assert result.parameter_names == ("psi", "p")
        assert result.samples["psi"].shape == (1000,)
        assert result.estimates["p"] == pytest.approx(0.7, abs=0.01)
        assert result.lower["psi"] < result.estimates["psi"] < result.upper["psi"]
        assert result.diagnostics["r_hat"]["psi"] == pytest.approx(1.0, abs=0.05)
        assert result.diagnostics["n_eff"]["p"] > 500


class TestGibbsInputs:
    def test_expand_sites(self):
        data = make_data([[1, 0], [0, 0]], [1, 1], multiplicity=[2, 1])
        expanded = expand_sites(data)
        assert expanded.shape == (3, 2, 1)
        np.testing.assert_array_equal(expanded[:, :, 0], [[1, 0], [1, 0], [0, 0]])

    def test_fractional_multiplicity(self):
        data = make_data([[1, 0]], [1, 1], multiplicity=[1.5])
        with pytest.raises(InputShapeError, match="whole-number"):
            fit_gibbs(data)

    def test_false_positive_unsupported(self, fp_sim):
        with pytest.raises(NotImplementedError):
            fit(fp_sim.data, method="gibbs")

    def test_unknown_nuts_likelihood(self, two_season_data):
        with pytest.raises(ValueError, match="Unknown likelihood"):
            fit(two_season_data, method="nuts", likelihood="kalman")


# =============================================================================
# Samplers
# =============================================================================


class TestGibbs:
    @pytest.mark.slow
    @pytest.mark.timeout(300)
    def test_recovery(self, small_sim):
        result = fit(small_sim.data, method="gibbs", num_warmup=300, num_samples=600, num_chains=2)
        assert result.method == "gibbs"
        assert result.parameter_names == NAMES
        for name in NAMES:
            assert_recovery_ci(result, small_sim.true_params, name, n_se=4.0)
        assert result.samples["psi"].shape == (1200,)
        assert result.samples["occupancy"].shape == (1200, 4)
        assert max(result.diagnostics["r_hat"].values()) < 1.1

    @pytest.mark.slow
    @pytest.mark.timeout(300)
    def test_detected_states_are_occupied(self, small_sim):
        result = fit(small_sim.data, method="gibbs", num_warmup=100, num_samples=100, num_chains=1)
        z_mean = result.diagnostics["z_mean"]
        detected = small_sim.data.season_array().max(axis=2) > 0
        assert z_mean.shape == detected.shape
        np.testing.assert_allclose(z_mean[detected], 1.0)

    @pytest.mark.slow
    @pytest.mark.timeout(300)
    def test_agrees_with_mle(self, small_sim):
        mle = fit(small_sim.data, method="hmm")
        gibbs = fit(small_sim.data, method="gibbs", num_warmup=300, num_samples=600)
        for name in NAMES:
            assert gibbs.estimates[name] == pytest.approx(mle.estimates[name], abs=0.1)


class TestNUTS:
    @pytest.mark.slow
    @pytest.mark.timeout(300)
    def test_recovery(self, small_sim):
        result = fit(small_sim.data, method="nuts", num_warmup=300, num_samples=300, seed=1)
        assert result.method == "nuts"
        for name in NAMES:
            assert_recovery_ci(result, small_sim.true_params, name, n_se=4.0)
        assert result.samples["p"].shape == (300,)
        assert result.diagnostics["likelihood"] == "hmm"

    @pytest.mark.slow
    @pytest.mark.timeout(300)
    def test_colext_likelihood(self, small_sim):
        hmm = fit(small_sim.data, method="nuts", num_warmup=200, num_samples=200, seed=2)
        colext = fit(
            small_sim.data,
            method="nuts",
            num_warmup=200,
            num_samples=200,
            seed=2,
            likelihood="colext",
        )
        for name in NAMES:
            assert colext.estimates[name] == pytest.approx(hmm.estimates[name], abs=0.05)
