"""Tests for the season-collapsed likelihood and forward-backward smoothing."""

import jax.numpy as jnp
import numpy as np
import pytest

from dynocc.models.colext import (
    ColextObjective,
    colext_negative_log_likelihood,
    colext_site_log_likelihoods,
    filter_seasons,
    posterior_occupancy,
    season_emissions,
    smoothed_occupancy,
)
from dynocc.models.hmm import (
    OccupancyObjective,
    negative_log_likelihood,
    site_log_likelihoods,
)
from tests.helpers import make_data


class TestEquivalence:
    """The season-level recursion is the occasion-level one with identities collapsed."""

    @pytest.mark.parametrize(
        "theta",
        [jnp.zeros(4), jnp.array([0.4, 0.85, -0.85, 0.0]), jnp.array([2.0, -1.0, 1.0, -2.0])],
    )
    def test_objectives_agree(self, reference_data, theta):
        hmm = OccupancyObjective(reference_data)
        colext = ColextObjective(reference_data)
        assert float(hmm(theta)) == pytest.approx(float(colext(theta)), rel=1e-10)

    def test_site_terms_agree_unbalanced_with_missing(self, params):
        data = make_data(
            [
                [0, 1, 0, -1, 0, 1],
                [0, 0, -1, 0, 0, 0],
                [1, -1, -1, -1, -1, 1],
                [-1, -1, 1, 1, 1, 0],
            ],
            surveys_per_season=[2, 3, 1],
            multiplicity=[1, 2, 0.5, 3],
        )
        np.testing.assert_allclose(
            colext_site_log_likelihoods(params, data),
            site_log_likelihoods(params, data),
            rtol=1e-12,
        )

    def test_total_nll_agrees(self, params, reference_data):
        assert colext_negative_log_likelihood(params, reference_data) == pytest.approx(
            negative_log_likelihood(params, reference_data), rel=1e-10
        )

    def test_gradients_agree(self, reference_data):
        theta = jnp.array([0.4, 0.85, -0.85, 0.0])
        _, g_hmm = OccupancyObjective(reference_data).value_and_grad(theta)
        _, g_colext = ColextObjective(reference_data).value_and_grad(theta)
        np.testing.assert_allclose(g_hmm, g_colext, rtol=1e-8, atol=1e-8)


class TestSeasonEmissions:
    def test_product_over_surveys(self, params):
        data = make_data([[1, 0, 0, 0, -1, 0]], surveys_per_season=[3, 3])
        e = np.asarray(season_emissions(params, data))
        assert e.shape == (1, 2, 2)
        np.testing.assert_allclose(e[0, 0], [0.0, 0.7 * 0.3 * 0.3])
        np.testing.assert_allclose(e[0, 1], [1.0, 0.3 * 0.3])

    def test_filtered_rows_are_distributions(self, params):
        initial = jnp.array([0.4, 0.6])
        phi = jnp.array([[0.7, 0.3], [0.5, 0.5]])
        emissions = jnp.array([[1.0, 0.027], [0.0, 0.189], [1.0, 0.027]])
        filtered, log_lik = filter_seasons(initial, phi, emissions)
        np.testing.assert_allclose(filtered.sum(axis=1), 1.0)
        assert float(filtered[1, 0]) == 0.0
        assert np.isfinite(float(log_lik))


class TestSmoothing:
    def test_detected_seasons_are_occupied(self, params, reference_data):
        post = posterior_occupancy(params, reference_data)
        detected = reference_data.season_array().max(axis=2) > 0
        assert post.shape == (reference_data.n_sites, reference_data.n_seasons)
        np.testing.assert_allclose(post[detected], 1.0)
        assert np.all((post >= 0.0) & (post <= 1.0))

    def test_undetected_site_between_naive_and_prior(self, params):
        """A never-detected site keeps some occupancy probability."""
        data = make_data([[0, 0, 0, 0, 0, 0]], surveys_per_season=[3, 3])
        post = posterior_occupancy(params, data)[0]
        assert np.all(post > 0.0)
        assert post[0] < params.psi

    def test_single_season_closed_form(self, params):
        data = make_data([[0, 0]], surveys_per_season=[2])
        post = float(posterior_occupancy(params, data)[0, 0])
        q = 0.3**2
        assert post == pytest.approx(0.6 * q / (0.6 * q + 0.4))

    def test_smoothed_occupancy_tracks_truth(self, reference_sim):
        smoothed = smoothed_occupancy(reference_sim.true_params, reference_sim.data)
        assert smoothed.shape == (10,)
        np.testing.assert_allclose(smoothed, reference_sim.true_occupancy, atol=0.08)

    def test_smoothed_weights_multiplicity(self, params):
        history = [1, 0, 0, 0]
        single = make_data([history, [0, 0, 0, 0]], [2, 2], multiplicity=[3, 1])
        expanded = make_data([history] * 3 + [[0, 0, 0, 0]], [2, 2])
        np.testing.assert_allclose(
            smoothed_occupancy(params, single), smoothed_occupancy(params, expanded)
        )

    def test_false_positive_smoothing(self, fp_sim):
        post = posterior_occupancy(fp_sim.true_params, fp_sim.data)
        certain = fp_sim.data.season_array().max(axis=2) == 2
        np.testing.assert_allclose(post[certain], 1.0)

