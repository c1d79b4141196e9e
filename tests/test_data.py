"""Tests for EncounterData construction, conversion and tabular I/O."""

import numpy as np
import polars as pl
import pytest

from dynocc.errors import InputShapeError
from dynocc.models.data import EncounterData
from dynocc.models.hmm import ObservationModel, OccasionStructure
from tests.helpers import make_data


class TestConstruction:
    def test_from_detection_array_is_season_major(self):
        y = np.arange(2 * 3 * 2).reshape(2, 3, 2) % 2  # (R=2, J=3, K=2)
        data = EncounterData.from_detection_array(y)
        assert data.histories.shape == (2, 6)
        for j in range(3):
            for k in range(2):
                np.testing.assert_array_equal(data.histories[:, k * 3 + j], y[:, j, k])
        assert data.structure == OccasionStructure.balanced(2, 3)

    def test_nan_becomes_missing(self):
        y = np.array([[[1.0, np.nan], [0.0, 0.0]]])  # (1, 2, 2)
        data = EncounterData.from_detection_array(y)
        np.testing.assert_array_equal(data.histories, [[1, 0, -1, 0]])

    def test_detection_array_round_trip(self, reference_sim):
        np.testing.assert_array_equal(
            reference_sim.data.detection_array(), reference_sim.detections
        )

    def test_detection_array_requires_balanced(self):
        data = make_data([[0, 1, 0]], surveys_per_season=[1, 2])
        with pytest.raises(InputShapeError, match="same number of surveys"):
            data.detection_array()

    def test_arrays_are_read_only(self, two_season_data):
        with pytest.raises(ValueError):
            two_season_data.histories[0, 0] = 1
        with pytest.raises(ValueError):
            two_season_data.multiplicity[0] = 5.0

    def test_caller_multiplicity_not_frozen(self):
        mult = np.array([1.0, 2.0])
        make_data([[0, 1], [1, 1]], [1, 1], multiplicity=mult)
        mult[0] = 3.0
        assert mult[0] == 3.0

    def test_default_multiplicity(self, two_season_data):
        np.testing.assert_array_equal(two_season_data.multiplicity, np.ones(4))
        assert two_season_data.total_sites == 4.0


class TestValidation:
    def test_code_outside_model(self):
        with pytest.raises(InputShapeError, match="not valid for the standard model"):
            make_data([[0, 2]], surveys_per_season=[2])

    def test_false_positive_accepts_confirmed(self):
        data = make_data([[0, 2, 1]], [3], model=ObservationModel.FALSE_POSITIVE)
        assert data.model.n_codes == 3

    def test_non_integer_codes(self):
        with pytest.raises(InputShapeError, match="integers"):
            make_data([[0, 0.5]], surveys_per_season=[2])

    def test_wrong_length(self):
        with pytest.raises(InputShapeError, match="History length"):
            make_data([[0, 0, 0]], surveys_per_season=[2, 2])

    def test_no_sites(self):
        with pytest.raises(InputShapeError, match="no sites"):
            EncounterData(np.zeros((0, 2)), OccasionStructure.balanced(1, 2))

    def test_one_dimensional_histories(self):
        with pytest.raises(InputShapeError, match="2-D"):
            EncounterData(np.zeros(4), OccasionStructure.balanced(2, 2))

    @pytest.mark.parametrize("mult", [[1.0], [1.0, -1.0], [1.0, np.inf], [0.0, 0.0]])
    def test_bad_multiplicity(self, mult):
        with pytest.raises(InputShapeError, match="multiplicity"):
            make_data([[0, 1], [1, 1]], [1, 1], multiplicity=mult)

    def test_detection_array_must_be_3d(self):
        with pytest.raises(InputShapeError, match="sites, surveys, seasons"):
            EncounterData.from_detection_array(np.zeros((3, 4)))


class TestSummaries:
    def test_first_detection(self, two_season_data):
        assert two_season_data.first_detection() == [None, 0, 4, 0]

    def test_naive_occupancy(self, two_season_data):
        np.testing.assert_allclose(two_season_data.naive_occupancy(), [0.5, 0.5])

    def test_aggregate_collapses_duplicates(self):
        data = make_data([[0, 1], [0, 0], [0, 1], [0, 1]], [1, 1], multiplicity=[1, 1, 2, 1])
        agg = data.aggregate()
        assert agg.n_sites == 2
        counts = {tuple(h): m for h, m in zip(agg.histories.tolist(), agg.multiplicity)}
        assert counts == {(0, 0): 1.0, (0, 1): 4.0}

    def test_season_array_pads_missing(self):
        data = make_data([[1, 0, 1]], surveys_per_season=[1, 2])
        np.testing.assert_array_equal(data.season_array(), [[[1, -1], [0, 1]]])


class TestFrames:
    def test_frame_layout(self):
        data = make_data([[1, -1, 0]], surveys_per_season=[2, 1])
        df = data.to_frame()
        assert df.columns == ["site", "season", "survey", "y", "multiplicity"]
        assert df["season"].to_list() == [0, 0, 1]
        assert df["survey"].to_list() == [0, 1, 0]
        assert df["y"].to_list() == [1, None, 0]

    def test_frame_round_trip(self):
        data = make_data(
            [[1, -1, 0, 0], [0, 0, 0, 1]], surveys_per_season=[2, 1, 1], multiplicity=[2, 1]
        )
        back = EncounterData.from_frame(data.to_frame())
        np.testing.assert_array_equal(back.histories, data.histories)
        np.testing.assert_array_equal(back.multiplicity, data.multiplicity)
        assert back.structure == data.structure

    def test_absent_rows_are_missing(self):
        df = pl.DataFrame(
            {
                "site": ["a", "a", "b"],
                "season": [0, 1, 1],
                "survey": [0, 0, 0],
                "y": [1, 0, 1],
            }
        )
        data = EncounterData.from_frame(df)
        np.testing.assert_array_equal(data.histories, [[1, 0], [-1, 1]])

    def test_missing_columns(self):
        with pytest.raises(InputShapeError, match="missing columns"):
            EncounterData.from_frame(pl.DataFrame({"site": [0], "season": [0]}))

    def test_csv_round_trip(self, tmp_path, reference_data):
        path = tmp_path / "encounters.csv"
        reference_data.write_csv(path)
        back = EncounterData.read_csv(path)
        np.testing.assert_array_equal(back.histories, reference_data.histories)
        assert back.structure == reference_data.structure
