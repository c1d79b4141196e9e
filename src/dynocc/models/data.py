"""Encounter-history containers for dynamic occupancy data.

Histories are stored as an (R, N) integer matrix of EventCode values with
occasions ordered season-major (occasion = season * J + survey for balanced
designs). The simulator's (R, J, K) detection array and a long-format
polars table are the two interchange formats.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import polars as pl

from dynocc.errors import InputShapeError
from dynocc.models.hmm.base import (
    EventCode,
    ObservationModel,
    OccasionStructure,
    first_detection,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class EncounterData:
    """Site histories with their occasion structure.

    Attributes:
        histories: (R, N) EventCode values, -1 for missing surveys
        structure: season assignment of the N occasions
        model: observation model the codes belong to
        multiplicity: (R,) number of sites sharing each history
    """

    histories: np.ndarray
    structure: OccasionStructure
    model: ObservationModel = ObservationModel.STANDARD
    multiplicity: np.ndarray | None = field(default=None)

    def __post_init__(self):
        histories = np.asarray(self.histories)
        if histories.ndim != 2:
            raise InputShapeError(f"histories must be 2-D (sites, occasions), got {histories.shape}")
        if histories.shape[0] == 0:
            raise InputShapeError("Encounter data contains no sites")
        if histories.shape[1] != self.structure.n_occasions:
            raise InputShapeError(
                f"History length {histories.shape[1]} != N = {self.structure.n_occasions} "
                "occasions in the occasion structure"
            )
        if not np.all(np.isfinite(histories)) or not np.all(histories == np.round(histories)):
            raise InputShapeError("Event codes must be integers (use -1 for missing surveys)")
        histories = histories.astype(np.int32)
        valid = (histories >= EventCode.MISSING) & (histories < self.model.n_codes)
        if not np.all(valid):
            bad = sorted(set(histories[~valid].tolist()))
            raise InputShapeError(
                f"Event codes {bad} are not valid for the {self.model.value} model "
                f"(allowed: -1..{self.model.n_codes - 1})"
            )

        if self.multiplicity is None:
            multiplicity = np.ones(histories.shape[0])
        else:
            multiplicity = np.array(self.multiplicity, dtype=float)
        if multiplicity.shape != (histories.shape[0],):
            raise InputShapeError(
                f"multiplicity must have shape ({histories.shape[0]},), got {multiplicity.shape}"
            )
        if not np.all(np.isfinite(multiplicity)) or np.any(multiplicity < 0):
            raise InputShapeError("multiplicity must be finite and non-negative")
        if multiplicity.sum() <= 0:
            raise InputShapeError("multiplicity must represent at least one site")

        histories.setflags(write=False)
        multiplicity.setflags(write=False)
        object.__setattr__(self, "histories", histories)
        object.__setattr__(self, "multiplicity", multiplicity)

    # ──────────────────────────────────────────────────────────────────────────
    # Shape
    # ──────────────────────────────────────────────────────────────────────────

    @property
    def n_sites(self) -> int:
        return self.histories.shape[0]

    @property
    def n_occasions(self) -> int:
        return self.structure.n_occasions

    @property
    def n_seasons(self) -> int:
        return self.structure.n_seasons

    @property
    def total_sites(self) -> float:
        """Number of sites represented, counting multiplicities."""
        return float(self.multiplicity.sum())

    # ──────────────────────────────────────────────────────────────────────────
    # Conversions
    # ──────────────────────────────────────────────────────────────────────────

    @classmethod
    def from_detection_array(
        cls,
        detections,
        model: ObservationModel = ObservationModel.STANDARD,
        multiplicity=None,
    ) -> EncounterData:
        """Build from an (R, J, K) array of codes (NaN for missing surveys)."""
        y = np.asarray(detections, dtype=float)
        if y.ndim != 3:
            raise InputShapeError(f"Detection array must be (sites, surveys, seasons), got {y.shape}")
        n_sites, n_surveys, n_seasons = y.shape
        y = np.where(np.isnan(y), float(EventCode.MISSING), y)
        histories = y.transpose(0, 2, 1).reshape(n_sites, n_seasons * n_surveys)
        return cls(
            histories=histories,
            structure=OccasionStructure.balanced(n_seasons, n_surveys),
            model=model,
            multiplicity=multiplicity,
        )

    def detection_array(self) -> np.ndarray:
        """(R, J, K) float array with NaN for missing surveys (balanced designs)."""
        if not self.structure.is_balanced:
            raise InputShapeError("detection_array() requires the same number of surveys per season")
        n_surveys = self.structure.surveys_per_season[0]
        y = self.histories.reshape(self.n_sites, self.n_seasons, n_surveys).transpose(0, 2, 1)
        return np.where(y < 0, np.nan, y.astype(float))

    def season_array(self) -> np.ndarray:
        """(R, K, Jmax) codes per season, padded with MISSING."""
        j_max = max(self.structure.surveys_per_season)
        out = np.full((self.n_sites, self.n_seasons, j_max), int(EventCode.MISSING), dtype=np.int32)
        for k, sl in enumerate(self.structure.season_slices()):
            out[:, k, : sl.stop - sl.start] = self.histories[:, sl]
        return out

    def first_detection(self) -> list[int | None]:
        """Occasion of first detection for each site (None = never detected)."""
        return [first_detection(h) for h in self.histories]

    def aggregate(self) -> EncounterData:
        """Collapse identical histories into one row with summed multiplicity."""
        unique, inverse = np.unique(self.histories, axis=0, return_inverse=True)
        counts = np.bincount(inverse.reshape(-1), weights=self.multiplicity, minlength=len(unique))
        logger.debug("Aggregated %d histories into %d unique rows", self.n_sites, len(unique))
        return EncounterData(
            histories=unique,
            structure=self.structure,
            model=self.model,
            multiplicity=counts,
        )

    def naive_occupancy(self) -> np.ndarray:
        """Fraction of sites with at least one detection, per season."""
        detected = np.stack(
            [np.any(self.histories[:, sl] > 0, axis=1) for sl in self.structure.season_slices()],
            axis=1,
        )
        weights = self.multiplicity[:, None]
        return (detected * weights).sum(axis=0) / weights.sum()

    # ──────────────────────────────────────────────────────────────────────────
    # Tabular I/O
    # ──────────────────────────────────────────────────────────────────────────

    def to_frame(self) -> pl.DataFrame:
        """Long-format table: one row per site × occasion, null y for missing."""
        seasons = np.asarray(self.structure.season_of_occasion)
        starts = np.concatenate([[0], np.cumsum(self.structure.surveys_per_season)[:-1]])
        surveys = np.arange(self.n_occasions) - starts[seasons]
        y = self.histories.reshape(-1)
        return pl.DataFrame(
            {
                "site": np.repeat(np.arange(self.n_sites), self.n_occasions),
                "season": np.tile(seasons, self.n_sites),
                "survey": np.tile(surveys, self.n_sites),
                "y": pl.Series([None if v < 0 else int(v) for v in y], dtype=pl.Int32),
                "multiplicity": np.repeat(self.multiplicity, self.n_occasions),
            }
        )

    @classmethod
    def from_frame(
        cls, df: pl.DataFrame, model: ObservationModel = ObservationModel.STANDARD
    ) -> EncounterData:
        """Inverse of to_frame(). Absent or null rows become MISSING.

        The number of surveys in a season is the largest survey index seen for
        that season across all sites, plus one.
        """
        missing_cols = [c for c in ("site", "season", "survey", "y") if c not in df.columns]
        if missing_cols:
            raise InputShapeError(f"Encounter table is missing columns {missing_cols}")

        site_ids = df["site"].unique().sort().to_list()
        site_index = {s: i for i, s in enumerate(site_ids)}
        per_season = (
            df.group_by("season").agg((pl.col("survey").max() + 1).alias("n")).sort("season")
        )
        seasons = per_season["season"].to_list()
        if seasons != list(range(len(seasons))):
            raise InputShapeError(f"Seasons must be numbered 0..K-1, got {seasons}")
        structure = OccasionStructure.from_surveys(per_season["n"].to_list())
        offsets = np.concatenate([[0], np.cumsum(structure.surveys_per_season)[:-1]])

        histories = np.full((len(site_ids), structure.n_occasions), int(EventCode.MISSING))
        rows = df.select("site", "season", "survey", "y").rows()
        for site, season, survey, y in rows:
            if y is not None:
                histories[site_index[site], offsets[season] + survey] = int(y)

        multiplicity = None
        if "multiplicity" in df.columns:
            per_site = df.group_by("site").agg(pl.col("multiplicity").first()).sort("site")
            multiplicity = per_site["multiplicity"].to_numpy()

        return cls(histories=histories, structure=structure, model=model, multiplicity=multiplicity)

    def write_csv(self, path: Path | str) -> None:
        self.to_frame().write_csv(path)

    @classmethod
    def read_csv(
        cls, path: Path | str, model: ObservationModel = ObservationModel.STANDARD
    ) -> EncounterData:
        return cls.from_frame(pl.read_csv(path), model=model)
