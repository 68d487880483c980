"""Feature model and the queryable feature collection of a run.

A feature is a charge-resolved, isotope-deconvolved species: a cluster of
peakels whose centroids form a C13 ladder at one charge and whose elution
ranges overlap. A ``FeatureField`` holds every feature of one detection run,
sorted by monoisotopic m/z, and answers m/z and retention-time range queries
with binary search on the m/z axis.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

import numpy as np

from ..peakels.peakel import Peakel


@dataclass(frozen=True)
class Feature:
    """A charge-resolved isotope envelope of peakels."""

    charge: int
    monoisotopic_mz: float
    monoisotopic_mass: float  # neutral, Da
    retention_time_range: Tuple[float, float]
    total_abundance: float
    peakels: Tuple[Peakel, ...]  # M0 first

    # Quality metrics
    apex_retention_time: float = 0.0
    mz_error_ppm: float = 0.0  # mean |residual| of members vs ideal ladder
    score: float = 0.0         # co-elution similarity, 0-1

    @property
    def n_isotopes(self) -> int:
        return len(self.peakels)

    @property
    def peakel_ids(self) -> Tuple[int, ...]:
        return tuple(p.id for p in self.peakels)


FEATURE_RECORD_DTYPE = [
    ('mz', 'f8'),
    ('mass', 'f8'),
    ('charge', 'i4'),
    ('rt_start', 'f8'),
    ('rt_end', 'f8'),
    ('rt_apex', 'f8'),
    ('abundance', 'f8'),
    ('n_isotopes', 'i4'),
    ('mz_error_ppm', 'f8'),
    ('score', 'f8'),
]


class FeatureField:
    """Immutable collection of the features detected in one run.

    Iteration order is ascending monoisotopic m/z, then retention-time start,
    then charge, and is stable for a given run.

    Examples
    --------
    >>> field = detector.detect(run)
    >>> len(field)
    1532
    >>> field.query(rt_range=(600.0, 660.0), mz_range=(500.0, 510.0))
    """

    def __init__(self, features: Iterable[Feature] = ()):
        ordered = sorted(
            features,
            key=lambda f: (f.monoisotopic_mz, f.retention_time_range[0], f.charge),
        )
        self._features: Tuple[Feature, ...] = tuple(ordered)

        self._mz = np.array([f.monoisotopic_mz for f in ordered], dtype=np.float64)
        self._rt_start = np.array([f.retention_time_range[0] for f in ordered], dtype=np.float64)
        self._rt_end = np.array([f.retention_time_range[1] for f in ordered], dtype=np.float64)
        for array in (self._mz, self._rt_start, self._rt_end):
            array.flags.writeable = False

    def __len__(self) -> int:
        return len(self._features)

    def __iter__(self) -> Iterator[Feature]:
        return iter(self._features)

    def __getitem__(self, index: int) -> Feature:
        return self._features[index]

    def __repr__(self) -> str:
        return f"FeatureField(n_features={len(self)})"

    @property
    def features(self) -> Tuple[Feature, ...]:
        return self._features

    def query(
        self,
        rt_range: Optional[Tuple[float, float]] = None,
        mz_range: Optional[Tuple[float, float]] = None,
    ) -> List[Feature]:
        """Features inside an m/z interval and/or overlapping an RT interval.

        Parameters
        ----------
        rt_range : (float, float), optional
            Retention-time interval (inclusive); a feature matches if its RT
            range overlaps it
        mz_range : (float, float), optional
            Monoisotopic m/z interval (inclusive)

        Returns
        -------
        List[Feature]
            Matching features in field order
        """
        start, end = 0, len(self._features)

        if mz_range is not None:
            mz_low, mz_high = mz_range
            if mz_low > mz_high:
                raise ValueError(f"Empty m/z range: {mz_range}")
            start = int(np.searchsorted(self._mz, mz_low, side='left'))
            end = int(np.searchsorted(self._mz, mz_high, side='right'))

        if rt_range is None:
            return list(self._features[start:end])

        rt_low, rt_high = rt_range
        if rt_low > rt_high:
            raise ValueError(f"Empty retention time range: {rt_range}")

        mask = (self._rt_start[start:end] <= rt_high) & (self._rt_end[start:end] >= rt_low)
        return [self._features[start + i] for i in np.flatnonzero(mask)]

    def to_records(self) -> np.ndarray:
        """Features as a numpy structured array (one row per feature)."""
        records = np.zeros(len(self._features), dtype=FEATURE_RECORD_DTYPE)
        for i, feature in enumerate(self._features):
            records[i] = (
                feature.monoisotopic_mz,
                feature.monoisotopic_mass,
                feature.charge,
                feature.retention_time_range[0],
                feature.retention_time_range[1],
                feature.apex_retention_time,
                feature.total_abundance,
                feature.n_isotopes,
                feature.mz_error_ppm,
                feature.score,
            )
        return records
