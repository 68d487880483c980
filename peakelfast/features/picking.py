"""Peakel picking: grouping peakels into charge-resolved isotope envelopes.

Seeds are visited from the most intense peakel down. For every trial charge
an envelope is walked from the seed towards lower and then higher isotopes,
each step taking the unclaimed peakel closest to the expected m/z
(``seed_mz + k * 1.0033548 / z``) that co-elutes with every member taken so
far, so all members of a feature overlap pairwise in retention time. The best
envelope of a seed has the most members, then the lowest m/z residual, then
the lowest charge. Accepted members are claimed, so no peakel ends up in two
features.

Ties are broken by ascending m/z and then ascending first scan, so output is
deterministic for a given peakel set.

Examples
--------
>>> picker = IsotopePeakelPicker(PeakelPickingParams(min_charge=1, max_charge=4))
>>> field = picker.pick(peakels)
>>> [(f.charge, round(f.monoisotopic_mass, 3)) for f in field]
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple

import numpy as np

from ..constants import (
    DEFAULT_ISOTOPE_TOLERANCE,
    DEFAULT_MAX_CHARGE,
    DEFAULT_MAX_ISOTOPES,
    DEFAULT_MIN_CHARGE,
    InstrumentType,
    isotope_spacing,
    neutral_mass,
)
from ..exceptions import ConfigurationError, DetectionCancelled
from ..peakels.peakel import Peakel
from .feature import Feature, FeatureField
from .scoring import coelution_score, envelope_residual_ppm

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeakelPickingParams:
    """Parameters for isotope envelope assembly.

    Uses ppm-based tolerances for instrument-independent parameters.
    """

    # Charge states tried for every seed
    min_charge: int = DEFAULT_MIN_CHARGE
    max_charge: int = DEFAULT_MAX_CHARGE

    # Isotope spacing tolerance (ppm)
    isotope_tolerance_ppm: float = DEFAULT_ISOTOPE_TOLERANCE

    # Envelope size
    min_peakel_count: int = 2
    max_isotopes: int = DEFAULT_MAX_ISOTOPES

    # Co-elution: overlap as fraction of the shorter trace (0 = any overlap)
    min_rt_overlap: float = 0.0

    # Quality filter on summed member intensity
    min_abundance: float = 0.0

    # Accept single-peakel features (assigned min_charge)
    allow_singletons: bool = False

    def __post_init__(self):
        if self.min_charge < 1:
            raise ConfigurationError(f"min_charge must be >= 1, got {self.min_charge}")
        if self.max_charge < self.min_charge:
            raise ConfigurationError(
                f"Empty charge range: min_charge={self.min_charge}, max_charge={self.max_charge}"
            )
        if not np.isfinite(self.isotope_tolerance_ppm) or self.isotope_tolerance_ppm <= 0:
            raise ConfigurationError(
                f"isotope_tolerance_ppm must be > 0, got {self.isotope_tolerance_ppm}"
            )
        if self.min_peakel_count < 1:
            raise ConfigurationError(
                f"min_peakel_count must be >= 1, got {self.min_peakel_count}"
            )
        if self.max_isotopes < self.min_peakel_count:
            raise ConfigurationError(
                f"max_isotopes ({self.max_isotopes}) is below "
                f"min_peakel_count ({self.min_peakel_count})"
            )
        if not 0.0 <= self.min_rt_overlap <= 1.0:
            raise ConfigurationError(
                f"min_rt_overlap must be within [0, 1], got {self.min_rt_overlap}"
            )
        if self.min_abundance < 0:
            raise ConfigurationError(f"min_abundance must be >= 0, got {self.min_abundance}")

    @property
    def charges(self) -> range:
        return range(self.min_charge, self.max_charge + 1)

    @property
    def effective_min_count(self) -> int:
        """Smallest accepted envelope; singletons need ``allow_singletons``."""
        if self.allow_singletons:
            return self.min_peakel_count
        return max(self.min_peakel_count, 2)

    @classmethod
    def for_instrument(cls, instrument: InstrumentType) -> 'PeakelPickingParams':
        """Create parameters optimized for specific instrument type.

        Args:
            instrument: Instrument type enum

        Returns:
            PeakelPickingParams with instrument-specific defaults
        """
        if instrument == InstrumentType.MR_TOF:
            return cls(
                min_charge=1,
                max_charge=6,
                isotope_tolerance_ppm=3.0,  # Ultra-tight for >1M resolution
                min_peakel_count=2,
                min_rt_overlap=0.5,
            )
        elif instrument in (InstrumentType.ORBITRAP, InstrumentType.ASTRAL):
            return cls(
                min_charge=1,
                max_charge=6,
                isotope_tolerance_ppm=10.0,
                min_peakel_count=2,
                min_rt_overlap=0.5,
            )
        else:
            raise ConfigurationError(f"Unknown instrument type: {instrument}")


@dataclass
class _Envelope:
    charge: int
    positions: List[int]  # indices into the m/z-sorted peakels, M0 first
    isotope_indices: np.ndarray
    monoisotopic_mz: float
    residual_ppm: float

    def rank(self) -> Tuple[int, float, int]:
        return -len(self.positions), self.residual_ppm, self.charge


class PeakelPicker(Protocol):
    """Strategy interface: complete peakel set in, feature field out."""

    def pick(
        self,
        peakels: Sequence[Peakel],
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> FeatureField: ...


class IsotopePeakelPicker:
    """Greedy isotope-envelope picking over a finished peakel set."""

    def __init__(self, params: Optional[PeakelPickingParams] = None):
        self.params = params if params is not None else PeakelPickingParams()

    def pick(
        self,
        peakels: Sequence[Peakel],
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> FeatureField:
        """Partition peakels into features.

        Parameters
        ----------
        peakels : Sequence[Peakel]
            Finished peakels of one run
        should_stop : callable, optional
            Polled between seeds; returning True aborts picking

        Returns
        -------
        FeatureField
            Accepted features (possibly empty)

        Raises
        ------
        DetectionCancelled
            ``should_stop`` returned True
        """
        params = self.params

        # m/z-sorted index for binary search
        ordered = sorted(peakels, key=lambda p: (p.centroid_mz, p.first_scan, p.id))
        mz_sorted = np.array([p.centroid_mz for p in ordered], dtype=np.float64)
        claimed = np.zeros(len(ordered), dtype=np.bool_)

        # Strong seeds first; ties by m/z, then first scan
        seed_order = sorted(
            range(len(ordered)),
            key=lambda i: (-ordered[i].apex_intensity, mz_sorted[i], ordered[i].first_scan),
        )

        features: List[Feature] = []
        n_below_abundance = 0

        for seed_pos in seed_order:
            if should_stop is not None and should_stop():
                raise DetectionCancelled("Peakel picking cancelled")
            if claimed[seed_pos]:
                continue

            best: Optional[_Envelope] = None
            for charge in params.charges:
                envelope = self._build_envelope(ordered, mz_sorted, claimed, seed_pos, charge)
                if best is None or envelope.rank() < best.rank():
                    best = envelope

            if best is None or len(best.positions) < params.effective_min_count:
                continue

            claimed[best.positions] = True

            feature = self._make_feature(ordered, best)
            if feature.total_abundance < params.min_abundance:
                n_below_abundance += 1
                continue
            features.append(feature)

        field = FeatureField(features)
        n_grouped = sum(f.n_isotopes for f in field)
        logger.info(
            f"Picked {len(field):,} features from {len(ordered):,} peakels "
            f"({n_grouped:,} grouped, {n_below_abundance:,} below min abundance)"
        )
        return field

    def _coelutes(self, member: Peakel, candidate: Peakel) -> bool:
        if not member.overlaps(candidate):
            return False
        if self.params.min_rt_overlap <= 0:
            return True
        start, end = member.retention_time_range
        cand_start, cand_end = candidate.retention_time_range
        overlap = min(end, cand_end) - max(start, cand_start)
        shorter = min(end - start, cand_end - cand_start)
        if shorter <= 0:
            return True
        return overlap >= self.params.min_rt_overlap * shorter

    def _find_isotope(
        self,
        ordered: Sequence[Peakel],
        mz_sorted: np.ndarray,
        claimed: np.ndarray,
        used: set,
        accepted: Sequence[Peakel],
        expected_mz: float,
    ) -> Optional[int]:
        """Unclaimed peakel nearest the expected m/z, co-eluting with all members."""
        tol = expected_mz * self.params.isotope_tolerance_ppm / 1e6
        start = np.searchsorted(mz_sorted, expected_mz - tol, side='left')
        end = np.searchsorted(mz_sorted, expected_mz + tol, side='right')

        best_pos = None
        best_key = None
        for pos in range(start, end):
            if claimed[pos] or pos in used:
                continue
            candidate = ordered[pos]
            if not all(self._coelutes(member, candidate) for member in accepted):
                continue
            key = (abs(mz_sorted[pos] - expected_mz), mz_sorted[pos], candidate.first_scan)
            if best_key is None or key < best_key:
                best_pos = pos
                best_key = key

        return best_pos

    def _build_envelope(
        self,
        ordered: Sequence[Peakel],
        mz_sorted: np.ndarray,
        claimed: np.ndarray,
        seed_pos: int,
        charge: int,
    ) -> _Envelope:
        spacing = isotope_spacing(charge)
        max_isotopes = self.params.max_isotopes
        seed = ordered[seed_pos]
        seed_mz = mz_sorted[seed_pos]

        members: Dict[int, int] = {0: seed_pos}  # offset from seed -> position
        used = {seed_pos}
        accepted = [seed]

        # Lower isotopes first, so the envelope starts at the monoisotopic peakel
        for direction in (-1, 1):
            offset = direction
            while len(members) < max_isotopes:
                pos = self._find_isotope(
                    ordered, mz_sorted, claimed, used, accepted, seed_mz + offset * spacing
                )
                if pos is None:
                    break
                members[offset] = pos
                used.add(pos)
                accepted.append(ordered[pos])
                offset += direction

        lowest = min(members)
        offsets = sorted(members)
        positions = [members[o] for o in offsets]
        isotope_indices = np.array([o - lowest for o in offsets], dtype=np.float64)

        member_mz = mz_sorted[positions]
        weights = np.array([ordered[p].total_intensity for p in positions], dtype=np.float64)
        shifted = member_mz - isotope_indices * spacing
        if weights.sum() > 0:
            mono_mz = float(np.average(shifted, weights=weights))
        else:
            mono_mz = float(np.mean(shifted))

        residual = envelope_residual_ppm(member_mz, isotope_indices, mono_mz, spacing)

        return _Envelope(
            charge=charge,
            positions=positions,
            isotope_indices=isotope_indices,
            monoisotopic_mz=mono_mz,
            residual_ppm=float(residual),
        )

    def _make_feature(self, ordered: Sequence[Peakel], envelope: _Envelope) -> Feature:
        members = tuple(ordered[p] for p in envelope.positions)
        rt_start = min(p.retention_time_range[0] for p in members)
        rt_end = max(p.retention_time_range[1] for p in members)
        apex_member = max(members, key=lambda p: p.apex_intensity)

        return Feature(
            charge=envelope.charge,
            monoisotopic_mz=envelope.monoisotopic_mz,
            monoisotopic_mass=neutral_mass(envelope.monoisotopic_mz, envelope.charge),
            retention_time_range=(rt_start, rt_end),
            total_abundance=float(sum(p.total_intensity for p in members)),
            peakels=members,
            apex_retention_time=apex_member.apex_retention_time,
            mz_error_ppm=envelope.residual_ppm,
            score=coelution_score(members),
        )
