"""Scores used to rank and qualify isotope envelopes.

- m/z residuals of envelope members against the ideal C13 ladder (ppm)
- Co-elution similarity of member peakels (cosine of dense scan profiles)

The cosine similarity ignores absolute intensity differences and focuses on
the shape correlation, which is what distinguishes true isotopes (same
elution profile, different height) from unrelated co-eluting peakels.
"""

from typing import Sequence

import numpy as np
from numba import njit

from ..peakels.peakel import Peakel
from ..peakels.shape import dense_profile


@njit
def calculate_mass_error_ppm(observed_diff: float, expected_diff: float, reference_mz: float) -> float:
    """Calculate isotope spacing error in ppm.

    Args:
        observed_diff: Observed m/z difference
        expected_diff: Expected m/z difference (Da)
        reference_mz: m/z used for the ppm conversion

    Returns:
        Mass error in ppm
    """
    delta = observed_diff - expected_diff
    return (delta / reference_mz) * 1e6


@njit
def cosine_similarity(profile1: np.ndarray, profile2: np.ndarray) -> float:
    """Cosine similarity between two elution profiles, clipped to [0, 1].

    Returns 0.0 when either profile is all zeros.
    """
    dot_product = 0.0
    norm1 = 0.0
    norm2 = 0.0

    for i in range(len(profile1)):
        dot_product += profile1[i] * profile2[i]
        norm1 += profile1[i] * profile1[i]
        norm2 += profile2[i] * profile2[i]

    if norm1 == 0.0 or norm2 == 0.0:
        return 0.0

    similarity = dot_product / (np.sqrt(norm1) * np.sqrt(norm2))
    return max(0.0, min(1.0, similarity))


@njit
def envelope_residual_ppm(
    member_mzs: np.ndarray,
    isotope_indices: np.ndarray,
    monoisotopic_mz: float,
    spacing: float,
) -> float:
    """Mean absolute deviation of members from the ideal ladder (ppm).

    Args:
        member_mzs: Centroid m/z of each member
        isotope_indices: Isotope number of each member (0 = monoisotopic)
        monoisotopic_mz: m/z of the M0 position of the ladder
        spacing: Isotope spacing at the envelope charge

    Returns:
        Mean |error| in ppm; 0.0 for an empty envelope
    """
    n = len(member_mzs)
    if n == 0:
        return 0.0

    total = 0.0
    for i in range(n):
        expected_diff = isotope_indices[i] * spacing
        observed_diff = member_mzs[i] - monoisotopic_mz
        total += abs(calculate_mass_error_ppm(observed_diff, expected_diff, member_mzs[i]))

    return total / n


def coelution_score(peakels: Sequence[Peakel]) -> float:
    """Mean cosine similarity of each member against the most intense one.

    Profiles are compared on the union of the members' scan ranges. A single
    peakel scores 1.0.
    """
    if len(peakels) == 0:
        return 0.0
    if len(peakels) == 1:
        return 1.0

    first_scan = min(p.first_scan for p in peakels)
    last_scan = max(p.last_scan for p in peakels)
    profiles = [
        dense_profile(p.scan_indices, p.intensity_array, first_scan, last_scan)
        for p in peakels
    ]

    reference = int(np.argmax([p.apex_intensity for p in peakels]))
    similarities = [
        cosine_similarity(profiles[reference], profiles[i])
        for i in range(len(peakels))
        if i != reference
    ]
    return float(np.mean(similarities))
