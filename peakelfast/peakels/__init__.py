"""Chromatographic traces (peakels) built across scans.

This module provides:
- The ``Peakel`` model with incrementally maintained centroid and apex
- Greedy nearest-m/z peakel growth over an id-indexed arena
- Elution shape helpers (FWHM, dense scan profiles)
"""

from .peakel import Peakel

from .growth import (
    PeakelArena,
    PeakelGrower,
    PeakelGrowthParams,
    ProximityPeakelGrower,
)

from .shape import (
    calculate_fwhm_with_apex,
    dense_profile,
)

__all__ = [
    'Peakel',

    # Growth
    'PeakelArena',
    'PeakelGrower',
    'PeakelGrowthParams',
    'ProximityPeakelGrower',

    # Shape
    'calculate_fwhm_with_apex',
    'dense_profile',
]
