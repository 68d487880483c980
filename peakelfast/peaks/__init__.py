"""Per-spectrum peak extraction.

This module provides:
- Noise floor estimation (fixed, two-pass, local median)
- Local-maximum peak picking with intensity-weighted centroiding
- The ``PeakExtractor`` strategy interface used by the feature detector
"""

from .noise import (
    NoiseMethod,
    calculate_noise_floor,
    local_median_noise,
    two_pass_noise,
)

from .extraction import (
    LocalMaximumPeakExtractor,
    Peak,
    PeakExtractionParams,
    PeakExtractor,
    centroid_maxima,
    find_local_maxima,
    suppress_close_peaks,
    validate_spectrum_arrays,
)

__all__ = [
    # Noise
    'NoiseMethod',
    'calculate_noise_floor',
    'local_median_noise',
    'two_pass_noise',

    # Extraction
    'LocalMaximumPeakExtractor',
    'Peak',
    'PeakExtractionParams',
    'PeakExtractor',
    'centroid_maxima',
    'find_local_maxima',
    'suppress_close_peaks',
    'validate_spectrum_arrays',
]
