"""Feature selection: grouping peakels into isotope envelopes.

This module provides:
- The ``Feature`` model and the queryable ``FeatureField``
- Isotope envelope picking with automatic charge state determination
- Envelope scores (ladder residuals, co-elution similarity)
"""

from .feature import (
    FEATURE_RECORD_DTYPE,
    Feature,
    FeatureField,
)

from .picking import (
    IsotopePeakelPicker,
    PeakelPicker,
    PeakelPickingParams,
)

from .scoring import (
    calculate_mass_error_ppm,
    coelution_score,
    cosine_similarity,
    envelope_residual_ppm,
)

__all__ = [
    # Model
    'FEATURE_RECORD_DTYPE',
    'Feature',
    'FeatureField',

    # Picking
    'IsotopePeakelPicker',
    'PeakelPicker',
    'PeakelPickingParams',

    # Scoring
    'calculate_mass_error_ppm',
    'coelution_score',
    'cosine_similarity',
    'envelope_residual_ppm',
]
