"""peakelfast - LC-MS feature detection from peakels.

Turns raw MS1 scans into charge-resolved, isotope-deconvolved features:
1. Peak extraction per spectrum (noise floor, local maxima, centroiding)
2. Peakel growth across scans (greedy nearest-m/z linking)
3. Peakel picking into isotope envelopes (automatic charge determination)

Numeric kernels are Numba-compiled; the pipeline stages are swappable
strategies driven by ``FeatureDetector``.
"""

__version__ = "0.1.0"

from peakelfast import peaks
from peakelfast import peakels
from peakelfast import features

from peakelfast.constants import InstrumentType
from peakelfast.convenience import detect_features, extract_peaks
from peakelfast.detection import (
    DetectionRun,
    DetectionState,
    DetectionSummary,
    FeatureDetectionConfig,
    FeatureDetector,
)
from peakelfast.exceptions import (
    ConfigurationError,
    DetectionCancelled,
    FeatureDetectionError,
    InputError,
    OrderingError,
)
from peakelfast.run import InMemoryRun, Spectrum, SpectrumSource

__all__ = [
    "peaks",
    "peakels",
    "features",
    "InstrumentType",
    "detect_features",
    "extract_peaks",
    "DetectionRun",
    "DetectionState",
    "DetectionSummary",
    "FeatureDetectionConfig",
    "FeatureDetector",
    "ConfigurationError",
    "DetectionCancelled",
    "FeatureDetectionError",
    "InputError",
    "OrderingError",
    "InMemoryRun",
    "Spectrum",
    "SpectrumSource",
]
