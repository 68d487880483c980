"""Error taxonomy for the feature detection pipeline.

All errors surface immediately to the caller; the pipeline never retries or
guesses at signal data. Input, ordering and configuration errors also derive
from ``ValueError`` so callers catching bad-argument errors keep working.
"""


class FeatureDetectionError(Exception):
    """Base class for all feature detection failures."""


class InputError(FeatureDetectionError, ValueError):
    """Malformed spectrum (mismatched arrays, unsorted m/z, bad intensities)."""


class OrderingError(FeatureDetectionError, ValueError):
    """Spectra or scans delivered out of retention-time order."""


class ConfigurationError(FeatureDetectionError, ValueError):
    """Invalid strategy parameters, detected before any run starts."""


class DetectionCancelled(FeatureDetectionError):
    """The caller requested early termination of a detection run."""
