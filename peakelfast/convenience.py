"""Convenience wrapper functions for easy-to-use API.

Use these functions when you have plain per-scan numpy arrays and want
features without assembling strategies by hand:
- ``detect_features``: whole pipeline in one call
- ``extract_peaks``: peaks of a single spectrum as arrays

For custom strategies or cancellation, use ``FeatureDetector`` directly.

Examples
--------
>>> field = detect_features(rts, mz_arrays, intensity_arrays,
...                         instrument=InstrumentType.ORBITRAP)
>>> records = field.to_records()
>>> records['mass'][:3]
"""

from typing import Optional, Sequence, Tuple

import numpy as np

from .constants import InstrumentType
from .detection import FeatureDetectionConfig, FeatureDetector
from .exceptions import ConfigurationError
from .features.feature import FeatureField
from .peaks.extraction import LocalMaximumPeakExtractor, PeakExtractionParams
from .run import InMemoryRun


def detect_features(
    retention_times: Sequence[float],
    mz_arrays: Sequence[np.ndarray],
    intensity_arrays: Sequence[np.ndarray],
    ms_levels: Optional[Sequence[int]] = None,
    instrument: Optional[InstrumentType] = None,
    config: Optional[FeatureDetectionConfig] = None,
) -> FeatureField:
    """Detect features in a run given as per-scan arrays (convenience wrapper).

    Parameters
    ----------
    retention_times : Sequence[float]
        Retention time of each scan (seconds), ascending
    mz_arrays : Sequence[np.ndarray]
        m/z array of each scan, ascending
    intensity_arrays : Sequence[np.ndarray]
        Intensity array of each scan
    ms_levels : Sequence[int], optional
        MS level of each scan (default: all MS1)
    instrument : InstrumentType, optional
        Use the instrument presets; mutually exclusive with ``config``
    config : FeatureDetectionConfig, optional
        Full pipeline configuration (default: ``FeatureDetectionConfig()``)

    Returns
    -------
    FeatureField
        Detected features

    See Also
    --------
    FeatureDetector : Strategy-level API with cancellation support
    """
    if instrument is not None and config is not None:
        raise ConfigurationError("Pass either instrument or config, not both")
    if instrument is not None:
        config = FeatureDetectionConfig.for_instrument(instrument)

    run = InMemoryRun.from_arrays(retention_times, mz_arrays, intensity_arrays, ms_levels)
    return FeatureDetector.from_config(config).detect(run)


def extract_peaks(
    mz_array: np.ndarray,
    intensity_array: np.ndarray,
    noise_threshold: float = 0.0,
    centroid: bool = True,
) -> Tuple[np.ndarray, np.ndarray]:
    """Peaks of a single spectrum as (mz, intensity) arrays.

    Parameters
    ----------
    mz_array : np.ndarray
        Ascending m/z values
    intensity_array : np.ndarray
        Intensities
    noise_threshold : float, default=0.0
        Absolute intensity floor
    centroid : bool, default=True
        Report intensity-weighted centroids instead of apex m/z

    Examples
    --------
    >>> mz, intensity = extract_peaks(mz_array, intensity_array, noise_threshold=500.0)
    """
    params = PeakExtractionParams(noise_threshold=noise_threshold, centroid=centroid)
    return LocalMaximumPeakExtractor(params).extract_arrays(mz_array, intensity_array)
