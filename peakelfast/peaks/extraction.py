"""Peak extraction from a single spectrum.

Turns one scan's m/z and intensity arrays into an m/z-ordered list of peaks:
1. Validate the arrays (lengths, m/z order, intensity sign)
2. Estimate a per-sample noise floor (see ``noise``)
3. Find local intensity maxima above the floor
4. Optionally centroid each maximum over its contiguous shoulders
5. Suppress maxima closer than the minimum peak separation

Extraction is a pure function of the arrays and the parameters, so spectra can
be processed on worker threads in any order.

Examples
--------
>>> extractor = LocalMaximumPeakExtractor(PeakExtractionParams(noise_threshold=1e3))
>>> peaks = extractor.extract(mz_array, intensity_array, retention_time=61.2, scan_index=12)
>>> [round(p.mz, 4) for p in peaks]
"""

import bisect
import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple

import numpy as np
from numba import njit

from ..constants import InstrumentType
from ..exceptions import ConfigurationError, InputError
from .noise import NoiseMethod, calculate_noise_floor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Peak:
    """A local intensity maximum in one spectrum."""

    mz: float
    retention_time: float
    intensity: float
    scan_index: int


class PeakExtractor(Protocol):
    """Strategy interface: one spectrum in, m/z-ordered peaks out."""

    def extract(
        self,
        mz_array: np.ndarray,
        intensity_array: np.ndarray,
        retention_time: float,
        scan_index: int,
    ) -> List[Peak]: ...


@dataclass(frozen=True)
class PeakExtractionParams:
    """Parameters for single-spectrum peak extraction.

    ``max_sample_gap`` decides which samples are neighbours: samples further
    apart in m/z belong to different signal clusters. With centroided input
    every sample is its own cluster and becomes a peak if it clears the floor.
    """

    # Absolute intensity floor
    noise_threshold: float = 0.0

    # Noise estimation
    noise_method: NoiseMethod = NoiseMethod.FIXED
    snr_threshold: float = 3.0
    noise_window: int = 50  # samples

    # Peak shape
    min_peak_separation: float = 0.0  # m/z
    centroid: bool = True
    max_sample_gap: float = 0.05  # m/z

    def __post_init__(self):
        if not np.isfinite(self.noise_threshold) or self.noise_threshold < 0:
            raise ConfigurationError(f"noise_threshold must be >= 0, got {self.noise_threshold}")
        if not isinstance(self.noise_method, NoiseMethod):
            raise ConfigurationError(f"Unknown noise method: {self.noise_method}")
        if self.snr_threshold <= 0:
            raise ConfigurationError(f"snr_threshold must be > 0, got {self.snr_threshold}")
        if self.noise_window < 1:
            raise ConfigurationError(f"noise_window must be >= 1, got {self.noise_window}")
        if self.min_peak_separation < 0:
            raise ConfigurationError(
                f"min_peak_separation must be >= 0, got {self.min_peak_separation}"
            )
        if self.max_sample_gap <= 0:
            raise ConfigurationError(f"max_sample_gap must be > 0, got {self.max_sample_gap}")

    @classmethod
    def for_instrument(cls, instrument: InstrumentType) -> 'PeakExtractionParams':
        """Create parameters optimized for specific instrument type.

        Args:
            instrument: Instrument type enum

        Returns:
            PeakExtractionParams with instrument-specific defaults
        """
        if instrument == InstrumentType.MR_TOF:
            return cls(
                noise_threshold=100.0,
                noise_method=NoiseMethod.TWO_PASS,
                snr_threshold=3.0,
                max_sample_gap=0.02,  # Narrow profile peaks
            )
        elif instrument in (InstrumentType.ORBITRAP, InstrumentType.ASTRAL):
            return cls(
                noise_threshold=1000.0,
                noise_method=NoiseMethod.TWO_PASS,
                snr_threshold=3.0,
                max_sample_gap=0.05,
            )
        else:
            raise ConfigurationError(f"Unknown instrument type: {instrument}")


@njit
def find_local_maxima(
    mz_array: np.ndarray,
    intensity_array: np.ndarray,
    noise_floor: np.ndarray,
    max_sample_gap: float,
) -> np.ndarray:
    """Indices of local intensity maxima at or above the noise floor.

    A sample is a maximum if it is strictly above its contiguous left
    neighbour and not below its contiguous right neighbour, so a flat top
    reports its leftmost sample. Non-contiguous neighbours are ignored.

    Args:
        mz_array: Ascending m/z values
        intensity_array: Intensities (same length)
        noise_floor: Per-sample floor (same length)
        max_sample_gap: Largest m/z step between contiguous samples

    Returns:
        Ascending array of sample indices (int64)
    """
    n = len(mz_array)
    maxima = np.empty(n, dtype=np.int64)
    n_maxima = 0

    for i in range(n):
        y = intensity_array[i]
        if y <= 0.0 or y < noise_floor[i]:
            continue

        if i > 0 and mz_array[i] - mz_array[i - 1] <= max_sample_gap:
            if intensity_array[i - 1] >= y:
                continue

        if i < n - 1 and mz_array[i + 1] - mz_array[i] <= max_sample_gap:
            if intensity_array[i + 1] > y:
                continue

        maxima[n_maxima] = i
        n_maxima += 1

    return maxima[:n_maxima]


@njit
def centroid_maxima(
    mz_array: np.ndarray,
    intensity_array: np.ndarray,
    noise_floor: np.ndarray,
    maxima: np.ndarray,
    max_sample_gap: float,
) -> np.ndarray:
    """Intensity-weighted m/z of each maximum over its descending shoulders.

    From each apex the region grows left and right while samples stay
    contiguous, non-increasing away from the apex and above the noise floor.
    Regions never share samples: a valley between two adjacent maxima
    belongs to the lower-m/z one.

    Args:
        maxima: Ascending apex indices, as returned by ``find_local_maxima``

    Returns:
        Centroid m/z per maximum (float64)
    """
    n = len(mz_array)
    centroids = np.empty(len(maxima), dtype=np.float64)
    prev_right = -1

    for k in range(len(maxima)):
        apex = maxima[k]

        left = apex
        while left > 0:
            j = left - 1
            if j <= prev_right:
                break
            if mz_array[left] - mz_array[j] > max_sample_gap:
                break
            if intensity_array[j] > intensity_array[left] or intensity_array[j] < noise_floor[j]:
                break
            if intensity_array[j] <= 0.0:
                break
            left = j

        right = apex
        while right < n - 1:
            j = right + 1
            if mz_array[j] - mz_array[right] > max_sample_gap:
                break
            if intensity_array[j] > intensity_array[right] or intensity_array[j] < noise_floor[j]:
                break
            if intensity_array[j] <= 0.0:
                break
            right = j
        prev_right = right

        weighted = 0.0
        total = 0.0
        for i in range(left, right + 1):
            weighted += mz_array[i] * intensity_array[i]
            total += intensity_array[i]

        centroids[k] = weighted / total

    return centroids


def suppress_close_peaks(
    mz_values: np.ndarray,
    intensities: np.ndarray,
    min_separation: float,
) -> np.ndarray:
    """Boolean mask keeping the strongest peak within each separation window.

    Peaks are accepted in descending intensity (ties: lower m/z first); a peak
    closer than ``min_separation`` to an accepted peak is dropped.
    """
    keep = np.zeros(len(mz_values), dtype=np.bool_)
    if min_separation <= 0:
        keep[:] = True
        return keep

    accepted: List[float] = []
    for idx in np.lexsort((mz_values, -intensities)):
        mz = mz_values[idx]
        pos = bisect.bisect_left(accepted, mz)
        if pos > 0 and mz - accepted[pos - 1] < min_separation:
            continue
        if pos < len(accepted) and accepted[pos] - mz < min_separation:
            continue
        accepted.insert(pos, mz)
        keep[idx] = True

    return keep


def validate_spectrum_arrays(mz_array, intensity_array) -> Tuple[np.ndarray, np.ndarray]:
    """Convert to float64 arrays and reject malformed spectra.

    Raises:
        InputError: mismatched lengths, non-ascending or non-finite m/z,
            negative or non-finite intensities
    """
    mz = np.ascontiguousarray(mz_array, dtype=np.float64)
    intensity = np.ascontiguousarray(intensity_array, dtype=np.float64)

    if mz.ndim != 1 or intensity.ndim != 1:
        raise InputError("m/z and intensity arrays must be one-dimensional")
    if len(mz) != len(intensity):
        raise InputError(
            f"m/z and intensity arrays differ in length ({len(mz)} vs {len(intensity)})"
        )
    if not np.all(np.isfinite(mz)):
        raise InputError("m/z array contains non-finite values")
    if len(mz) > 1 and np.any(np.diff(mz) < 0):
        raise InputError("m/z array is not sorted ascending")
    if not np.all(np.isfinite(intensity)):
        raise InputError("intensity array contains non-finite values")
    if np.any(intensity < 0):
        raise InputError("intensity array contains negative values")

    return mz, intensity


class LocalMaximumPeakExtractor:
    """Local-maximum peak picking with optional centroiding.

    Examples
    --------
    >>> extractor = LocalMaximumPeakExtractor(
    ...     PeakExtractionParams(noise_method=NoiseMethod.TWO_PASS, snr_threshold=3.0)
    ... )
    >>> mz, intensity = extractor.extract_arrays(mz_array, intensity_array)
    """

    def __init__(self, params: Optional[PeakExtractionParams] = None):
        self.params = params if params is not None else PeakExtractionParams()

    def extract_arrays(
        self,
        mz_array: np.ndarray,
        intensity_array: np.ndarray,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Extract peaks and return them as (mz, intensity) arrays sorted by m/z."""
        params = self.params
        mz, intensity = validate_spectrum_arrays(mz_array, intensity_array)

        if len(mz) == 0:
            return np.zeros(0, dtype=np.float64), np.zeros(0, dtype=np.float64)

        floor = calculate_noise_floor(
            intensity,
            params.noise_method,
            params.noise_threshold,
            params.snr_threshold,
            params.noise_window,
        )

        maxima = find_local_maxima(mz, intensity, floor, params.max_sample_gap)
        if len(maxima) == 0:
            return np.zeros(0, dtype=np.float64), np.zeros(0, dtype=np.float64)

        if params.centroid:
            peak_mz = centroid_maxima(mz, intensity, floor, maxima, params.max_sample_gap)
        else:
            peak_mz = mz[maxima]
        peak_intensity = intensity[maxima]

        keep = suppress_close_peaks(peak_mz, peak_intensity, params.min_peak_separation)
        peak_mz = peak_mz[keep]
        peak_intensity = peak_intensity[keep]

        order = np.argsort(peak_mz, kind='mergesort')
        return peak_mz[order], peak_intensity[order]

    def extract(
        self,
        mz_array: np.ndarray,
        intensity_array: np.ndarray,
        retention_time: float,
        scan_index: int = 0,
    ) -> List[Peak]:
        """Extract peaks from one spectrum.

        Parameters
        ----------
        mz_array : np.ndarray
            Ascending m/z values
        intensity_array : np.ndarray
            Intensities (same length, non-negative)
        retention_time : float
            Retention time of the scan (seconds)
        scan_index : int
            Ordinal of the scan within the run

        Returns
        -------
        List[Peak]
            Peaks ordered by m/z; empty if nothing clears the noise floor
        """
        peak_mz, peak_intensity = self.extract_arrays(mz_array, intensity_array)

        logger.debug(f"Scan {scan_index} (RT {retention_time:.2f}): {len(peak_mz)} peaks")

        return [
            Peak(
                mz=float(mz),
                retention_time=float(retention_time),
                intensity=float(intensity),
                scan_index=int(scan_index),
            )
            for mz, intensity in zip(peak_mz, peak_intensity)
        ]
