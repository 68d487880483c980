"""Noise floor estimation for single spectra.

Three estimators are available:
- FIXED: a constant absolute threshold
- TWO_PASS: global mean/std, recomputed after excluding signal above
  ``mean + z_cutoff * std`` (robust against a few intense peaks)
- LOCAL_MEDIAN: sliding-window median, for spectra whose baseline drifts
  along the m/z axis

Every estimator returns a per-sample floor that is never below the configured
absolute threshold, so extracted peaks always clear that threshold.
"""

from enum import Enum
from typing import Tuple

import numpy as np
from numba import njit


class NoiseMethod(Enum):
    """Noise floor estimators."""
    FIXED = "fixed"
    TWO_PASS = "two_pass"
    LOCAL_MEDIAN = "local_median"


@njit
def two_pass_noise(intensities: np.ndarray, z_cutoff: float = 1.0) -> Tuple[float, float]:
    """Estimate noise mean and standard deviation in two passes.

    The first pass computes statistics over all samples; the second pass
    ignores samples above ``mean + z_cutoff * std`` so that real peaks do not
    inflate the noise estimate.

    Args:
        intensities: Intensity array of one spectrum
        z_cutoff: Samples above mean + z_cutoff * std are treated as signal

    Returns:
        (noise_mean, noise_std); (0.0, 0.0) for an empty spectrum
    """
    n = len(intensities)
    if n == 0:
        return 0.0, 0.0

    mean = np.mean(intensities)
    std = np.std(intensities)
    cutoff = mean + z_cutoff * std

    total = 0.0
    total_sq = 0.0
    count = 0
    for i in range(n):
        x = intensities[i]
        if x <= cutoff:
            total += x
            total_sq += x * x
            count += 1

    if count == 0:
        return mean, std

    noise_mean = total / count
    variance = total_sq / count - noise_mean * noise_mean
    if variance < 0.0:
        variance = 0.0

    return noise_mean, np.sqrt(variance)


@njit
def local_median_noise(intensities: np.ndarray, radius: int) -> np.ndarray:
    """Sliding-window median of the intensities.

    Args:
        intensities: Intensity array of one spectrum
        radius: Half-width of the window in samples

    Returns:
        Array of local medians (same length as input)
    """
    n = len(intensities)
    result = np.zeros(n, dtype=np.float64)

    for i in range(n):
        start = max(0, i - radius)
        end = min(n, i + radius + 1)
        result[i] = np.median(intensities[start:end])

    return result


def calculate_noise_floor(
    intensities: np.ndarray,
    method: NoiseMethod,
    noise_threshold: float,
    snr_threshold: float,
    noise_window: int,
    z_cutoff: float = 1.0,
) -> np.ndarray:
    """Per-sample noise floor for one spectrum.

    Parameters
    ----------
    intensities : np.ndarray
        Intensity array (float64)
    method : NoiseMethod
        Which estimator to use
    noise_threshold : float
        Absolute lower bound of the floor
    snr_threshold : float
        For TWO_PASS, the number of noise standard deviations above the noise
        mean; for LOCAL_MEDIAN, the multiple of the local median
    noise_window : int
        Half-width of the LOCAL_MEDIAN window in samples
    z_cutoff : float
        Signal exclusion cutoff of the TWO_PASS estimator

    Returns
    -------
    np.ndarray
        Floor for each sample, never below ``noise_threshold``
    """
    n = len(intensities)

    if method == NoiseMethod.FIXED or n == 0:
        return np.full(n, noise_threshold, dtype=np.float64)

    if method == NoiseMethod.TWO_PASS:
        noise_mean, noise_std = two_pass_noise(intensities, z_cutoff)
        floor = noise_mean + snr_threshold * noise_std
        return np.full(n, max(noise_threshold, floor), dtype=np.float64)

    if method == NoiseMethod.LOCAL_MEDIAN:
        local = local_median_noise(intensities, noise_window)
        return np.maximum(local * snr_threshold, noise_threshold)

    raise ValueError(f"Unknown noise method: {method}")
