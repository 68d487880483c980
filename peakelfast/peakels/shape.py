"""Elution shape of peakels.

Numba helpers for:
- FWHM (Full Width at Half Maximum) with linear interpolation
- Dense per-scan intensity profiles, used to compare co-eluting peakels

Designed for LC-MS chromatographic peaks of 5-60 seconds width sampled at
0.2-2 seconds per scan.
"""

from typing import Tuple

import numpy as np
from numba import njit


@njit
def calculate_fwhm_with_apex(
    rt_values: np.ndarray,
    intensities: np.ndarray,
) -> Tuple[float, float]:
    """Calculate FWHM and apex RT (numba-optimized).

    Args:
        rt_values: Retention times (seconds), ascending
        intensities: Peakel intensities

    Returns:
        (fwhm, apex_rt) tuple
        fwhm is -1.0 if it cannot be determined (fewer than 3 points or no
        half-maximum crossing); apex_rt is -1.0 only for an empty trace

    Notes:
        - Uses linear interpolation to find half-max crossings
        - For asymmetric or truncated peaks, estimates FWHM from the
          available side assuming symmetry
    """
    n = len(rt_values)
    if n == 0:
        return -1.0, -1.0

    max_idx = np.argmax(intensities)
    apex_rt = rt_values[max_idx]
    if n < 3:
        return -1.0, apex_rt

    half_max = intensities[max_idx] / 2.0

    # Left crossing, scanning backward from apex
    left_rt = rt_values[0]
    left_found = False
    for i in range(max_idx - 1, -1, -1):
        if intensities[i] <= half_max:
            denom = intensities[i + 1] - intensities[i]
            if abs(denom) > 1e-10:
                frac = (half_max - intensities[i]) / denom
                left_rt = rt_values[i] + frac * (rt_values[i + 1] - rt_values[i])
            else:
                left_rt = rt_values[i]
            left_found = True
            break

    # Right crossing, scanning forward from apex
    right_rt = rt_values[-1]
    right_found = False
    for i in range(max_idx + 1, n):
        if intensities[i] <= half_max:
            denom = intensities[i] - intensities[i - 1]
            if abs(denom) > 1e-10:
                frac = (half_max - intensities[i - 1]) / denom
                right_rt = rt_values[i - 1] + frac * (rt_values[i] - rt_values[i - 1])
            else:
                right_rt = rt_values[i]
            right_found = True
            break

    if left_found and right_found:
        fwhm = right_rt - left_rt
    elif left_found:
        fwhm = 2.0 * (apex_rt - left_rt)
    elif right_found:
        fwhm = 2.0 * (right_rt - apex_rt)
    else:
        # Flat top, everything above half-max
        fwhm = -1.0

    return fwhm, apex_rt


@njit
def dense_profile(
    scan_indices: np.ndarray,
    intensities: np.ndarray,
    first_scan: int,
    last_scan: int,
) -> np.ndarray:
    """Scatter a sparse trace onto a dense scan axis.

    Args:
        scan_indices: Scan index of each point
        intensities: Intensity of each point
        first_scan: First scan of the dense axis (inclusive)
        last_scan: Last scan of the dense axis (inclusive)

    Returns:
        Array of length last_scan - first_scan + 1, zero where the trace has
        no point
    """
    n_scans = last_scan - first_scan + 1
    profile = np.zeros(max(n_scans, 0), dtype=np.float64)

    for i in range(len(scan_indices)):
        pos = scan_indices[i] - first_scan
        if 0 <= pos < n_scans:
            profile[pos] += intensities[i]

    return profile
