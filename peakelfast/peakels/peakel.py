"""Peakel: a chromatographic trace of one m/z across consecutive scans.

A peakel is grown one peak per scan while it is open and frozen once closed.
Derived quantities (centroid m/z, apex, totals) are maintained incrementally
so the grower can match against the running centroid in O(1).
"""

from typing import List, Tuple

import numpy as np

from ..peaks.extraction import Peak
from .shape import calculate_fwhm_with_apex


class Peakel:
    """Ordered peaks at near-constant m/z spanning consecutive scans.

    Parameters
    ----------
    peakel_id : int
        Stable identifier assigned by the arena that grows the peakel
    first_peak : Peak
        Peak that opens the trace
    """

    __slots__ = (
        'id', '_peaks', '_closed',
        '_weighted_mz', '_total_intensity', '_apex_index',
    )

    def __init__(self, peakel_id: int, first_peak: Peak):
        self.id = peakel_id
        self._peaks: List[Peak] = []
        self._closed = False
        self._weighted_mz = 0.0
        self._total_intensity = 0.0
        self._apex_index = 0
        self.append(first_peak)

    def append(self, peak: Peak) -> None:
        """Extend the trace with the next scan's peak.

        Raises:
            RuntimeError: if the peakel is closed
            ValueError: if the peak does not come from a later scan
        """
        if self._closed:
            raise RuntimeError(f"Peakel {self.id} is closed")
        if self._peaks and peak.scan_index <= self._peaks[-1].scan_index:
            raise ValueError(
                f"Peakel {self.id}: scan {peak.scan_index} does not follow "
                f"scan {self._peaks[-1].scan_index}"
            )

        self._peaks.append(peak)
        self._weighted_mz += peak.mz * peak.intensity
        self._total_intensity += peak.intensity
        if peak.intensity > self._peaks[self._apex_index].intensity:
            self._apex_index = len(self._peaks) - 1

    def close(self) -> None:
        """Freeze the peakel; later appends raise."""
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def peaks(self) -> Tuple[Peak, ...]:
        return tuple(self._peaks)

    def __len__(self) -> int:
        return len(self._peaks)

    def __repr__(self) -> str:
        return (
            f"Peakel(id={self.id}, mz={self.centroid_mz:.4f}, "
            f"scans={self.first_scan}-{self.last_scan}, n={len(self)})"
        )

    # Derived values

    @property
    def centroid_mz(self) -> float:
        """Intensity-weighted mean m/z (plain mean if all intensities are zero)."""
        if self._total_intensity > 0:
            return self._weighted_mz / self._total_intensity
        return float(np.mean([p.mz for p in self._peaks]))

    @property
    def apex_intensity(self) -> float:
        return self._peaks[self._apex_index].intensity

    @property
    def apex_retention_time(self) -> float:
        return self._peaks[self._apex_index].retention_time

    @property
    def total_intensity(self) -> float:
        return self._total_intensity

    @property
    def first_scan(self) -> int:
        return self._peaks[0].scan_index

    @property
    def last_scan(self) -> int:
        return self._peaks[-1].scan_index

    @property
    def retention_time_range(self) -> Tuple[float, float]:
        return self._peaks[0].retention_time, self._peaks[-1].retention_time

    @property
    def mz_array(self) -> np.ndarray:
        return np.array([p.mz for p in self._peaks], dtype=np.float64)

    @property
    def rt_array(self) -> np.ndarray:
        return np.array([p.retention_time for p in self._peaks], dtype=np.float64)

    @property
    def intensity_array(self) -> np.ndarray:
        return np.array([p.intensity for p in self._peaks], dtype=np.float64)

    @property
    def scan_indices(self) -> np.ndarray:
        return np.array([p.scan_index for p in self._peaks], dtype=np.int64)

    @property
    def mz_std_ppm(self) -> float:
        """Spread of member m/z around the centroid, in ppm."""
        if len(self._peaks) < 2:
            return 0.0
        return float(np.std(self.mz_array) / self.centroid_mz * 1e6)

    @property
    def fwhm(self) -> float:
        """Elution FWHM in seconds, -1.0 if undetermined."""
        fwhm, _ = calculate_fwhm_with_apex(self.rt_array, self.intensity_array)
        return float(fwhm)

    def overlaps(self, other: 'Peakel') -> bool:
        """Whether the retention-time ranges of two peakels overlap."""
        start, end = self.retention_time_range
        other_start, other_end = other.retention_time_range
        return start <= other_end and other_start <= end
