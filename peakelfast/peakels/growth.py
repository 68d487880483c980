"""Peakel growth: linking peaks across scans into chromatographic traces.

Scans are consumed in strictly increasing order. An arena keeps every peakel
of the run under a stable integer id and tracks which ones are still open.
For each scan:
1. Open peakels that fell more than ``max_scan_gap`` scans behind are closed
2. All (open peakel, peak) pairs within the m/z tolerance of the peakel's
   running centroid are collected
3. Pairs are claimed greedily, nearest m/z first; every peakel takes at most
   one peak and every peak extends at most one peakel
4. Unclaimed peaks open new peakels

Matching is greedy per scan, not globally optimal; cost is O(n log n) per scan.

Examples
--------
>>> grower = ProximityPeakelGrower(PeakelGrowthParams(mz_tolerance_ppm=10.0, max_scan_gap=2))
>>> arena = grower.start()
>>> for scan_index, (rt, peaks) in enumerate(scans):
...     arena.add_scan(scan_index, rt, peaks)
>>> peakels = arena.finish()
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

import numpy as np

from ..constants import DEFAULT_MAX_SCAN_GAP, DEFAULT_PEAKEL_TOLERANCE, InstrumentType
from ..exceptions import ConfigurationError, InputError, OrderingError
from ..peaks.extraction import Peak
from .peakel import Peakel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeakelGrowthParams:
    """Parameters for linking peaks into peakels.

    ``max_scan_gap`` is the largest allowed difference between the scan
    indices of consecutive peaks of one peakel; 1 means no missed scans.
    """

    # Linking tolerance around the running centroid (ppm)
    mz_tolerance_ppm: float = DEFAULT_PEAKEL_TOLERANCE

    # Largest scan index step inside a peakel
    max_scan_gap: int = DEFAULT_MAX_SCAN_GAP

    # Shorter peakels are dropped as noise when closed
    min_peakel_length: int = 1

    def __post_init__(self):
        if not np.isfinite(self.mz_tolerance_ppm) or self.mz_tolerance_ppm <= 0:
            raise ConfigurationError(
                f"mz_tolerance_ppm must be > 0, got {self.mz_tolerance_ppm}"
            )
        if self.max_scan_gap < 1:
            raise ConfigurationError(f"max_scan_gap must be >= 1, got {self.max_scan_gap}")
        if self.min_peakel_length < 1:
            raise ConfigurationError(
                f"min_peakel_length must be >= 1, got {self.min_peakel_length}"
            )

    @classmethod
    def for_instrument(cls, instrument: InstrumentType) -> 'PeakelGrowthParams':
        """Create parameters optimized for specific instrument type.

        Args:
            instrument: Instrument type enum

        Returns:
            PeakelGrowthParams with instrument-specific defaults
        """
        if instrument == InstrumentType.MR_TOF:
            return cls(mz_tolerance_ppm=3.0, max_scan_gap=2, min_peakel_length=3)
        elif instrument in (InstrumentType.ORBITRAP, InstrumentType.ASTRAL):
            return cls(mz_tolerance_ppm=10.0, max_scan_gap=2, min_peakel_length=3)
        else:
            raise ConfigurationError(f"Unknown instrument type: {instrument}")


class PeakelArena:
    """Working set of one growth run: peakels stored by stable id.

    The arena is single-use and not thread-safe; it must be fed from one
    thread in scan order.
    """

    def __init__(self, params: PeakelGrowthParams):
        self.params = params
        self._peakels: Dict[int, Peakel] = {}
        self._open_ids: List[int] = []
        self._emitted_ids: List[int] = []
        self._next_id = 0
        self._last_scan: Optional[int] = None
        self._last_rt: Optional[float] = None
        self._finished = False

        self.n_scans = 0
        self.n_peaks = 0
        self.n_discarded = 0

    def get(self, peakel_id: int) -> Peakel:
        return self._peakels[peakel_id]

    @property
    def open_peakels(self) -> List[Peakel]:
        return [self._peakels[i] for i in self._open_ids]

    @property
    def finished(self) -> bool:
        return self._finished

    def add_scan(self, scan_index: int, retention_time: float, peaks: Sequence[Peak]) -> None:
        """Link the peaks of the next scan into the open peakels.

        Parameters
        ----------
        scan_index : int
            Index of the scan; must exceed every previous scan index
        retention_time : float
            Retention time of the scan; must not decrease
        peaks : Sequence[Peak]
            Peaks of this scan (any order)

        Raises
        ------
        OrderingError
            Scan index or retention time goes backwards
        InputError
            A peak belongs to a different scan
        RuntimeError
            The arena was already finished
        """
        if self._finished:
            raise RuntimeError("PeakelArena.add_scan called after finish()")
        if self._last_scan is not None and scan_index <= self._last_scan:
            raise OrderingError(
                f"Scan {scan_index} received after scan {self._last_scan}"
            )
        if self._last_rt is not None and retention_time < self._last_rt:
            raise OrderingError(
                f"Retention time {retention_time} received after {self._last_rt}"
            )
        for peak in peaks:
            if peak.scan_index != scan_index:
                raise InputError(
                    f"Peak from scan {peak.scan_index} submitted with scan {scan_index}"
                )

        self._last_scan = scan_index
        self._last_rt = retention_time
        self.n_scans += 1
        self.n_peaks += len(peaks)

        max_gap = self.params.max_scan_gap

        # Close peakels that can no longer be extended
        still_open = []
        for peakel_id in self._open_ids:
            peakel = self._peakels[peakel_id]
            if scan_index - peakel.last_scan > max_gap:
                self._close(peakel)
            else:
                still_open.append(peakel_id)

        sorted_peaks = sorted(peaks, key=lambda p: p.mz)
        peak_mz = np.array([p.mz for p in sorted_peaks], dtype=np.float64)

        matches = self._match(still_open, peak_mz)

        claimed = np.zeros(len(sorted_peaks), dtype=np.bool_)
        for peakel_id, peak_idx in matches:
            self._peakels[peakel_id].append(sorted_peaks[peak_idx])
            claimed[peak_idx] = True

        # Peakels that cannot reach the next scan are closed right away
        open_ids = []
        for peakel_id in still_open:
            peakel = self._peakels[peakel_id]
            if scan_index + 1 - peakel.last_scan > max_gap:
                self._close(peakel)
            else:
                open_ids.append(peakel_id)

        for peak_idx in np.flatnonzero(~claimed):
            peakel = Peakel(self._next_id, sorted_peaks[peak_idx])
            self._peakels[peakel.id] = peakel
            self._next_id += 1
            open_ids.append(peakel.id)

        self._open_ids = open_ids

        logger.debug(
            f"Scan {scan_index}: {len(peaks)} peaks, {len(matches)} extended, "
            f"{int((~claimed).sum())} new, {len(self._open_ids)} open"
        )

    def _match(self, open_ids: List[int], peak_mz: np.ndarray) -> List[Tuple[int, int]]:
        """Greedy nearest-first assignment of peaks to open peakels."""
        if len(open_ids) == 0 or len(peak_mz) == 0:
            return []

        ppm = self.params.mz_tolerance_ppm
        candidates = []
        for peakel_id in open_ids:
            centroid = self._peakels[peakel_id].centroid_mz
            tol = centroid * ppm / 1e6
            start = np.searchsorted(peak_mz, centroid - tol, side='left')
            end = np.searchsorted(peak_mz, centroid + tol, side='right')
            for j in range(start, end):
                candidates.append((abs(peak_mz[j] - centroid), peak_mz[j], peakel_id, j))

        # Nearest m/z first; ties by peak m/z, then by peakel age
        candidates.sort()

        matches = []
        taken_peakels = set()
        taken_peaks = set()
        for _, _, peakel_id, j in candidates:
            if peakel_id in taken_peakels or j in taken_peaks:
                continue
            taken_peakels.add(peakel_id)
            taken_peaks.add(j)
            matches.append((peakel_id, j))

        return matches

    def _close(self, peakel: Peakel) -> None:
        peakel.close()
        if len(peakel) >= self.params.min_peakel_length:
            self._emitted_ids.append(peakel.id)
        else:
            del self._peakels[peakel.id]
            self.n_discarded += 1

    def finish(self) -> List[Peakel]:
        """Close all open peakels and return every emitted peakel.

        Returns:
            Peakels sorted by (first scan, centroid m/z, id)
        """
        if not self._finished:
            for peakel_id in self._open_ids:
                self._close(self._peakels[peakel_id])
            self._open_ids = []
            self._finished = True

            logger.info(
                f"Grew {len(self._emitted_ids):,} peakels from {self.n_peaks:,} peaks "
                f"in {self.n_scans:,} scans ({self.n_discarded:,} discarded as too short)"
            )

        peakels = [self._peakels[i] for i in self._emitted_ids]
        peakels.sort(key=lambda p: (p.first_scan, p.centroid_mz, p.id))
        return peakels


class PeakelGrower(Protocol):
    """Strategy interface: hands out a fresh working set per run."""

    def start(self) -> PeakelArena: ...


class ProximityPeakelGrower:
    """Greedy nearest-m/z peakel growth.

    The grower only holds immutable parameters and can be shared between
    runs and threads; each run gets its own ``PeakelArena`` from ``start()``.
    """

    def __init__(self, params: Optional[PeakelGrowthParams] = None):
        self.params = params if params is not None else PeakelGrowthParams()

    def start(self) -> PeakelArena:
        return PeakelArena(self.params)

    def grow(self, scans: Iterable[Tuple[int, float, Sequence[Peak]]]) -> List[Peakel]:
        """Grow peakels from (scan_index, retention_time, peaks) tuples."""
        arena = self.start()
        for scan_index, retention_time, peaks in scans:
            arena.add_scan(scan_index, retention_time, peaks)
        return arena.finish()
