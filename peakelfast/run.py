"""Run reader interface and an in-memory run container.

The detection pipeline reads spectra through the ``SpectrumSource`` protocol,
so any reader (mzML, Thermo raw, Bruker, ...) can be plugged in as long as it
exposes ``spectrum_count()`` and ``spectrum(index)``. ``InMemoryRun`` wraps
plain numpy arrays and is what the tests and the convenience API use.

Examples
--------
>>> run = InMemoryRun.from_arrays(
...     retention_times=[10.0, 10.5],
...     mz_arrays=[np.array([500.0, 500.5]), np.array([500.0, 500.5])],
...     intensity_arrays=[np.array([1e5, 6e4]), np.array([2e5, 1.2e5])],
... )
>>> run.spectrum_count()
2
"""

from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, runtime_checkable

import numpy as np


@dataclass(frozen=True)
class Spectrum:
    """One scan: m/z-sorted arrays at a given retention time."""

    retention_time: float
    mz_array: np.ndarray
    intensity_array: np.ndarray
    ms_level: int = 1


@runtime_checkable
class SpectrumSource(Protocol):
    """Read-only access to the ordered spectra of one LC-MS run."""

    def spectrum_count(self) -> int: ...

    def spectrum(self, index: int) -> Spectrum: ...


class InMemoryRun:
    """A run held entirely in memory.

    Parameters
    ----------
    spectra : Sequence[Spectrum]
        Spectra in acquisition order
    """

    def __init__(self, spectra: Sequence[Spectrum]):
        self._spectra = list(spectra)

    @classmethod
    def from_arrays(
        cls,
        retention_times: Sequence[float],
        mz_arrays: Sequence[np.ndarray],
        intensity_arrays: Sequence[np.ndarray],
        ms_levels: Optional[Sequence[int]] = None,
    ) -> 'InMemoryRun':
        """Build a run from parallel per-scan arrays.

        Array contents are not validated here; malformed spectra are reported
        by the peak extractor when the run is processed.
        """
        if not (len(retention_times) == len(mz_arrays) == len(intensity_arrays)):
            raise ValueError(
                "retention_times, mz_arrays and intensity_arrays must have the same length"
            )
        if ms_levels is None:
            ms_levels = [1] * len(retention_times)
        elif len(ms_levels) != len(retention_times):
            raise ValueError("ms_levels must have one entry per spectrum")

        spectra: List[Spectrum] = []
        for rt, mz, intensity, level in zip(retention_times, mz_arrays, intensity_arrays, ms_levels):
            spectra.append(Spectrum(
                retention_time=float(rt),
                mz_array=np.asarray(mz, dtype=np.float64),
                intensity_array=np.asarray(intensity, dtype=np.float64),
                ms_level=int(level),
            ))
        return cls(spectra)

    def spectrum_count(self) -> int:
        return len(self._spectra)

    def spectrum(self, index: int) -> Spectrum:
        return self._spectra[index]
