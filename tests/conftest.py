"""Pytest configuration for peakelfast tests.

This module provides common fixtures for all tests: synthetic LC-MS runs
with a known isotope envelope, and a factory for hand-built peakels.
"""

from typing import List, NamedTuple, Sequence

import numpy as np
import pytest

from peakelfast.constants import C13_MASS_DIFF, PROTON_MASS
from peakelfast.peakels.peakel import Peakel
from peakelfast.peaks.extraction import Peak
from peakelfast.run import InMemoryRun


class SyntheticRun(NamedTuple):
    """A simulated run and the ground truth it was built from."""

    run: InMemoryRun
    retention_times: np.ndarray
    mz_arrays: List[np.ndarray]
    intensity_arrays: List[np.ndarray]
    monoisotopic_mz: float
    monoisotopic_mass: float
    charge: int


def build_envelope_run(
    n_scans: int = 20,
    monoisotopic_mass: float = 1298.6,
    charge: int = 2,
    isotope_ratios: Sequence[float] = (1.0, 0.7, 0.35),
    first_scan: int = 5,
    last_scan: int = 15,
    apex_intensity: float = 1e6,
    sigma_scans: float = 2.0,
    rt_start: float = 100.0,
    rt_step: float = 1.5,
    background_mzs: Sequence[float] = (400.0, 801.3),
    background_intensity: float = 5e4,
    jitter_ppm: float = 1.0,
    seed: int = 0,
) -> SyntheticRun:
    """Centroided MS1 run with one Gaussian-eluting isotope envelope.

    Background ions at ``background_mzs`` are present in every scan at
    constant intensity; their spacing matches no isotope ladder.
    """
    rng = np.random.default_rng(seed)
    mono_mz = monoisotopic_mass / charge + PROTON_MASS
    spacing = C13_MASS_DIFF / charge
    apex_scan = (first_scan + last_scan) / 2.0
    retention_times = rt_start + rt_step * np.arange(n_scans)

    mz_arrays = []
    intensity_arrays = []
    for scan in range(n_scans):
        mzs = []
        intensities = []
        for mz in background_mzs:
            mzs.append(mz * (1 + rng.uniform(-jitter_ppm, jitter_ppm) * 1e-6))
            intensities.append(background_intensity)

        if first_scan <= scan <= last_scan:
            profile = np.exp(-0.5 * ((scan - apex_scan) / sigma_scans) ** 2)
            for k, ratio in enumerate(isotope_ratios):
                mz = mono_mz + k * spacing
                mzs.append(mz * (1 + rng.uniform(-jitter_ppm, jitter_ppm) * 1e-6))
                intensities.append(apex_intensity * ratio * profile)

        order = np.argsort(mzs)
        mz_arrays.append(np.array(mzs, dtype=np.float64)[order])
        intensity_arrays.append(np.array(intensities, dtype=np.float64)[order])

    run = InMemoryRun.from_arrays(retention_times, mz_arrays, intensity_arrays)
    return SyntheticRun(
        run=run,
        retention_times=retention_times,
        mz_arrays=mz_arrays,
        intensity_arrays=intensity_arrays,
        monoisotopic_mz=mono_mz,
        monoisotopic_mass=monoisotopic_mass,
        charge=charge,
    )


def build_peakel(
    peakel_id: int,
    mz: float,
    first_scan: int = 0,
    n_scans: int = 11,
    apex_intensity: float = 1e6,
    rt_start: float = 0.0,
    rt_step: float = 1.0,
    close: bool = True,
) -> Peakel:
    """Peakel with a Gaussian elution profile centred on its middle scan."""
    apex = first_scan + (n_scans - 1) / 2.0
    sigma = max(n_scans / 5.0, 1.0)
    peakel = None
    for scan in range(first_scan, first_scan + n_scans):
        intensity = apex_intensity * np.exp(-0.5 * ((scan - apex) / sigma) ** 2)
        peak = Peak(
            mz=mz,
            retention_time=rt_start + scan * rt_step,
            intensity=float(intensity),
            scan_index=scan,
        )
        if peakel is None:
            peakel = Peakel(peakel_id, peak)
        else:
            peakel.append(peak)
    if close:
        peakel.close()
    return peakel


@pytest.fixture
def envelope_run():
    """The reference run: 20 scans, z=2, three isotopes over scans 5-15."""
    return build_envelope_run()


@pytest.fixture
def envelope_run_factory():
    """Factory for synthetic runs with custom envelope parameters."""
    return build_envelope_run


@pytest.fixture
def peakel_factory():
    """Factory for Gaussian peakels."""
    return build_peakel


# Random seed for reproducibility
@pytest.fixture(scope="session", autouse=True)
def set_random_seed():
    """Set random seed for reproducible tests."""
    np.random.seed(42)
