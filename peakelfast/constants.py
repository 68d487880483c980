"""Physical constants and default tolerances for LC-MS feature detection.

This module provides the constants shared by the extraction, growth and
picking stages. Values are sourced from NIST or established proteomics
standards.

Key Features
------------
- Correct PROTON_MASS (1.007276466622 Da, not hydrogen atom mass!)
- 13C - 12C spacing used to recognise isotope envelopes
- Instrument types used by the parameter presets
- Default tolerance settings for peak linking and isotope matching

Sources
-------
- NIST physical constants: https://physics.nist.gov/cgi-bin/cuu/Value
"""

from enum import Enum

# =============================================================================
# Fundamental Physical Constants (NIST values)
# =============================================================================

# Proton mass (NOT hydrogen atom mass!)
# Source: NIST 2018 CODATA
PROTON_MASS = 1.007276466622  # Da

# =============================================================================
# Isotope Masses
# =============================================================================

# 13C - 12C mass difference, the spacing of successive isotope peaks at z=1
C13_MASS_DIFF = 1.0033548  # Da

# =============================================================================
# Instrument Types
# =============================================================================


class InstrumentType(Enum):
    """Instrument types with different mass accuracy characteristics."""
    ORBITRAP = "orbitrap"  # ~240K resolution, 2-5 ppm
    MR_TOF = "mr_tof"      # >1M resolution, <1 ppm
    ASTRAL = "astral"      # Orbitrap-based, similar to Orbitrap


# =============================================================================
# Default Tolerance Settings
# =============================================================================

# Peak-to-peakel linking tolerance in PPM
# Must absorb scan-to-scan centroid jitter
DEFAULT_PEAKEL_TOLERANCE = 10.0  # ppm

# Default isotope detection tolerance in PPM
# Used for matching peakel centroids against the C13 ladder
DEFAULT_ISOTOPE_TOLERANCE = 10.0  # ppm

# Number of consecutive scans a peakel may skip before it is closed
DEFAULT_MAX_SCAN_GAP = 2

# Charge states considered during isotope envelope search
DEFAULT_MIN_CHARGE = 1
DEFAULT_MAX_CHARGE = 4

# Longest isotope envelope assembled per feature
DEFAULT_MAX_ISOTOPES = 6


def isotope_spacing(charge: int) -> float:
    """Expected m/z spacing between successive isotope peaks at a charge."""
    return C13_MASS_DIFF / charge


def neutral_mass(mz: float, charge: int) -> float:
    """Calculate neutral mass from m/z and charge.

    M = (m/z) × z - z × proton_mass
    """
    return (mz - PROTON_MASS) * charge
