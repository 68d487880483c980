"""Tests for the Peakel model.

Tests:
- Incremental centroid, apex and totals
- Scan ordering and closing rules
- Derived arrays and shape metrics
"""

import unittest

import numpy as np

from peakelfast.peakels.peakel import Peakel
from peakelfast.peaks.extraction import Peak


def make_peak(mz, scan, intensity=1000.0, rt=None):
    return Peak(
        mz=mz,
        retention_time=float(scan) if rt is None else rt,
        intensity=intensity,
        scan_index=scan,
    )


class TestPeakelGrowth(unittest.TestCase):
    """Test appending peaks to a peakel."""

    def test_single_peak(self):
        """A peakel opened by one peak reflects that peak."""
        peakel = Peakel(7, make_peak(500.0, 3, 250.0))

        self.assertEqual(peakel.id, 7)
        self.assertEqual(len(peakel), 1)
        self.assertEqual(peakel.centroid_mz, 500.0)
        self.assertEqual(peakel.apex_intensity, 250.0)
        self.assertEqual(peakel.first_scan, 3)
        self.assertEqual(peakel.last_scan, 3)
        self.assertFalse(peakel.closed)

    def test_weighted_centroid(self):
        """Centroid is the intensity-weighted mean m/z."""
        peakel = Peakel(0, make_peak(500.0, 0, 100.0))
        peakel.append(make_peak(500.01, 1, 300.0))

        self.assertAlmostEqual(peakel.centroid_mz, 500.0075, places=9)

    def test_zero_intensity_centroid(self):
        """All-zero intensities fall back to the plain mean m/z."""
        peakel = Peakel(0, make_peak(500.0, 0, 0.0))
        peakel.append(make_peak(500.02, 1, 0.0))

        self.assertAlmostEqual(peakel.centroid_mz, 500.01, places=9)

    def test_apex_and_totals(self):
        peakel = Peakel(0, make_peak(500.0, 0, 100.0, rt=10.0))
        peakel.append(make_peak(500.0, 1, 900.0, rt=11.0))
        peakel.append(make_peak(500.0, 2, 400.0, rt=12.0))

        self.assertEqual(peakel.apex_intensity, 900.0)
        self.assertEqual(peakel.apex_retention_time, 11.0)
        self.assertEqual(peakel.total_intensity, 1400.0)
        self.assertEqual(peakel.retention_time_range, (10.0, 12.0))

    def test_gap_is_allowed(self):
        """Peaks need not come from consecutive scans."""
        peakel = Peakel(0, make_peak(500.0, 0))
        peakel.append(make_peak(500.0, 2))

        np.testing.assert_array_equal(peakel.scan_indices, [0, 2])

    def test_same_scan_rejected(self):
        peakel = Peakel(0, make_peak(500.0, 4))
        with self.assertRaises(ValueError):
            peakel.append(make_peak(500.0, 4))

    def test_earlier_scan_rejected(self):
        peakel = Peakel(0, make_peak(500.0, 4))
        with self.assertRaises(ValueError):
            peakel.append(make_peak(500.0, 3))

    def test_closed_peakel_is_frozen(self):
        peakel = Peakel(0, make_peak(500.0, 0))
        peakel.close()

        self.assertTrue(peakel.closed)
        with self.assertRaises(RuntimeError):
            peakel.append(make_peak(500.0, 1))


class TestPeakelDerivedValues(unittest.TestCase):
    """Test arrays and shape metrics."""

    def setUp(self):
        self.rt = np.arange(21, dtype=np.float64)
        self.intensity = 1e5 * np.exp(-0.5 * ((self.rt - 10.0) / 2.0) ** 2)
        self.peakel = Peakel(0, make_peak(600.0, 0, self.intensity[0], rt=self.rt[0]))
        for i in range(1, 21):
            self.peakel.append(make_peak(600.0, i, self.intensity[i], rt=self.rt[i]))

    def test_arrays(self):
        np.testing.assert_allclose(self.peakel.rt_array, self.rt)
        np.testing.assert_allclose(self.peakel.intensity_array, self.intensity)
        np.testing.assert_allclose(self.peakel.mz_array, 600.0)
        self.assertEqual(self.peakel.scan_indices.dtype, np.int64)

    def test_peaks_tuple(self):
        peaks = self.peakel.peaks
        self.assertIsInstance(peaks, tuple)
        self.assertEqual(len(peaks), 21)

    def test_fwhm(self):
        """FWHM of a Gaussian is 2.3548 * sigma."""
        self.assertAlmostEqual(self.peakel.fwhm, 2.3548 * 2.0, delta=0.1)

    def test_mz_std_constant(self):
        self.assertAlmostEqual(self.peakel.mz_std_ppm, 0.0, places=6)

    def test_mz_std_single_peak(self):
        peakel = Peakel(1, make_peak(600.0, 0))
        self.assertEqual(peakel.mz_std_ppm, 0.0)

    def test_overlaps(self):
        other = Peakel(1, make_peak(700.0, 20, rt=20.0))
        other.append(make_peak(700.0, 25, rt=25.0))
        disjoint = Peakel(2, make_peak(700.0, 30, rt=30.0))

        self.assertTrue(self.peakel.overlaps(other))
        self.assertTrue(other.overlaps(self.peakel))
        self.assertFalse(self.peakel.overlaps(disjoint))

    def test_repr(self):
        self.assertIn("mz=600.0000", repr(self.peakel))


if __name__ == '__main__':
    unittest.main()
