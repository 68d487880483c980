"""Tests for the feature detection pipeline.

Tests:
- End-to-end detection on a simulated run with a known envelope
- Run lifecycle states (DONE, FAILED, CANCELLED)
- Determinism and parallel extraction
- MS level filtering and retention-time ordering
- Configuration validation and strategy substitution
"""

import logging
import threading

import numpy as np
import pytest

from peakelfast.constants import InstrumentType
from peakelfast.detection import (
    DetectionState,
    FeatureDetectionConfig,
    FeatureDetector,
)
from peakelfast.exceptions import (
    ConfigurationError,
    DetectionCancelled,
    InputError,
    OrderingError,
)
from peakelfast.features.feature import FeatureField
from peakelfast.peaks.extraction import LocalMaximumPeakExtractor, PeakExtractionParams
from peakelfast.run import InMemoryRun, Spectrum, SpectrumSource


@pytest.fixture
def config():
    return FeatureDetectionConfig(extraction=PeakExtractionParams(noise_threshold=100.0))


def assert_same_records(a, b):
    assert a.dtype == b.dtype
    for name in a.dtype.names:
        np.testing.assert_array_equal(a[name], b[name])


class TestFeatureDetectionConfig:
    """Test pipeline configuration."""

    @pytest.mark.parametrize("kwargs", [
        {"ms_level": 0},
        {"n_workers": 0},
        {"chunk_size": 0},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ConfigurationError):
            FeatureDetectionConfig(**kwargs)

    def test_invalid_detector_settings(self):
        with pytest.raises(ConfigurationError):
            FeatureDetector(
                LocalMaximumPeakExtractor(), None, None, n_workers=0,
            )

    def test_for_instrument(self):
        config = FeatureDetectionConfig.for_instrument(InstrumentType.MR_TOF, n_workers=2)

        assert config.n_workers == 2
        assert config.growth.mz_tolerance_ppm == 3.0
        assert config.picking.isotope_tolerance_ppm == 3.0

    def test_from_config_defaults(self):
        detector = FeatureDetector.from_config()

        assert detector.ms_level == 1
        assert detector.n_workers == 1
        assert isinstance(detector.peak_extractor, LocalMaximumPeakExtractor)


class TestEndToEnd:
    """Detection on the simulated reference run."""

    def test_single_feature(self, envelope_run, config):
        field = FeatureDetector.from_config(config).detect(envelope_run.run)

        assert len(field) == 1
        feature = field[0]
        assert feature.charge == 2
        assert feature.n_isotopes == 3
        assert feature.monoisotopic_mass == pytest.approx(envelope_run.monoisotopic_mass, abs=0.01)
        assert feature.retention_time_range == (
            envelope_run.retention_times[5], envelope_run.retention_times[15],
        )
        assert feature.apex_retention_time == envelope_run.retention_times[10]
        assert feature.score > 0.99

    def test_summary(self, envelope_run, config):
        detector = FeatureDetector.from_config(config)
        run = detector.create_run(envelope_run.run)

        run.execute()

        assert run.state is DetectionState.DONE
        assert run.summary.n_spectra == 20
        assert run.summary.n_skipped == 0
        assert run.summary.n_peaks == 73
        assert run.summary.n_peakels == 5
        assert run.summary.n_features == 1

    def test_background_not_grouped(self, envelope_run, config):
        field = FeatureDetector.from_config(config).detect(envelope_run.run)

        assert field.query(mz_range=(399.0, 401.0)) == []
        assert field.query(mz_range=(800.0, 802.0)) == []

    def test_rerun_identical(self, envelope_run, config):
        detector = FeatureDetector.from_config(config)

        first = detector.detect(envelope_run.run).to_records()
        second = detector.detect(envelope_run.run).to_records()

        assert_same_records(first, second)

    def test_parallel_matches_sequential(self, envelope_run, config):
        sequential = FeatureDetector.from_config(config).detect(envelope_run.run)
        parallel_config = FeatureDetectionConfig(
            extraction=config.extraction, n_workers=4, chunk_size=3,
        )

        parallel = FeatureDetector.from_config(parallel_config).detect(envelope_run.run)

        assert_same_records(sequential.to_records(), parallel.to_records())
        assert [f.peakel_ids for f in sequential] == [f.peakel_ids for f in parallel]

    def test_chunk_size_irrelevant(self, envelope_run, config):
        small = FeatureDetectionConfig(extraction=config.extraction, chunk_size=1)

        a = FeatureDetector.from_config(config).detect(envelope_run.run)
        b = FeatureDetector.from_config(small).detect(envelope_run.run)

        assert_same_records(a.to_records(), b.to_records())

    def test_high_threshold_gives_empty_field(self, envelope_run):
        config = FeatureDetectionConfig(extraction=PeakExtractionParams(noise_threshold=1e9))
        detector = FeatureDetector.from_config(config)
        run = detector.create_run(envelope_run.run)

        field = run.execute()

        assert len(field) == 0
        assert run.state is DetectionState.DONE
        assert run.result is field

    def test_logs_summary(self, envelope_run, config, caplog):
        with caplog.at_level(logging.INFO, logger="peakelfast"):
            FeatureDetector.from_config(config).detect(envelope_run.run)

        assert "Detected 1 features in 20 spectra" in caplog.text


class TestMSLevels:
    """Only spectra of the configured MS level are processed."""

    def test_ms2_skipped(self, envelope_run, config):
        rts, mzs, intensities, levels = [], [], [], []
        for rt, mz, intensity in zip(
            envelope_run.retention_times, envelope_run.mz_arrays, envelope_run.intensity_arrays
        ):
            rts += [rt, rt + 0.5]
            mzs += [mz, np.array([300.0, 650.0])]
            intensities += [intensity, np.array([1e7, 1e7])]
            levels += [1, 2]
        source = InMemoryRun.from_arrays(rts, mzs, intensities, levels)
        run = FeatureDetector.from_config(config).create_run(source)

        field = run.execute()

        assert len(field) == 1
        assert run.summary.n_spectra == 20
        assert run.summary.n_skipped == 20

    def test_out_of_order_ms2(self, envelope_run, config):
        """Order is checked on every spectrum, not only the processed level."""
        rts = list(envelope_run.retention_times)
        mzs = list(envelope_run.mz_arrays)
        intensities = list(envelope_run.intensity_arrays)
        levels = [1] * len(rts)
        rts.insert(8, rts[7] - 1.0)
        mzs.insert(8, np.array([300.0]))
        intensities.insert(8, np.array([1e5]))
        levels.insert(8, 2)
        source = InMemoryRun.from_arrays(rts, mzs, intensities, levels)
        run = FeatureDetector.from_config(config).create_run(source)

        with pytest.raises(OrderingError):
            run.execute()

        assert run.state is DetectionState.FAILED
        assert run.result is None

    def test_ms2_at_same_rt_allowed(self, envelope_run, config):
        """An MS2 scan may share the retention time of its MS1 survey scan."""
        rts, mzs, intensities, levels = [], [], [], []
        for rt, mz, intensity in zip(
            envelope_run.retention_times, envelope_run.mz_arrays, envelope_run.intensity_arrays
        ):
            rts += [rt, rt]
            mzs += [mz, np.array([300.0])]
            intensities += [intensity, np.array([1e5])]
            levels += [1, 2]
        source = InMemoryRun.from_arrays(rts, mzs, intensities, levels)

        field = FeatureDetector.from_config(config).detect(source)

        assert len(field) == 1

    def test_no_matching_spectra(self, envelope_run, config):
        ms2_config = FeatureDetectionConfig(extraction=config.extraction, ms_level=2)
        run = FeatureDetector.from_config(ms2_config).create_run(envelope_run.run)

        field = run.execute()

        assert len(field) == 0
        assert run.summary.n_skipped == 20
        assert run.state is DetectionState.DONE


class TestRunLifecycle:
    """Test states and error propagation."""

    def test_initial_state(self, envelope_run, config):
        run = FeatureDetector.from_config(config).create_run(envelope_run.run)

        assert run.state is DetectionState.INIT
        assert run.result is None

    def test_empty_run(self, config):
        run = FeatureDetector.from_config(config).create_run(InMemoryRun([]))

        field = run.execute()

        assert isinstance(field, FeatureField)
        assert len(field) == 0
        assert run.state is DetectionState.DONE

    def test_execute_once(self, envelope_run, config):
        run = FeatureDetector.from_config(config).create_run(envelope_run.run)
        run.execute()

        with pytest.raises(RuntimeError):
            run.execute()

    def test_out_of_order_retention_time(self, envelope_run, config):
        rts = list(envelope_run.retention_times)
        rts[7] = rts[6]
        source = InMemoryRun.from_arrays(rts, envelope_run.mz_arrays, envelope_run.intensity_arrays)
        run = FeatureDetector.from_config(config).create_run(source)

        with pytest.raises(OrderingError):
            run.execute()

        assert run.state is DetectionState.FAILED
        assert run.result is None

    def test_malformed_spectrum(self, envelope_run, config):
        mz_arrays = list(envelope_run.mz_arrays)
        mz_arrays[3] = mz_arrays[3][::-1]
        source = InMemoryRun.from_arrays(
            envelope_run.retention_times, mz_arrays, envelope_run.intensity_arrays
        )
        run = FeatureDetector.from_config(config).create_run(source)

        with pytest.raises(InputError):
            run.execute()

        assert run.state is DetectionState.FAILED
        assert run.result is None

    def test_malformed_spectrum_parallel(self, envelope_run, config):
        intensity_arrays = list(envelope_run.intensity_arrays)
        intensity_arrays[12] = -intensity_arrays[12]
        source = InMemoryRun.from_arrays(
            envelope_run.retention_times, envelope_run.mz_arrays, intensity_arrays
        )
        parallel = FeatureDetectionConfig(extraction=config.extraction, n_workers=3, chunk_size=4)
        run = FeatureDetector.from_config(parallel).create_run(source)

        with pytest.raises(InputError):
            run.execute()

        assert run.state is DetectionState.FAILED

    def test_cancel_before_start(self, envelope_run, config):
        cancel = threading.Event()
        cancel.set()
        run = FeatureDetector.from_config(config).create_run(envelope_run.run, cancel)

        with pytest.raises(DetectionCancelled):
            run.execute()

        assert run.state is DetectionState.CANCELLED
        assert run.result is None

    def test_cancel_during_run(self, envelope_run, config):
        cancel = threading.Event()
        inner = LocalMaximumPeakExtractor(config.extraction)

        class CancellingExtractor:
            def extract(self, mz_array, intensity_array, retention_time, scan_index):
                if scan_index == 5:
                    cancel.set()
                return inner.extract(mz_array, intensity_array, retention_time, scan_index)

        base = FeatureDetector.from_config(config)
        detector = FeatureDetector(
            CancellingExtractor(), base.peakel_grower, base.peakel_picker, chunk_size=1,
        )
        run = detector.create_run(envelope_run.run, cancel)

        with pytest.raises(DetectionCancelled):
            run.execute()

        assert run.state is DetectionState.CANCELLED
        assert run.summary.n_spectra < 20


class TestStrategies:
    """Strategies are pluggable and shared detectors are reusable."""

    def test_custom_picker(self, envelope_run, config):
        class NoFeatures:
            def __init__(self):
                self.n_peakels = None

            def pick(self, peakels, should_stop=None):
                self.n_peakels = len(peakels)
                return FeatureField()

        picker = NoFeatures()
        base = FeatureDetector.from_config(config)
        detector = FeatureDetector(base.peak_extractor, base.peakel_grower, picker)

        field = detector.detect(envelope_run.run)

        assert len(field) == 0
        assert picker.n_peakels == 5

    def test_in_memory_run_is_source(self, envelope_run):
        assert isinstance(envelope_run.run, SpectrumSource)

    def test_custom_source(self, envelope_run, config):
        class ListSource:
            def __init__(self, spectra):
                self.spectra = spectra

            def spectrum_count(self):
                return len(self.spectra)

            def spectrum(self, index):
                return self.spectra[index]

        spectra = [
            Spectrum(rt, mz, intensity)
            for rt, mz, intensity in zip(
                envelope_run.retention_times,
                envelope_run.mz_arrays,
                envelope_run.intensity_arrays,
            )
        ]

        field = FeatureDetector.from_config(config).detect(ListSource(spectra))

        assert len(field) == 1
