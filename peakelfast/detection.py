"""Feature detection: extraction → peakel growth → peakel picking.

``FeatureDetector`` is a template method over three strategies:
- a ``PeakExtractor`` turning each spectrum into peaks
- a ``PeakelGrower`` linking peaks across scans into peakels
- a ``PeakelPicker`` grouping the finished peakels into features

Strategies are shared and never mutated by the detector; all per-run state
lives in a single-use ``DetectionRun`` that moves through
INIT → EXTRACTING ⇄ GROWING → PICKING → DONE (or FAILED / CANCELLED).

Extraction is embarrassingly parallel and can run on a thread pool; results
are re-joined in scan order before they reach the grower, which always runs
on the calling thread. A FeatureField is only returned from a clean run.

Examples
--------
>>> detector = FeatureDetector.from_config(
...     FeatureDetectionConfig.for_instrument(InstrumentType.ORBITRAP)
... )
>>> field = detector.detect(run)
>>> field.query(mz_range=(500.0, 501.0))
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from .constants import InstrumentType
from .exceptions import ConfigurationError, DetectionCancelled, OrderingError
from .features.feature import FeatureField
from .features.picking import IsotopePeakelPicker, PeakelPicker, PeakelPickingParams
from .peakels.growth import PeakelGrower, PeakelGrowthParams, ProximityPeakelGrower
from .peaks.extraction import LocalMaximumPeakExtractor, Peak, PeakExtractionParams, PeakExtractor
from .run import Spectrum, SpectrumSource

logger = logging.getLogger(__name__)


class DetectionState(Enum):
    """Lifecycle of one detection run."""
    INIT = "init"
    EXTRACTING = "extracting"
    GROWING = "growing"
    PICKING = "picking"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class FeatureDetectionConfig:
    """All parameters of a detection pipeline in one place."""

    extraction: PeakExtractionParams = field(default_factory=PeakExtractionParams)
    growth: PeakelGrowthParams = field(default_factory=PeakelGrowthParams)
    picking: PeakelPickingParams = field(default_factory=PeakelPickingParams)

    # Only spectra of this MS level are processed
    ms_level: int = 1

    # Extraction threads and spectra per scheduling chunk
    n_workers: int = 1
    chunk_size: int = 64

    def __post_init__(self):
        _validate_run_settings(self.ms_level, self.n_workers, self.chunk_size)

    @classmethod
    def for_instrument(cls, instrument: InstrumentType, **kwargs) -> 'FeatureDetectionConfig':
        """Create a pipeline configuration from the per-stage presets.

        Args:
            instrument: Instrument type enum
            **kwargs: Overrides for ms_level, n_workers or chunk_size

        Returns:
            FeatureDetectionConfig with instrument-specific defaults
        """
        return cls(
            extraction=PeakExtractionParams.for_instrument(instrument),
            growth=PeakelGrowthParams.for_instrument(instrument),
            picking=PeakelPickingParams.for_instrument(instrument),
            **kwargs,
        )


def _validate_run_settings(ms_level: int, n_workers: int, chunk_size: int) -> None:
    if ms_level < 1:
        raise ConfigurationError(f"ms_level must be >= 1, got {ms_level}")
    if n_workers < 1:
        raise ConfigurationError(f"n_workers must be >= 1, got {n_workers}")
    if chunk_size < 1:
        raise ConfigurationError(f"chunk_size must be >= 1, got {chunk_size}")


@dataclass
class DetectionSummary:
    """Counters collected while a run executes."""

    n_spectra: int = 0    # processed spectra (matching MS level)
    n_skipped: int = 0    # spectra of other MS levels
    n_peaks: int = 0
    n_peakels: int = 0
    n_features: int = 0


class FeatureDetector:
    """Template method over extraction, growth and picking strategies.

    Parameters
    ----------
    peak_extractor : PeakExtractor
        Per-spectrum peak extraction strategy
    peakel_grower : PeakelGrower
        Cross-scan linking strategy
    peakel_picker : PeakelPicker
        Isotope envelope picking strategy
    ms_level : int
        MS level of the spectra to process (default: 1)
    n_workers : int
        Extraction threads; 1 extracts on the calling thread (default: 1)
    chunk_size : int
        Spectra extracted per scheduling chunk (default: 64)
    """

    def __init__(
        self,
        peak_extractor: PeakExtractor,
        peakel_grower: PeakelGrower,
        peakel_picker: PeakelPicker,
        *,
        ms_level: int = 1,
        n_workers: int = 1,
        chunk_size: int = 64,
    ):
        _validate_run_settings(ms_level, n_workers, chunk_size)
        self.peak_extractor = peak_extractor
        self.peakel_grower = peakel_grower
        self.peakel_picker = peakel_picker
        self.ms_level = ms_level
        self.n_workers = n_workers
        self.chunk_size = chunk_size

    @classmethod
    def from_config(cls, config: Optional[FeatureDetectionConfig] = None) -> 'FeatureDetector':
        """Build a detector with the default strategy implementations."""
        if config is None:
            config = FeatureDetectionConfig()
        return cls(
            LocalMaximumPeakExtractor(config.extraction),
            ProximityPeakelGrower(config.growth),
            IsotopePeakelPicker(config.picking),
            ms_level=config.ms_level,
            n_workers=config.n_workers,
            chunk_size=config.chunk_size,
        )

    def create_run(
        self,
        source: SpectrumSource,
        cancel_event: Optional[threading.Event] = None,
    ) -> 'DetectionRun':
        return DetectionRun(self, source, cancel_event)

    def detect(
        self,
        source: SpectrumSource,
        cancel_event: Optional[threading.Event] = None,
    ) -> FeatureField:
        """Detect features in a run.

        Parameters
        ----------
        source : SpectrumSource
            Run reader delivering spectra in ascending retention time
        cancel_event : threading.Event, optional
            Set from another thread to abort the run

        Returns
        -------
        FeatureField
            All features of the run (empty if none qualify)

        Raises
        ------
        InputError, OrderingError
            Malformed or out-of-order spectra
        DetectionCancelled
            ``cancel_event`` was set before the run completed
        """
        return self.create_run(source, cancel_event).execute()


class DetectionRun:
    """One execution of a ``FeatureDetector`` over one run."""

    def __init__(
        self,
        detector: FeatureDetector,
        source: SpectrumSource,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.detector = detector
        self.source = source
        self.cancel_event = cancel_event
        self.summary = DetectionSummary()
        self._state = DetectionState.INIT
        self._result: Optional[FeatureField] = None

    @property
    def state(self) -> DetectionState:
        return self._state

    @property
    def result(self) -> Optional[FeatureField]:
        """The feature field of a completed run, None otherwise."""
        return self._result if self._state is DetectionState.DONE else None

    def _set_state(self, state: DetectionState) -> None:
        if state is not self._state:
            logger.debug(f"Detection run: {self._state.value} -> {state.value}")
            self._state = state

    def _cancel_requested(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def _check_cancelled(self) -> None:
        if self._cancel_requested():
            raise DetectionCancelled("Feature detection cancelled")

    def execute(self) -> FeatureField:
        """Run the pipeline to completion.

        Raises:
            RuntimeError: if this run was already executed
        """
        if self._state is not DetectionState.INIT:
            raise RuntimeError(f"Detection run already executed (state: {self._state.value})")

        try:
            result = self._execute()
        except DetectionCancelled:
            self._set_state(DetectionState.CANCELLED)
            logger.warning(
                f"Detection cancelled after {self.summary.n_spectra:,} spectra"
            )
            raise
        except Exception as exc:
            self._set_state(DetectionState.FAILED)
            logger.error(f"Detection failed in run of {self.summary.n_spectra:,} spectra: {exc}")
            raise

        self._result = result
        self._set_state(DetectionState.DONE)
        return result

    def _execute(self) -> FeatureField:
        detector = self.detector
        arena = detector.peakel_grower.start()

        self._set_state(DetectionState.EXTRACTING)
        executor = None
        if detector.n_workers > 1:
            executor = ThreadPoolExecutor(
                max_workers=detector.n_workers, thread_name_prefix="peak-extraction"
            )

        try:
            for chunk in self._spectrum_chunks():
                self._check_cancelled()
                self._set_state(DetectionState.EXTRACTING)
                peak_lists = self._extract_chunk(chunk, executor)

                self._set_state(DetectionState.GROWING)
                for (scan_index, spectrum), peaks in zip(chunk, peak_lists):
                    self._check_cancelled()
                    arena.add_scan(scan_index, spectrum.retention_time, peaks)
                    self.summary.n_peaks += len(peaks)
        finally:
            if executor is not None:
                executor.shutdown(wait=True, cancel_futures=True)

        peakels = arena.finish()
        self.summary.n_peakels = len(peakels)

        self._check_cancelled()
        self._set_state(DetectionState.PICKING)
        result = detector.peakel_picker.pick(peakels, should_stop=self._cancel_requested)
        self.summary.n_features = len(result)

        if self.summary.n_spectra == 0:
            logger.warning(f"No MS{detector.ms_level} spectra in run")
        logger.info(
            f"✓ Detected {len(result):,} features in {self.summary.n_spectra:,} spectra "
            f"({self.summary.n_peaks:,} peaks, {self.summary.n_peakels:,} peakels)"
        )
        return result

    def _spectrum_chunks(self) -> Iterator[List[Tuple[int, Spectrum]]]:
        """Yield chunks of (scan_index, spectrum), checking retention-time order.

        Retention time may never decrease across the whole run; among the
        processed spectra it must strictly increase.
        """
        detector = self.detector
        chunk: List[Tuple[int, Spectrum]] = []
        last_rt = None
        last_any_rt = None

        for index in range(self.source.spectrum_count()):
            spectrum = self.source.spectrum(index)
            if last_any_rt is not None and spectrum.retention_time < last_any_rt:
                raise OrderingError(
                    f"Spectrum {index} (MS{spectrum.ms_level}) at RT {spectrum.retention_time} "
                    f"precedes RT {last_any_rt}"
                )
            last_any_rt = spectrum.retention_time

            if spectrum.ms_level != detector.ms_level:
                self.summary.n_skipped += 1
                continue

            if last_rt is not None and spectrum.retention_time <= last_rt:
                raise OrderingError(
                    f"Spectrum {index} at RT {spectrum.retention_time} does not follow RT {last_rt}"
                )
            last_rt = spectrum.retention_time

            chunk.append((self.summary.n_spectra, spectrum))
            self.summary.n_spectra += 1

            if len(chunk) >= detector.chunk_size:
                yield chunk
                chunk = []

        if chunk:
            yield chunk

    def _extract_chunk(
        self,
        chunk: List[Tuple[int, Spectrum]],
        executor: Optional[ThreadPoolExecutor],
    ) -> List[List[Peak]]:
        extractor = self.detector.peak_extractor

        def extract(item: Tuple[int, Spectrum]) -> List[Peak]:
            scan_index, spectrum = item
            return extractor.extract(
                spectrum.mz_array,
                spectrum.intensity_array,
                spectrum.retention_time,
                scan_index,
            )

        if executor is None:
            return [extract(item) for item in chunk]
        # map() yields in submission order
        return list(executor.map(extract, chunk))
