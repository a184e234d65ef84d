"""
Detection session: lifecycle owner of the gesture pipeline.

Architecture:
    submit_frame -> FeatureExtractor -> TemporalWindowBuffer
    -> GestureClassifier (worker thread) -> Stabilizer -> EventBus

Lifecycle:
    UNINITIALIZED -> LOADING -> READY <-> DETECTING -> DISPOSED

Frames are throttled to ``min_interval_s`` and only one frame is ever in
flight; anything arriving sooner or while busy is dropped, never queued.
Extraction, buffering and stabilization run on the submitting thread;
classification runs on a single worker thread and its result is applied
only if the session is still detecting in the same generation.
"""

import time
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Callable, List, Optional

from gesture_stream.core.errors import (
    CaptureUnavailable,
    InitializationFailure,
    PreconditionViolation,
    SessionDisposedError,
)
from gesture_stream.core.events import EventBus, Events
from gesture_stream.core.types import (
    HistoryEntry,
    NO_PREDICTION,
    SessionState,
    StabilizedPrediction,
)
from gesture_stream.modules.detection.feature_extractor import (
    ExtractorConfig,
    FeatureExtractor,
    create_extractor,
)
from gesture_stream.modules.recognition.classifier import ClassifierConfig, GestureClassifier
from gesture_stream.modules.recognition.history import history_from_json, history_to_json
from gesture_stream.modules.recognition.stabilizer import Stabilizer, StabilizerConfig, StabilizerUpdate
from gesture_stream.modules.recognition.window_buffer import TemporalWindowBuffer, WindowConfig
from gesture_stream.modules.utils.performance_monitor import PerformanceMonitor

logger = logging.getLogger(__name__)

# Progress bands: extractor setup fills 5-50, classifier setup 50-95
_EXTRACTOR_BAND = (5.0, 50.0)
_CLASSIFIER_BAND = (50.0, 95.0)


@dataclass
class SessionConfig:
    """Session throttling and loading configuration."""
    min_interval_s: float = 0.2     # minimum time between accepted frames
    init_timeout_s: float = 30.0

    def __post_init__(self):
        if self.min_interval_s < 0:
            raise ValueError("min_interval_s must be >= 0, got %r" % self.min_interval_s)
        if self.init_timeout_s <= 0:
            raise ValueError("init_timeout_s must be > 0, got %r" % self.init_timeout_s)

    @classmethod
    def from_dict(cls, config: dict) -> "SessionConfig":
        """Create config from dictionary (YAML parsed)."""
        return cls(
            min_interval_s=float(config.get("min_interval_s", 0.2)),
            init_timeout_s=float(config.get("init_timeout_s", 30.0)),
        )


class DetectionSession:
    """One detection session over a single frame stream.

    Example:
        >>> session = DetectionSession(extractor, GestureClassifier())
        >>> session.on_result(lambda prediction: print(prediction))
        >>> session.initialize()
        >>> session.start_detection()
        >>> for frame in camera:
        ...     session.submit_frame(frame)
        >>> session.dispose()
    """

    def __init__(
        self,
        extractor: FeatureExtractor,
        classifier: GestureClassifier,
        stabilizer: Stabilizer = None,
        window: TemporalWindowBuffer = None,
        config: SessionConfig = None,
        clock: Callable[[], float] = time.time,
        event_bus: EventBus = None,
    ):
        self.config = config if config is not None else SessionConfig()
        self._extractor = extractor
        self._classifier = classifier
        self._stabilizer = stabilizer if stabilizer is not None else Stabilizer()
        self._window = window if window is not None else TemporalWindowBuffer()
        self._clock = clock
        self._bus = event_bus if event_bus is not None else EventBus()
        self._perf = PerformanceMonitor()

        self._lock = threading.Lock()
        self._state = SessionState.UNINITIALIZED
        self._progress = 0.0
        self._load_token = 0
        self._load_future: Optional[Future] = None
        self._load_thread: Optional[threading.Thread] = None

        # Detection state
        self._generation = 0
        self._in_flight = False
        self._last_accepted: Optional[float] = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="gesture-classify")

    @classmethod
    def from_config(cls, config, extractor: FeatureExtractor = None, **kwargs) -> "DetectionSession":
        """Build a session from a loaded :class:`Config`."""
        if extractor is None:
            extractor = create_extractor(ExtractorConfig.from_dict(config.extractor))
        return cls(
            extractor=extractor,
            classifier=GestureClassifier(ClassifierConfig.from_dict(config.classifier)),
            stabilizer=Stabilizer(StabilizerConfig.from_dict(config.stabilizer)),
            window=TemporalWindowBuffer(WindowConfig.from_dict(config.window)),
            config=SessionConfig.from_dict(config.session),
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def on_result(self, callback: Callable) -> Callable:
        """``callback(prediction=StabilizedPrediction)`` after every processed frame."""
        return self._bus.subscribe(Events.RESULT, callback)

    def on_history_change(self, callback: Callable) -> Callable:
        """``callback(history=[HistoryEntry], appended=HistoryEntry | None)``."""
        return self._bus.subscribe(Events.HISTORY_CHANGED, callback)

    def on_progress(self, callback: Callable) -> Callable:
        """``callback(progress=float)`` while loading, 0-100."""
        return self._bus.subscribe(Events.PROGRESS, callback)

    def on_state_change(self, callback: Callable) -> Callable:
        """``callback(state=SessionState)`` on every lifecycle transition."""
        return self._bus.subscribe(Events.STATE_CHANGED, callback)

    def on_error(self, callback: Callable) -> Callable:
        """``callback(error=...)`` for initialization failures and lost capture."""
        remove_init = self._bus.subscribe(Events.INIT_FAILED, callback)
        remove_capture = self._bus.subscribe(Events.CAPTURE_UNAVAILABLE, callback)

        def unsubscribe():
            remove_init()
            remove_capture()

        return unsubscribe

    def channel(self, event_name: str, maxsize: int = 0):
        """Thread-safe queue receiving every payload of ``event_name``."""
        return self._bus.channel(event_name, maxsize=maxsize)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def initialize(self, wait: bool = True) -> Future:
        """Set up the extractor and classifier on a background thread.

        Args:
            wait: block until loading finishes or ``init_timeout_s`` passes

        Returns:
            Future resolved when the session is READY.

        Raises:
            InitializationFailure: (``wait=True``) setup failed or timed out
            SessionDisposedError: the session was disposed
        """
        with self._lock:
            if self._state is SessionState.DISPOSED:
                raise SessionDisposedError("initialize() on a disposed session")
            if self._state in (SessionState.READY, SessionState.DETECTING):
                done = Future()
                done.set_result(None)
                return done
            if self._state is SessionState.LOADING:
                future = self._load_future
                token = self._load_token
                started = False
            else:
                self._state = SessionState.LOADING
                self._load_token += 1
                token = self._load_token
                future = self._load_future = Future()
                self._progress = 0.0
                previous = self._load_thread
                loader = self._load_thread = threading.Thread(
                    target=self._load, args=(token, future, previous),
                    name="gesture-session-load", daemon=True,
                )
                started = True

        if started:
            logger.info("Loading gesture pipeline...")
            self._bus.emit(Events.STATE_CHANGED, state=SessionState.LOADING)
            self._bus.emit(Events.PROGRESS, progress=0.0)
            loader.start()

        if wait:
            try:
                future.result(timeout=self.config.init_timeout_s)
            except FutureTimeout:
                error = InitializationFailure(
                    "Initialization timed out after %.1fs" % self.config.init_timeout_s)
                if self._fail_loading(token, future, error) or self._state is not SessionState.READY:
                    raise error from None
        return future

    def _load(self, token: int, future: Future, previous: Optional[threading.Thread]):
        if previous is not None:
            # A timed-out load may still be running on the same resources
            previous.join()
        try:
            self._extractor.initialize(progress=self._band_reporter(token, _EXTRACTOR_BAND))
            self._classifier.initialize(progress=self._band_reporter(token, _CLASSIFIER_BAND))
        except Exception as e:
            if isinstance(e, InitializationFailure):
                error = e
            else:
                error = InitializationFailure("Pipeline setup failed: %s" % e)
                error.__cause__ = e
            self._fail_loading(token, future, error)
            return

        with self._lock:
            current = token == self._load_token and self._state is SessionState.LOADING
            if current:
                self._state = SessionState.READY
                self._progress = 100.0

        if not current:
            logger.debug("Discarding stale load (token %d)", token)
            self._extractor.close()
            self._classifier.close()
            return

        logger.info("Gesture pipeline ready (backend: %s)", self._classifier.backend)
        self._bus.emit(Events.PROGRESS, progress=100.0)
        self._bus.emit(Events.STATE_CHANGED, state=SessionState.READY)
        # Waiters wake only after subscribers have seen READY
        with self._lock:
            self._resolve(future)

    def _band_reporter(self, token: int, band) -> Callable[[float], None]:
        low, high = band

        def report(fraction: float):
            fraction = min(max(float(fraction), 0.0), 1.0)
            self._report_progress(token, low + (high - low) * fraction)

        return report

    def _report_progress(self, token: int, value: float):
        with self._lock:
            if token != self._load_token or self._state is not SessionState.LOADING:
                return
            value = min(max(value, self._progress), 100.0)
            if value == self._progress:
                return
            self._progress = value
        self._bus.emit(Events.PROGRESS, progress=value)

    def _fail_loading(self, token: int, future: Future, error: InitializationFailure) -> bool:
        with self._lock:
            if token != self._load_token or self._state is not SessionState.LOADING:
                return False
            self._state = SessionState.UNINITIALIZED
            self._load_token += 1
            self._progress = 0.0

        logger.error("Initialization failed: %s", error)
        self._bus.emit(Events.PROGRESS, progress=0.0)
        self._bus.emit(Events.INIT_FAILED, error=error)
        self._bus.emit(Events.STATE_CHANGED, state=SessionState.UNINITIALIZED)
        with self._lock:
            self._resolve(future, error)
        return True

    @staticmethod
    def _resolve(future: Future, error: BaseException = None):
        # Caller holds self._lock
        if future is None or future.done():
            return
        if error is None:
            future.set_result(None)
        else:
            future.set_exception(error)

    # ------------------------------------------------------------------
    # Detection control
    # ------------------------------------------------------------------

    def start_detection(self) -> bool:
        """READY -> DETECTING. A no-op in any other live state.

        Returns:
            True if detection was started by this call.
        """
        with self._lock:
            if self._state is SessionState.DISPOSED:
                raise SessionDisposedError("start_detection() on a disposed session")
            if self._state is not SessionState.READY:
                logger.debug("start_detection ignored in state %s", self._state.value)
                return False
            self._state = SessionState.DETECTING
            self._generation += 1
            self._last_accepted = None

        logger.info("Detection started")
        self._bus.emit(Events.STATE_CHANGED, state=SessionState.DETECTING)
        return True

    def stop_detection(self) -> bool:
        """DETECTING -> READY. Clears live tracking state, keeps history.

        An in-flight classification finishing after this call is discarded.
        """
        with self._lock:
            if self._state is not SessionState.DETECTING:
                return False
            self._state = SessionState.READY
            self._generation += 1
            self._window.clear()
            self._stabilizer.reset_tracking()

        logger.info("Detection stopped")
        self._bus.emit(Events.RESULT, prediction=NO_PREDICTION)
        self._bus.emit(Events.STATE_CHANGED, state=SessionState.READY)
        return True

    def report_capture_unavailable(self, reason) -> bool:
        """Called by the capture collaborator when frames cannot be supplied.

        Leaves DETECTING cleanly and reports the error to subscribers.
        """
        error = reason if isinstance(reason, CaptureUnavailable) else CaptureUnavailable(str(reason))
        stopped = self.stop_detection()
        if self._state is SessionState.DISPOSED:
            return False
        logger.error("Capture unavailable: %s", error)
        self._bus.emit(Events.CAPTURE_UNAVAILABLE, error=error)
        return stopped

    # ------------------------------------------------------------------
    # Frame processing
    # ------------------------------------------------------------------

    def submit_frame(self, frame) -> Optional[Future]:
        """Offer one frame to the pipeline.

        Returns:
            None if the frame was dropped (not detecting, throttled or
            busy). Otherwise a Future resolving to the StabilizedPrediction
            after this frame, or to None if the result was discarded
            because detection stopped meanwhile.
        """
        with self._lock:
            if self._state is not SessionState.DETECTING:
                return None
            now = self._clock()
            if self._last_accepted is not None and now - self._last_accepted < self.config.min_interval_s:
                reason = "throttled"
            elif self._in_flight:
                reason = "busy"
            else:
                reason = None
                self._last_accepted = now
                self._in_flight = True
                generation = self._generation

        if reason is not None:
            self._perf.record_drop(reason)
            self._bus.emit(Events.FRAME_DROPPED, reason=reason)
            return None

        try:
            return self._process(frame, generation, now)
        except BaseException:
            self._release_flight()
            raise

    def _process(self, frame, generation: int, timestamp: float) -> Future:
        try:
            with self._perf.measure("extraction"):
                features = self._extractor.extract(frame)
        except PreconditionViolation:
            raise
        except Exception as e:
            logger.debug("Frame dropped, extraction failed: %s", e)
            self._perf.record_error()
            features = None

        with self._lock:
            if generation != self._generation:
                self._in_flight = False
                return self._completed(None)
            if features is not None:
                self._window.push(features)
            if features is None or not self._window.is_ready():
                update = self._stabilizer.update(None, timestamp)
                history = self._stabilizer.history.entries()
                self._in_flight = False
                sequence = None
            else:
                sequence = self._window.as_input()

        if sequence is None:
            self._perf.record_processed()
            self._publish(update, history)
            return self._completed(update.prediction)

        try:
            return self._executor.submit(self._classify, sequence, generation, timestamp)
        except RuntimeError:
            # Executor already shut down by dispose()
            self._release_flight()
            return self._completed(None)

    def _classify(self, sequence, generation: int, timestamp: float) -> Optional[StabilizedPrediction]:
        try:
            try:
                with self._perf.measure("classification"):
                    result = self._classifier.predict(sequence)
            except PreconditionViolation:
                raise
            except Exception as e:
                logger.debug("Classification failed: %s", e)
                self._perf.record_error()
                result = None

            with self._lock:
                if generation != self._generation or self._state is not SessionState.DETECTING:
                    logger.debug("Discarding late result %s", result)
                    return None
                update = self._stabilizer.update(result, timestamp)
                history = self._stabilizer.history.entries()

            self._perf.record_processed()
            self._publish(update, history)
            return update.prediction
        finally:
            self._release_flight()

    def _release_flight(self):
        with self._lock:
            self._in_flight = False

    def _publish(self, update: StabilizerUpdate, history: List[HistoryEntry]):
        self._bus.emit(Events.RESULT, prediction=update.prediction)
        if update.appended is not None:
            self._bus.emit(Events.HISTORY_CHANGED, history=history, appended=update.appended)

    @staticmethod
    def _completed(value) -> Future:
        future = Future()
        future.set_result(value)
        return future

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def clear_history(self):
        """Empty the history; the live prediction is untouched."""
        with self._lock:
            if self._state is SessionState.DISPOSED:
                return
            self._stabilizer.clear_history()
        self._bus.emit(Events.HISTORY_CHANGED, history=[], appended=None)

    def export_history(self) -> str:
        """History as the JSON export array."""
        with self._lock:
            entries = self._stabilizer.history.entries()
        return history_to_json(entries)

    def import_history(self, text: str) -> List[HistoryEntry]:
        """Replace the history with a previously exported JSON array."""
        entries = history_from_json(text)
        with self._lock:
            if self._state is SessionState.DISPOSED:
                return []
            self._stabilizer.restore_history(entries)
            history = self._stabilizer.history.entries()
        self._bus.emit(Events.HISTORY_CHANGED, history=history, appended=None)
        return history

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def dispose(self):
        """Release all resources. Later calls are no-ops or raise SessionDisposedError."""
        with self._lock:
            if self._state is SessionState.DISPOSED:
                return
            was_loading = self._state is SessionState.LOADING
            self._state = SessionState.DISPOSED
            self._generation += 1
            self._load_token += 1
            self._window.clear()
            self._stabilizer.reset_tracking()
            self._resolve(self._load_future, SessionDisposedError("Session disposed while loading"))

        self._executor.shutdown(wait=False)
        if not was_loading:
            # A load still in progress closes its own resources when it ends
            self._extractor.close()
            self._classifier.close()
        logger.info("Session disposed")
        self._bus.emit(Events.STATE_CHANGED, state=SessionState.DISPOSED)
        self._bus.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.dispose()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_detecting(self) -> bool:
        return self._state is SessionState.DETECTING

    @property
    def progress(self) -> float:
        return self._progress

    @property
    def prediction(self) -> StabilizedPrediction:
        with self._lock:
            return self._stabilizer.prediction

    @property
    def history(self) -> List[HistoryEntry]:
        with self._lock:
            return self._stabilizer.history.entries()

    @property
    def stats(self) -> dict:
        report = self._perf.get_report()
        with self._lock:
            report["window_fill"] = round(self._window.fill_ratio, 3)
            report["tracking"] = self._stabilizer.state.value
        report["state"] = self._state.value
        return report
