"""
Stabilization of the raw per-frame classification stream.

Turns a noisy stream of (label, confidence) results into a smoothed
current prediction and a de-duplicated history of detection events:

    - Low-confidence or empty frames decay the held confidence instead of
      dropping the label at once, so a brief dropout does not flap.
    - Confident frames vote in a short rolling window; the majority label
      is promoted, with a bonus for frames that agree.
    - A promoted label is logged to history unless the previous entry has
      the same label and is less than ``dedup_window_s`` old.
"""

import math
import logging
from collections import Counter, deque
from dataclasses import dataclass
from typing import Deque, Iterable, NamedTuple, Optional, Tuple

from gesture_stream.core.types import (
    ClassificationResult,
    GestureLabel,
    HistoryEntry,
    StabilizedPrediction,
    TrackingState,
)
from gesture_stream.modules.recognition.history import DEFAULT_HISTORY_CAPACITY, PredictionHistory

logger = logging.getLogger(__name__)


@dataclass
class StabilizerConfig:
    """Smoothing policy. All values are tunable, none is semantic."""
    vote_capacity: int = 5              # K: rolling votes kept
    vote_window_s: float = 1.0          # votes older than this no longer count
    min_confidence: float = 0.6         # below this a frame counts as "no detection"
    decay_factor: float = 0.9           # per empty frame
    decay_floor: float = 0.01           # decayed confidence below this snaps to 0
    clear_threshold: float = 0.3        # label dropped once confidence falls below
    consistency_bonus: float = 0.05     # per additional agreeing vote
    confidence_cap: float = 0.95
    history_min_confidence: float = 0.7
    dedup_window_s: float = 2.0         # W
    history_capacity: int = DEFAULT_HISTORY_CAPACITY

    def __post_init__(self):
        if self.vote_capacity < 1:
            raise ValueError("vote_capacity must be >= 1")
        if not 0.0 < self.decay_factor < 1.0:
            raise ValueError("decay_factor must be in (0, 1), got %r" % self.decay_factor)
        for name in ("min_confidence", "decay_floor", "clear_threshold",
                     "confidence_cap", "history_min_confidence"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError("%s must be in [0, 1], got %r" % (name, value))
        if self.vote_window_s <= 0 or self.dedup_window_s < 0:
            raise ValueError("vote_window_s must be > 0 and dedup_window_s >= 0")
        if self.history_capacity < 1:
            raise ValueError("history_capacity must be >= 1")

    @classmethod
    def from_dict(cls, config: dict) -> "StabilizerConfig":
        """Create config from dictionary (YAML parsed)."""
        defaults = cls()
        kwargs = {}
        for name, default in vars(defaults).items():
            if name in config:
                kwargs[name] = type(default)(config[name])
        return cls(**kwargs)


class _Vote(NamedTuple):
    label: GestureLabel
    confidence: float
    timestamp: float


class StabilizerUpdate(NamedTuple):
    """Outcome of feeding one frame to the stabilizer."""
    prediction: StabilizedPrediction
    appended: Optional[HistoryEntry]


class Stabilizer:
    """Majority-vote smoother with confidence decay and history de-duplication.

    Example:
        >>> stabilizer = Stabilizer()
        >>> update = stabilizer.update(ClassificationResult(GestureLabel.HELLO, 0.8), now)
        >>> update.prediction.current_label
        <GestureLabel.HELLO: 'hello'>
    """

    def __init__(self, config: StabilizerConfig = None):
        self.config = config or StabilizerConfig()
        self._votes: Deque[_Vote] = deque(maxlen=self.config.vote_capacity)
        self._label: Optional[GestureLabel] = None
        self._confidence = 0.0
        self._history = PredictionHistory(self.config.history_capacity)

    # ------------------------------------------------------------------
    # Per-frame update
    # ------------------------------------------------------------------

    def update(self, result: Optional[ClassificationResult], timestamp: float) -> StabilizerUpdate:
        """Feed one frame's raw result (None when nothing was detected).

        Args:
            result: raw classification, or None for "no detection"
            timestamp: frame time in epoch seconds, non-decreasing

        Returns:
            StabilizerUpdate with the new prediction and the history
            entry appended by this frame, if any.
        """
        if result is None or result.confidence < self.config.min_confidence:
            self._decay()
            return StabilizerUpdate(self.prediction, None)

        self._expire_votes(timestamp)
        self._votes.append(_Vote(result.label, float(result.confidence), timestamp))

        majority = self._majority()
        if majority is None:
            logger.debug("No majority in votes %s", [v.label.value for v in self._votes])
            return StabilizerUpdate(self.prediction, None)

        label, support, mean_confidence = majority
        bonus = self.config.consistency_bonus * (support - 1)
        self._label = label
        self._confidence = min(mean_confidence + bonus, self.config.confidence_cap)

        appended = self._record(label, self._confidence, timestamp)
        return StabilizerUpdate(self.prediction, appended)

    def _decay(self):
        confidence = self._confidence * self.config.decay_factor
        if confidence < self.config.decay_floor:
            confidence = 0.0
        self._confidence = confidence
        if self._label is not None and confidence < self.config.clear_threshold:
            logger.debug("Gesture lost: %s (confidence %.3f)", self._label.value, confidence)
            self._label = None

    def _expire_votes(self, now: float):
        horizon = now - self.config.vote_window_s
        while self._votes and self._votes[0].timestamp < horizon:
            self._votes.popleft()

    def _majority(self) -> Optional[Tuple[GestureLabel, int, float]]:
        """Unique top label with support >= ceil(n / 2) over the live votes."""
        counts = Counter(v.label for v in self._votes)
        ranked = counts.most_common(2)
        label, support = ranked[0]
        if len(ranked) > 1 and ranked[1][1] == support:
            return None
        if support < math.ceil(len(self._votes) / 2):
            return None
        confidences = [v.confidence for v in self._votes if v.label is label]
        return label, support, sum(confidences) / len(confidences)

    def _record(self, label: GestureLabel, confidence: float, timestamp: float) -> Optional[HistoryEntry]:
        if confidence < self.config.history_min_confidence:
            return None
        last = self._history.last
        if (last is not None and last.gesture is label
                and timestamp - last.timestamp < self.config.dedup_window_s):
            return None
        entry = HistoryEntry(label, confidence, timestamp)
        self._history.append(entry)
        logger.debug("History += %s (%.2f)", label.value, confidence)
        return entry

    # ------------------------------------------------------------------
    # State management
    # ------------------------------------------------------------------

    def reset_tracking(self):
        """Drop live tracking state (votes, label, confidence); keep history."""
        self._votes.clear()
        self._label = None
        self._confidence = 0.0

    def clear_history(self):
        """Empty the history; live tracking state is untouched."""
        self._history.clear()

    def restore_history(self, entries: Iterable[HistoryEntry]):
        self._history.replace(entries)

    @property
    def prediction(self) -> StabilizedPrediction:
        return StabilizedPrediction(self._label, self._confidence)

    @property
    def history(self) -> PredictionHistory:
        return self._history

    @property
    def state(self) -> TrackingState:
        return TrackingState.TRACKING if self._label is not None else TrackingState.IDLE

    @property
    def votes(self) -> list:
        """Live vote labels, oldest first, for debugging."""
        return [v.label.value for v in self._votes]
