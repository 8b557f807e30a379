"""Prometheus metrics for Reelkeeper."""

from prometheus_client import Counter, Histogram

CLASSIFICATION_DURATION = Histogram(
    "reelkeeper_classification_duration_seconds",
    "Time spent classifying",
    ["mode"],
)

CLASSIFIER_FALLBACKS = Counter(
    "reelkeeper_classifier_fallbacks_total",
    "Primary model failures that fell back to the secondary model",
    ["mode"],
)

SUGGESTIONS_DEGRADED = Counter(
    "reelkeeper_suggestions_degraded_total",
    "Suggestion requests answered with the default categories",
)

REELS_SAVED = Counter(
    "reelkeeper_reels_saved_total",
    "Total number of saved reels",
    ["category"],
)

PERSISTENCE_ERRORS = Counter(
    "reelkeeper_persistence_errors_total",
    "Key-value writes that failed",
    ["key"],
)
