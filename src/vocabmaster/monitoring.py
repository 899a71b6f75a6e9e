"""Monitoring configuration for the learning engine."""
from prometheus_client import Counter, Histogram, start_http_server

# Practice metrics
answers_total = Counter(
    "vocabmaster_answers_total",
    "Total number of answers given in practice sessions",
    ["result"],
)

sessions_started = Counter(
    "vocabmaster_sessions_started_total",
    "Total number of practice sessions started",
)

sessions_completed = Counter(
    "vocabmaster_sessions_completed_total",
    "Total number of practice sessions completed",
)

session_duration = Histogram(
    "vocabmaster_session_duration_seconds",
    "Duration of practice sessions in seconds",
    buckets=[30, 60, 300, 600, 1800],  # 30s, 1min, 5min, 10min, 30min
)

# Gamification metrics
badges_awarded = Counter(
    "vocabmaster_badges_awarded_total",
    "Total number of badges awarded",
    ["badge_id"],
)

level_ups = Counter(
    "vocabmaster_level_ups_total",
    "Total number of level-ups",
)

# Progress metrics
progress_updates = Counter(
    "vocabmaster_progress_updates_total",
    "Total number of spaced repetition progress updates",
    ["result"],
)

persistence_errors = Counter(
    "vocabmaster_persistence_errors_total",
    "Total number of persistence failures",
    ["operation"],
)

# Content metrics
translations = Counter(
    "vocabmaster_translations_total",
    "Total number of translation lookups",
    ["source"],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
