"""
Prometheus metrics for the Shelflife review service.
"""

from prometheus_client import Counter, Histogram, Gauge


# ── Voting ───────────────────────────────────────────────────
votes_cast_total = Counter(
    "shelflife_votes_cast_total",
    "Total votes cast or retracted",
    ["kind", "operation"],
)

# ── Review Rounds ────────────────────────────────────────────
review_rounds_total = Counter(
    "shelflife_review_rounds_total",
    "Review round lifecycle transitions",
    ["transition"],
)

review_actions_total = Counter(
    "shelflife_review_actions_total",
    "Admin review actions recorded",
    ["action"],
)

# ── Deletion ─────────────────────────────────────────────────
deletions_total = Counter(
    "shelflife_deletions_total",
    "Deletion orchestrator invocations",
    ["result"],
)

deletion_service_outcomes_total = Counter(
    "shelflife_deletion_service_outcomes_total",
    "Per-service deletion outcomes",
    ["service", "outcome"],
)

external_api_latency_seconds = Histogram(
    "shelflife_external_api_latency_seconds",
    "Latency of external service calls",
    ["service", "operation"],
    buckets=[0.1, 0.5, 1, 2, 5, 10, 30],
)

# ── Sync ─────────────────────────────────────────────────────
sync_runs_total = Counter(
    "shelflife_sync_runs_total",
    "Sync runs by type and final status",
    ["sync_type", "status"],
)

sync_duration_seconds = Histogram(
    "shelflife_sync_duration_seconds",
    "Time to complete a sync run",
    ["sync_type"],
    buckets=[1, 5, 10, 30, 60, 120, 300, 600],
)

sync_in_progress = Gauge(
    "shelflife_sync_in_progress",
    "1 while a sync is running",
)

media_items_marked_removed_total = Counter(
    "shelflife_media_items_marked_removed_total",
    "Media items transitioned to removed",
    ["source"],
)
