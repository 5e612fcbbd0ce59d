"""Prometheus metrics configuration."""

from prometheus_client import Counter, Gauge, Histogram

# Registration Metrics
registration_attempts_total = Counter(
    "registration_attempts_total",
    "Total registration attempts by strategy and outcome",
    ["strategy", "outcome"],
)

registration_duration_seconds = Histogram(
    "registration_duration_seconds",
    "Duration of a single registration attempt in seconds",
    ["strategy"],
)

registration_results_total = Counter(
    "registration_results_total",
    "Final registration results by resulting event status",
    ["status"],
)

registrations_in_flight = Gauge(
    "registrations_in_flight", "Number of events currently being registered"
)

registration_skipped_total = Counter(
    "registration_skipped_total", "Events skipped before any attempt", ["reason"]
)

registration_batch_events_total = Counter(
    "registration_batch_events_total", "Events processed by scheduled batches"
)

# Retry Metrics
registration_retries_total = Counter(
    "registration_retries_total", "Retries scheduled by error category", ["error_category"]
)

registration_failures_recorded_total = Counter(
    "registration_failures_recorded_total",
    "Failure records written after retries were exhausted",
    ["error_category"],
)

# Payment Guard Metrics
payment_guard_violations_total = Counter(
    "payment_guard_violations_total", "Payment safety violations detected", ["violation_type"]
)

# Browser Metrics
browser_pages_active = Gauge("browser_pages_active", "Number of open registration pages")

browser_pages_opened_total = Counter(
    "browser_pages_opened_total", "Total registration pages opened"
)

browser_pages_closed_total = Counter(
    "browser_pages_closed_total", "Total registration pages closed"
)

browser_page_wait_seconds = Histogram(
    "browser_page_wait_seconds", "Time spent waiting for a free page slot"
)

browser_crashes_total = Counter(
    "browser_crashes_total", "Total number of browser crashes detected", ["browser_type"]
)

browser_crash_recoveries_total = Counter(
    "browser_crash_recoveries_total", "Total number of successful browser relaunches"
)
