"""Central registry for Prometheus metrics used by the moderation service."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

MOD_SCANS_TOTAL = Counter(
	"mod_scans_total",
	"Banned-word scans executed",
	["result"],
)

MOD_BANNED_WORD_MATCHES_TOTAL = Counter(
	"mod_banned_word_matches_total",
	"Banned-word matches found by scans",
	["category"],
)

MOD_BANNED_WORDS_ADDED_TOTAL = Counter(
	"mod_banned_words_added_total",
	"Banned words added by moderators",
)

MOD_REPORTS_TOTAL = Counter(
	"mod_reports_total",
	"Moderation reports submitted",
	["category"],
)

MOD_REPORT_TRANSITIONS_TOTAL = Counter(
	"mod_report_transitions_total",
	"Moderation report lifecycle transitions",
	["action", "result"],
)

MOD_NOTIFICATIONS_TOTAL = Counter(
	"mod_notifications_total",
	"Banned-word notifications evaluated for post authors",
	["result"],
)

MOD_DATA_ERRORS_TOTAL = Counter(
	"mod_data_errors_total",
	"Data service failures seen by moderation components",
	["table", "op"],
)

MOD_REPORT_LIST_LATENCY_MS = Histogram(
	"mod_report_list_latency_ms",
	"Moderation report list build latency (milliseconds)",
	buckets=(5.0, 10.0, 25.0, 50.0, 100.0, 250.0, 500.0, 1000.0),
)


def scan_completed(matched: int) -> None:
	MOD_SCANS_TOTAL.labels(result="flagged" if matched else "clean").inc()


def banned_word_matched(category: str | None) -> None:
	MOD_BANNED_WORD_MATCHES_TOTAL.labels(category=category or "none").inc()


def report_transition(action: str, result: str) -> None:
	MOD_REPORT_TRANSITIONS_TOTAL.labels(action=action, result=result).inc()


def notification_result(result: str) -> None:
	MOD_NOTIFICATIONS_TOTAL.labels(result=result).inc()


def data_error(table: str, op: str) -> None:
	MOD_DATA_ERRORS_TOTAL.labels(table=table, op=op).inc()
