"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, Summary


REQUEST_COUNTER = Counter(
	"disco_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"disco_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SOCKET_CLIENTS = Gauge(
	"disco_socketio_clients",
	"Active Socket.IO clients per namespace",
	["namespace"],
)

SOCKET_EVENTS = Counter(
	"disco_socketio_events_total",
	"Socket.IO events emitted per namespace",
	["namespace", "event"],
)

REALTIME_PUBLISHED = Counter(
	"disco_realtime_published_total",
	"Realtime events fanned out to recipients",
	["event"],
)

RATE_LIMITED_EVENTS = Counter(
	"disco_rate_limited_total",
	"Actions rejected by the sliding-window limiter",
	["action"],
)

DETACHED_TASK_FAILURES = Counter(
	"disco_detached_task_failures_total",
	"Background tasks that ended with an exception",
	["name"],
)

LOCATION_UPDATES = Counter(
	"disco_location_updates_total",
	"Location records appended",
	["kind"],
)

LOCATIONS_PRUNED = Counter(
	"disco_locations_pruned_total",
	"Location records removed by retention pruning",
)

NEARBY_RESULTS = Summary(
	"disco_nearby_results",
	"Nearby query result sizes",
)

MATCH_QUERIES = Counter(
	"disco_match_queries_total",
	"Match discovery queries served",
)

MATCH_RESULTS = Summary(
	"disco_match_results",
	"Match discovery result sizes",
)

MATCH_TRANSITIONS = Counter(
	"disco_match_transitions_total",
	"Match lifecycle actions applied",
	["action"],
)

SAFETY_ALERTS = Counter(
	"disco_safety_alerts_total",
	"Safety alert lifecycle events",
	["type", "action"],
)

SAFETY_CHECKS = Counter(
	"disco_safety_checks_total",
	"Safety check lifecycle events",
	["action"],
)

NOTIFICATIONS = Counter(
	"disco_notifications_total",
	"Notification send outcomes",
	["status"],
)

REDIS_UP = Gauge("disco_redis_up", "Redis availability (1=up,0=down)")
REDIS_LATENCY = Summary("disco_redis_latency_seconds", "Redis ping latency (seconds)")

POSTGRES_UP = Gauge("disco_postgres_up", "Postgres availability (1=up,0=down)")
POSTGRES_LATENCY = Summary("disco_postgres_latency_seconds", "Postgres probe latency (seconds)")

BACKGROUND_RUNS = Counter(
	"disco_background_job_runs_total",
	"Scheduled job executions",
	["name", "result"],
)

BACKGROUND_DURATION = Histogram(
	"disco_background_job_duration_seconds",
	"Scheduled job duration in seconds",
	["name"],
	buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0),
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def socket_connected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).inc()


def socket_disconnected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).dec()


def socket_event(namespace: str, event: str) -> None:
	SOCKET_EVENTS.labels(namespace=namespace, event=event).inc()


def realtime_published(event: str, recipients: int) -> None:
	REALTIME_PUBLISHED.labels(event=event).inc(recipients)


def rate_limited(action: str) -> None:
	RATE_LIMITED_EVENTS.labels(action=action).inc()


def detached_task_failed(name: str) -> None:
	# task names carry the user id after the colon; keep label cardinality bounded
	DETACHED_TASK_FAILURES.labels(name=name.split(":", 1)[0]).inc()


def location_recorded(kind: str) -> None:
	LOCATION_UPDATES.labels(kind=kind).inc()


def locations_pruned(count: int) -> None:
	if count > 0:
		LOCATIONS_PRUNED.inc(count)


def nearby_query(results: int) -> None:
	NEARBY_RESULTS.observe(results)


def match_query(results: int) -> None:
	MATCH_QUERIES.inc()
	MATCH_RESULTS.observe(results)


def match_transition(action: str) -> None:
	MATCH_TRANSITIONS.labels(action=action).inc()


def safety_alert(alert_type: str, action: str) -> None:
	SAFETY_ALERTS.labels(type=alert_type, action=action).inc()


def safety_check(action: str) -> None:
	SAFETY_CHECKS.labels(action=action).inc()


def notification_outcome(status: str, count: int = 1) -> None:
	if count > 0:
		NOTIFICATIONS.labels(status=status).inc(count)


def mark_redis(ok: bool, *, latency_seconds: float | None = None) -> None:
	REDIS_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		REDIS_LATENCY.observe(latency_seconds)


def mark_postgres(ok: bool, *, latency_seconds: float | None = None) -> None:
	POSTGRES_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		POSTGRES_LATENCY.observe(latency_seconds)


def record_job_run(name: str, *, result: str, duration_seconds: float | None = None) -> None:
	BACKGROUND_RUNS.labels(name=name, result=result).inc()
	if duration_seconds is not None:
		BACKGROUND_DURATION.labels(name=name).observe(duration_seconds)
