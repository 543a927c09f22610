"""
Prometheus metrics for the operator process.
"""
import logging

from prometheus_client import Counter, start_http_server

from ghost_operator.config import settings

logger = logging.getLogger("ghost-operator.metrics")

RECONCILIATIONS = Counter(
    "ghost_operator_reconciliations_total",
    "Ghost reconciliations by result",
    ["result"],
)
CONVERGENCE_ACTIONS = Counter(
    "ghost_operator_convergence_actions_total",
    "Dependent resource actions taken by the convergence engine",
    ["kind", "action"],
)

_server_started = False


def start_metrics_server():
    """Expose /metrics on METRICS_PORT once per process. Port 0 disables it."""
    global _server_started
    if _server_started or not settings.METRICS_PORT:
        return
    start_http_server(settings.METRICS_PORT)
    _server_started = True
    logger.info(f"Metrics server listening on :{settings.METRICS_PORT}")


def record_outcome(outcome):
    RECONCILIATIONS.labels(result="success" if outcome.found else "not_found").inc()
    for r in outcome.results:
        CONVERGENCE_ACTIONS.labels(kind=r.kind, action=r.action.value).inc()


def record_failure(retryable: bool):
    RECONCILIATIONS.labels(result="retry" if retryable else "fatal").inc()
