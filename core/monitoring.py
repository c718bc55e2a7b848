from typing import Any, Dict

import prometheus_client as prom

from core.errors import StoreUnavailable
from core.logging import logger

CHAT_REQUESTS_TOTAL = prom.Counter(
    'chat_requests_total', 'Processed chat requests', ['model', 'outcome']
)
UPSTREAM_ERRORS_TOTAL = prom.Counter(
    'upstream_errors_total', 'Failed provider calls', ['provider', 'kind']
)
HISTORY_WRITE_FAILURES_TOTAL = prom.Counter(
    'history_write_failures_total', 'Transcripts that could not be saved after a reply'
)


def record_request(model: str, outcome: str) -> None:
    CHAT_REQUESTS_TOTAL.labels(model=model or "none", outcome=outcome).inc()


def record_upstream_error(provider: str, kind: str) -> None:
    UPSTREAM_ERRORS_TOTAL.labels(provider=provider, kind=kind).inc()


def record_history_write_failure() -> None:
    HISTORY_WRITE_FAILURES_TOTAL.inc()


async def health_check(store) -> Dict[str, Any]:
    """Returns the gateway's health, probing the session store."""
    if store.stateless:
        return {'status': 'degraded', 'store': 'stateless'}
    try:
        await store.ping()
    except StoreUnavailable as e:
        logger.warning(f"Health check: session store unreachable: {e}")
        return {'status': 'degraded', 'store': 'unreachable'}
    return {'status': 'ok', 'store': 'ok'}
