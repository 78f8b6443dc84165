"""Optional MLflow tracing integration.

``trace()`` wraps the audit tool in an MLflow span, and ``setup()`` enables
``mlflow.gemini.autolog()`` so every Gemini call appears as a child span
of the tool call that made it.

Guarded import: the server runs fine without ``mlflow-tracing`` installed.

Env vars (all optional):
    MLFLOW_TRACKING_URI: Where to store traces. Empty = tracing disabled.
    MLFLOW_EXPERIMENT_NAME: Experiment name (default ``video-audit-mcp``).
    AUDIT_TRACING_ENABLED: Set to ``"false"`` to force-disable even with a URI.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from .config import get_config

logger = logging.getLogger(__name__)

try:
    import mlflow
    import mlflow.gemini

    _HAS_MLFLOW = True
except ImportError:
    _HAS_MLFLOW = False


def is_enabled() -> bool:
    """Return True when mlflow-tracing is installed and tracing is configured."""
    return _HAS_MLFLOW and get_config().tracing_enabled


def trace(
    func: Callable | None = None,
    *,
    name: str | None = None,
    span_type: str | None = None,
) -> Callable:
    """Drop-in replacement for ``@mlflow.trace``; identity when tracing is off.

    Usage::

        @trace(name="video_audit", span_type="TOOL")
        async def video_audit(...): ...
    """
    if not is_enabled():
        return func if func is not None else (lambda f: f)
    return mlflow.trace(func, name=name, span_type=span_type)


def setup() -> None:
    """Configure MLflow tracking and enable Gemini autologging.

    Failures are logged; tracing never prevents the server from starting.
    """
    if not is_enabled():
        return
    cfg = get_config()
    try:
        mlflow.set_tracking_uri(cfg.mlflow_tracking_uri)
        mlflow.set_experiment(cfg.mlflow_experiment_name)
        mlflow.gemini.autolog()
        logger.info(
            "MLflow tracing enabled (uri=%s, experiment=%s)",
            cfg.mlflow_tracking_uri, cfg.mlflow_experiment_name,
        )
    except Exception:
        logger.warning("MLflow tracing setup failed, continuing without tracing", exc_info=True)


def shutdown() -> None:
    """Flush pending async traces."""
    if not is_enabled():
        return
    try:
        mlflow.flush_trace_async_logging()
    except Exception:
        logger.warning("MLflow trace flush failed", exc_info=True)


def span_attributes(**attributes: Any) -> None:
    """Attach attributes to the active span, if any."""
    if not is_enabled():
        return
    span = mlflow.get_current_active_span()
    if span is not None:
        span.set_attributes(attributes)
