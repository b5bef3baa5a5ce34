"""Optional LangSmith tracing for the report pipeline's AI clients.

Without LANGSMITH_API_KEY every wrapper returns the client it was given.
The key is read on each call, so tests can toggle it with patch.dict.
"""

from __future__ import annotations

import os
from typing import Any

import structlog

_log = structlog.get_logger("tracing")


def tracing_enabled() -> bool:
    return bool(os.environ.get("LANGSMITH_API_KEY", "").strip())


def _wrap_with(wrapper_name: str, client: Any) -> Any:
    if not tracing_enabled():
        return client
    try:
        from langsmith import wrappers
    except ImportError:
        _log.warning(
            "langsmith_not_installed",
            reason="LANGSMITH_API_KEY is set; install the 'tracing' extra to enable traces",
        )
        return client

    wrap = getattr(wrappers, wrapper_name, None)
    if wrap is None:
        _log.warning("langsmith_wrapper_missing", wrapper=wrapper_name)
        return client
    try:
        return wrap(client)
    except Exception as exc:
        _log.error(
            "langsmith_wrap_failed",
            wrapper=wrapper_name,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return client


def wrap_anthropic(client: Any) -> Any:
    """Trace report-text calls made through an AsyncAnthropic client."""
    return _wrap_with("wrap_anthropic", client)


def wrap_gemini(client: Any) -> Any:
    """Trace scenario-image calls made through a google-genai client."""
    return _wrap_with("wrap_gemini", client)
