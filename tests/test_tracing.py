"""Tests for LangSmith tracing wrappers: no-ops unless LANGSMITH_API_KEY is set."""

from __future__ import annotations

import types
from unittest.mock import MagicMock, patch


class TestTracingDisabled:
    def test_wrap_anthropic_returns_same_client(self) -> None:
        from spaceplan.utils.tracing import wrap_anthropic

        with patch.dict("os.environ", {"LANGSMITH_API_KEY": ""}):
            client = MagicMock()
            assert wrap_anthropic(client) is client

    def test_wrap_gemini_returns_same_client(self) -> None:
        from spaceplan.utils.tracing import wrap_gemini

        with patch.dict("os.environ", {"LANGSMITH_API_KEY": ""}):
            client = MagicMock()
            assert wrap_gemini(client) is client

    def test_whitespace_only_key_treated_as_disabled(self) -> None:
        from spaceplan.utils.tracing import tracing_enabled

        with patch.dict("os.environ", {"LANGSMITH_API_KEY": "   "}):
            assert not tracing_enabled()


class TestTracingEnabled:
    @patch.dict("os.environ", {"LANGSMITH_API_KEY": "fake-key"})
    def test_wraps_with_langsmith(self) -> None:
        from spaceplan.utils.tracing import wrap_anthropic

        wrapped = object()
        fake = types.ModuleType("langsmith.wrappers")
        fake.wrap_anthropic = MagicMock(return_value=wrapped)  # type: ignore[attr-defined]
        parent = types.ModuleType("langsmith")
        parent.wrappers = fake  # type: ignore[attr-defined]
        with patch.dict("sys.modules", {"langsmith": parent, "langsmith.wrappers": fake}):
            client = MagicMock()
            assert wrap_anthropic(client) is wrapped
            fake.wrap_anthropic.assert_called_once_with(client)

    @patch.dict("os.environ", {"LANGSMITH_API_KEY": "fake-key"})
    @patch.dict("sys.modules", {"langsmith": None, "langsmith.wrappers": None})
    def test_falls_back_on_import_error(self) -> None:
        from spaceplan.utils.tracing import wrap_gemini

        client = MagicMock()
        assert wrap_gemini(client) is client

    @patch.dict("os.environ", {"LANGSMITH_API_KEY": "fake-key"})
    def test_missing_wrapper_returns_client(self) -> None:
        from spaceplan.utils.tracing import wrap_gemini

        fake = types.ModuleType("langsmith.wrappers")
        parent = types.ModuleType("langsmith")
        parent.wrappers = fake  # type: ignore[attr-defined]
        with patch.dict("sys.modules", {"langsmith": parent, "langsmith.wrappers": fake}):
            client = MagicMock()
            assert wrap_gemini(client) is client

    @patch.dict("os.environ", {"LANGSMITH_API_KEY": "fake-key"})
    def test_wrap_failure_returns_client(self) -> None:
        from spaceplan.utils.tracing import wrap_anthropic

        fake = types.ModuleType("langsmith.wrappers")
        fake.wrap_anthropic = MagicMock(side_effect=TypeError("unsupported client"))  # type: ignore[attr-defined]
        parent = types.ModuleType("langsmith")
        parent.wrappers = fake  # type: ignore[attr-defined]
        with patch.dict("sys.modules", {"langsmith": parent, "langsmith.wrappers": fake}):
            client = MagicMock()
            assert wrap_anthropic(client) is client
