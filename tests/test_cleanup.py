"""Tests for deferred cleanup"""
from unittest.mock import Mock

import pytest

from merge_repos.core.cleanup import CleanupStack
from merge_repos.core.workspaces import WorkspaceRegistry, scratch_path
from merge_repos.exceptions import CleanupError, ConfigurationError, ManifestError
from merge_repos.models.workspace import WorkspaceHandle


class TestCleanupStack:
    """Test cleanup ordering and failure handling."""

    def test_runs_in_reverse_order_once(self):
        calls = []
        stack = CleanupStack()
        stack.register("first", lambda: calls.append("first"))
        stack.register("second", lambda: calls.append("second"))

        assert stack.run() == []
        assert stack.run() == []
        assert calls == ["second", "first"]
        assert len(stack) == 0

    def test_failures_do_not_stop_other_actions(self):
        later = Mock()
        stack = CleanupStack()
        stack.register("later", later)
        stack.register("broken", Mock(side_effect=OSError("disk")))

        failures = stack.run()

        later.assert_called_once()
        assert [name for name, _ in failures] == ["broken"]

    def test_context_raises_cleanup_error(self):
        with pytest.raises(CleanupError) as exc_info:
            with CleanupStack() as stack:
                stack.register("broken", Mock(side_effect=OSError("disk")))

        assert exc_info.value.failures[0][0] == "broken"

    def test_original_failure_wins(self):
        """Test a pipeline failure is not masked by cleanup failures."""
        action = Mock(side_effect=OSError("disk"))
        with pytest.raises(ManifestError):
            with CleanupStack() as stack:
                stack.register("broken", action)
                raise ManifestError("bad manifest")

        action.assert_called_once()


class TestWorkspaceRegistry:
    """Test scratch workspace bookkeeping."""

    def test_scratch_path(self):
        assert scratch_path("/work/.auto-merge/temp/", "otel-js") == "/work/.auto-merge/temp-otel-js"

    def test_register_removes_stale_folder(self, temp_dir):
        stale = temp_dir / "temp-otel-js"
        stale.mkdir()
        (stale / "old.txt").write_text("old")

        registry = WorkspaceRegistry()
        registry.register(WorkspaceHandle(str(stale), "main", "otel-js"))

        assert not stale.exists()
        assert len(registry.handles) == 1

    def test_duplicate_merge_ref_raises(self, temp_dir):
        registry = WorkspaceRegistry()
        registry.register(WorkspaceHandle(str(temp_dir / "a"), "main", "otel-js"))

        with pytest.raises(ConfigurationError):
            registry.register(WorkspaceHandle(str(temp_dir / "b"), "main", "otel-js"))

    def test_duplicate_path_raises(self, temp_dir):
        registry = WorkspaceRegistry()
        registry.register(WorkspaceHandle(str(temp_dir / "a"), "main", "one"))

        with pytest.raises(ConfigurationError):
            registry.register(WorkspaceHandle(str(temp_dir / "a"), "main", "two"))

    def test_remove_all(self, temp_dir):
        registry = WorkspaceRegistry()
        handle = registry.register(WorkspaceHandle(str(temp_dir / "a"), "main", "one"))
        (temp_dir / "a").mkdir()

        registry.remove_all()

        assert not (temp_dir / "a").exists()
        assert registry.handles == []
        assert handle.merge_ref == "one/main"
