from unittest.mock import MagicMock

import pytest

from stock_news.connections import ConnectionManager


class TestConnectionManager:
    def test_close_all_runs_hooks_in_reverse_order(self):
        manager = ConnectionManager()
        calls = []
        manager.register("db", lambda: calls.append("db"))
        manager.register("http", lambda: calls.append("http"))
        manager.register("task", lambda: calls.append("task"))

        manager.close_all()

        assert calls == ["task", "http", "db"]

    def test_failing_hook_does_not_stop_the_others(self):
        manager = ConnectionManager()
        good = MagicMock()
        manager.register("good", good)
        manager.register("bad", MagicMock(side_effect=RuntimeError("boom")))

        failed = manager.close_all()

        assert failed == ["bad"]
        good.assert_called_once()

    def test_reregistering_replaces_hook(self):
        manager = ConnectionManager()
        old, new = MagicMock(), MagicMock()
        manager.register("http", old)
        manager.register("http", new)

        manager.close_all()

        old.assert_not_called()
        new.assert_called_once()

    def test_unregister_skips_hook(self):
        manager = ConnectionManager()
        hook = MagicMock()
        manager.register("http", hook)

        assert manager.unregister("http") is True
        assert manager.unregister("http") is False
        manager.close_all()
        hook.assert_not_called()

    def test_names_lists_registered_hooks(self):
        manager = ConnectionManager()
        manager.register("a", MagicMock())
        manager.register("b", MagicMock())
        assert manager.names == ["a", "b"]

    def test_hooks_run_once(self):
        manager = ConnectionManager()
        hook = MagicMock()
        manager.register("a", hook)
        manager.close_all()
        manager.close_all()
        hook.assert_called_once()

    def test_register_after_close_raises(self):
        manager = ConnectionManager()
        manager.close_all()
        with pytest.raises(RuntimeError):
            manager.register("late", MagicMock())
