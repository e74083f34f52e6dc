"""Tests for ObserverRegistry."""

from quotewatch.quotes.observers import ObserverRegistry


class TestObserverRegistry:
    """Unit tests for callback fan-out."""

    def test_notify_calls_in_registration_order(self):
        """Test that callbacks run in the order they were added."""
        registry = ObserverRegistry("test")
        calls = []
        registry.add(lambda value: calls.append(("first", value)))
        registry.add(lambda value: calls.append(("second", value)))

        registry.notify(42)

        assert calls == [("first", 42), ("second", 42)]

    def test_raising_callback_is_isolated(self):
        """Test that one failing callback does not stop the rest."""
        registry = ObserverRegistry("test")
        calls = []

        def broken(value):
            raise RuntimeError("boom")

        registry.add(broken)
        registry.add(calls.append)

        registry.notify("x")  # Should not raise

        assert calls == ["x"]

    def test_same_callback_registered_twice(self):
        """Test that each registration has its own disposer."""
        registry = ObserverRegistry("test")
        calls = []
        dispose_first = registry.add(calls.append)
        registry.add(calls.append)

        dispose_first()
        registry.notify(1)

        assert calls == [1]
        assert len(registry) == 1

    def test_dispose_is_idempotent(self):
        registry = ObserverRegistry("test")
        dispose = registry.add(print)
        dispose()
        dispose()
        assert len(registry) == 0

    def test_unregister_during_notify(self):
        """Test that a callback may remove itself while being notified."""
        registry = ObserverRegistry("test")
        calls = []
        dispose = None

        def once(value):
            calls.append(value)
            dispose()

        dispose = registry.add(once)
        registry.notify(1)
        registry.notify(2)

        assert calls == [1]

    def test_clear(self):
        registry = ObserverRegistry("test")
        registry.add(print)
        registry.clear()
        assert len(registry) == 0
