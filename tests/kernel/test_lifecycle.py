"""Tests for the Lifecycle protocol and LifecycleState."""

from redex.kernel.lifecycle import Lifecycle, LifecycleState


class _Component:
    def __init__(self):
        self.calls = []

    def start(self):
        self.calls.append("start")

    def stop(self):
        self.calls.append("stop")


class TestLifecycleProtocol:
    def test_structural_match(self):
        assert isinstance(_Component(), Lifecycle)

    def test_missing_stop_does_not_match(self):
        class OnlyStart:
            def start(self):
                pass

        assert not isinstance(OnlyStart(), Lifecycle)


class TestLifecycleState:
    def test_states(self):
        assert [state.value for state in LifecycleState] == ["STOPPED", "STARTING", "RUNNING", "STOPPING"]
