"""
Tests for the component contract: state machine, lifecycle events,
error reporting and the hook-object variant.
"""

import logging

import pytest

from component_registry import (
    ComponentBase,
    ComponentState,
    ErrorEvents,
    EventBus,
    HookedComponent,
    LifecycleHooks,
    SystemEvents,
    from_hooks
)
from fakes import EventRecorder, RecordingComponent


def make(bus, component_id="widget", **config):
    return RecordingComponent(component_id=component_id, event_bus=bus, config=config)


class TestInitialize:

    def test_new_component_is_uninitialized(self, bus):
        widget = make(bus)
        assert widget.state == ComponentState.UNINITIALIZED
        assert widget.is_ready() is False

    @pytest.mark.asyncio
    async def test_successful_initialize_publishes_event(self, bus):
        recorder = EventRecorder(bus, SystemEvents.COMPONENT_INITIALIZED)
        journal = []
        widget = make(bus, journal=journal)

        await widget.initialize()

        assert widget.state == ComponentState.READY
        assert widget.is_ready()
        assert journal == [("init", "widget")]
        [payload] = recorder.payloads(SystemEvents.COMPONENT_INITIALIZED)
        assert payload["component_id"] == "widget"
        assert isinstance(payload["timestamp"], float)

    @pytest.mark.asyncio
    async def test_second_initialize_is_a_noop(self, bus, caplog):
        journal = []
        widget = make(bus, journal=journal)
        await widget.initialize()

        with caplog.at_level(logging.WARNING):
            await widget.initialize()

        assert journal == [("init", "widget")]
        assert "already past initialization" in caplog.text

    @pytest.mark.asyncio
    async def test_failed_initialize_reports_instead_of_raising(self, bus):
        recorder = EventRecorder(bus, SystemEvents.COMPONENT_INITIALIZED, ErrorEvents.COMPONENT_ERROR)
        widget = make(bus, fail_init=True)

        await widget.initialize()

        assert widget.state == ComponentState.ERRORED
        assert not widget.is_ready()
        assert widget.error == "widget failed to start"
        assert recorder.names() == [ErrorEvents.COMPONENT_ERROR]
        [payload] = recorder.payloads(ErrorEvents.COMPONENT_ERROR)
        assert payload["component_id"] == "widget"
        assert payload["error"] == "widget failed to start"
        assert payload["error_type"] == "RuntimeError"
        assert payload["context"] == "initialization"
        assert "timestamp" in payload

    @pytest.mark.asyncio
    async def test_errored_component_cannot_be_reinitialized(self, bus):
        journal = []
        widget = make(bus, journal=journal, fail_init=True)
        await widget.initialize()
        await widget.initialize()
        assert journal == [("init", "widget")]
        assert widget.state == ComponentState.ERRORED


class TestDestroy:

    @pytest.mark.asyncio
    async def test_destroy_publishes_event_and_is_terminal(self, bus):
        recorder = EventRecorder(bus, SystemEvents.COMPONENT_DESTROYED)
        journal = []
        widget = make(bus, journal=journal)
        await widget.initialize()

        await widget.destroy()

        assert widget.state == ComponentState.DESTROYED
        assert not widget.is_ready()
        assert journal == [("init", "widget"), ("destroy", "widget")]
        assert [p["component_id"] for p in recorder.payloads(SystemEvents.COMPONENT_DESTROYED)] == ["widget"]

    @pytest.mark.asyncio
    async def test_second_destroy_is_a_noop(self, bus, caplog):
        journal = []
        widget = make(bus, journal=journal)
        await widget.destroy()

        with caplog.at_level(logging.WARNING):
            await widget.destroy()

        assert journal == [("destroy", "widget")]
        assert "already destroyed" in caplog.text

    @pytest.mark.asyncio
    async def test_failing_destroy_hook_still_destroys(self, bus):
        recorder = EventRecorder(bus, SystemEvents.COMPONENT_DESTROYED, ErrorEvents.COMPONENT_ERROR)
        widget = make(bus, fail_destroy=True)
        await widget.initialize()

        await widget.destroy()

        assert widget.state == ComponentState.DESTROYED
        assert recorder.names() == [ErrorEvents.COMPONENT_ERROR, SystemEvents.COMPONENT_DESTROYED]
        assert recorder.payloads(ErrorEvents.COMPONENT_ERROR)[0]["context"] == "destruction"

    @pytest.mark.asyncio
    async def test_destroyed_component_is_not_restarted(self, bus):
        widget = make(bus)
        await widget.destroy()
        await widget.initialize()
        assert widget.state == ComponentState.DESTROYED


class TestErrorsAndLookups:

    @pytest.mark.asyncio
    async def test_report_error_moves_ready_to_errored(self, bus):
        recorder = EventRecorder(bus, ErrorEvents.COMPONENT_ERROR)
        widget = make(bus)
        await widget.initialize()

        widget.report_error(ConnectionError("lost places client"))

        assert widget.state == ComponentState.ERRORED
        [payload] = recorder.payloads(ErrorEvents.COMPONENT_ERROR)
        assert payload["context"] == "runtime"
        assert payload["error"] == "lost places client"

    @pytest.mark.asyncio
    async def test_on_error_override_keeps_event(self, bus):
        seen = []

        class Custom(ComponentBase):
            async def on_initialize(self):
                raise KeyError("missing field")

            def on_error(self, error, context="unknown"):
                seen.append(context)
                super().on_error(error, context)

        recorder = EventRecorder(bus, ErrorEvents.COMPONENT_ERROR)
        custom = Custom(component_id="custom", event_bus=bus)
        await custom.initialize()

        assert seen == ["initialization"]
        assert len(recorder.payloads(ErrorEvents.COMPONENT_ERROR)) == 1

    @pytest.mark.asyncio
    async def test_raising_on_error_override_does_not_escape(self, bus, caplog):
        class BrokenHandler(RecordingComponent):
            def on_error(self, error, context="unknown"):
                super().on_error(error, context)
                raise ValueError("handler broke")

        recorder = EventRecorder(bus, ErrorEvents.COMPONENT_ERROR, SystemEvents.COMPONENT_DESTROYED)
        widget = BrokenHandler(component_id="widget", event_bus=bus,
                               config={"fail_init": True, "fail_destroy": True})

        with caplog.at_level(logging.ERROR):
            await widget.initialize()
            assert widget.state == ComponentState.ERRORED

            await widget.destroy()
            assert widget.state == ComponentState.DESTROYED

        assert recorder.names() == [
            ErrorEvents.COMPONENT_ERROR,
            ErrorEvents.COMPONENT_ERROR,
            SystemEvents.COMPONENT_DESTROYED,
        ]
        assert "handler broke" in caplog.text

    def test_raising_on_error_override_during_report_error(self, bus):
        class BrokenHandler(RecordingComponent):
            def on_error(self, error, context="unknown"):
                raise ValueError("handler broke")

        widget = BrokenHandler(component_id="widget", event_bus=bus)
        widget.report_error(ConnectionError("lost places client"))
        assert widget.error == "lost places client"

    def test_get_dependency(self, bus):
        db = make(bus, "db")
        cache = RecordingComponent(component_id="cache", dependencies={"db": db}, event_bus=bus)
        assert cache.get_dependency("db") is db
        assert cache.get_dependency("queue") is None

    def test_component_without_bus_gets_private_bus(self):
        widget = RecordingComponent(component_id="lonely")
        assert isinstance(widget.event_bus, EventBus)

    def test_config_is_copied(self, bus):
        defaults = {"ttl": 5}
        widget = RecordingComponent(component_id="cache", event_bus=bus, config=defaults)
        widget.config["ttl"] = 10
        assert defaults == {"ttl": 5}

    @pytest.mark.asyncio
    async def test_get_status(self, bus):
        db = make(bus, "db")
        widget = RecordingComponent(component_id="widget", dependencies={"db": db}, event_bus=bus)
        await widget.initialize()

        status = widget.get_status()
        assert status["component_id"] == "widget"
        assert status["state"] == "ready"
        assert status["ready"] is True
        assert status["dependencies"] == ["db"]
        assert status["uptime"] >= 0


class TestHookedComponent:

    @pytest.mark.asyncio
    async def test_hooks_receive_the_component(self, bus):
        calls = []

        class CacheHooks(LifecycleHooks):
            async def on_initialize(self, component):
                calls.append(("init", component.component_id, component.config["ttl"]))

            async def on_destroy(self, component):
                calls.append(("destroy", component.component_id))

        factory = from_hooks(CacheHooks)
        cache = factory(component_id="cache", dependencies={}, event_bus=bus, config={"ttl": 30})

        assert isinstance(cache, HookedComponent)
        await cache.initialize()
        await cache.destroy()

        assert calls == [("init", "cache", 30), ("destroy", "cache")]

    @pytest.mark.asyncio
    async def test_hook_on_error_runs_before_event(self, bus):
        order = []

        class FailingHooks(LifecycleHooks):
            async def on_initialize(self, component):
                raise RuntimeError("no geolocation")

            def on_error(self, component, error, context):
                order.append(("hook", context))

        bus.subscribe(ErrorEvents.COMPONENT_ERROR, lambda p: order.append(("event", p["context"])))
        component = HookedComponent("locator", hooks=FailingHooks(), event_bus=bus)
        await component.initialize()

        assert order == [("hook", "initialization"), ("event", "initialization")]
        assert component.state == ComponentState.ERRORED
