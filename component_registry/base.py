"""
Base Component Classes for the component kernel.

This module provides the component contract:
- ComponentState: lifecycle states of a managed instance
- ComponentBase: supervised initialize/destroy around overridable hooks
- LifecycleHooks / HookedComponent: the same contract driven by a hook object
"""

import time
from enum import Enum
from typing import Any, Callable, Dict, Optional

from custom_logging import get_logger
from component_registry.events import EventBus
from component_registry.event_definitions import ErrorEvents, SystemEvents


class ComponentState(Enum):
    """Possible states of a component instance."""
    UNINITIALIZED = "uninitialized"  # Instance created, initialize() not called yet
    INITIALIZING = "initializing"    # on_initialize() in progress
    READY = "ready"                  # Initialized and usable
    ERRORED = "errored"              # Initialization or runtime failure reported
    DESTROYING = "destroying"        # on_destroy() in progress
    DESTROYED = "destroyed"          # Terminal; never reused


class ComponentBase:
    """
    Base class for every component managed by the registry.

    Subclasses override the ``on_initialize`` / ``on_destroy`` coroutines and
    may override ``on_error``. The registry builds instances by calling the
    registered factory with the keyword arguments accepted here.
    """

    def __init__(self,
                 component_id: str,
                 dependencies: Optional[Dict[str, "ComponentBase"]] = None,
                 event_bus: Optional[EventBus] = None,
                 config: Optional[Dict[str, Any]] = None):
        """
        Initialize a component.

        Args:
            component_id: Registry id of this component
            dependencies: Resolved dependency instances keyed by id
            event_bus: Bus used to announce lifecycle transitions
            config: Default config merged with runtime overrides
        """
        self.component_id = component_id
        self.dependencies: Dict[str, "ComponentBase"] = dependencies if dependencies is not None else {}
        self.event_bus = event_bus if event_bus is not None else EventBus(f"component.{component_id}")
        self.config: Dict[str, Any] = dict(config or {})
        self.state = ComponentState.UNINITIALIZED
        self.error: Optional[str] = None
        self.created_at = time.time()
        self.initialized_at: Optional[float] = None
        self.destroyed_at: Optional[float] = None
        self.logger = get_logger(f"component.{component_id}")

    def __str__(self):
        return f"{self.component_id} (state={self.state.value})"

    def __repr__(self):
        return f"Component<{self.component_id}, {self.state.value}>"

    def _emit(self, event_name: str, **payload) -> None:
        payload.setdefault("component_id", self.component_id)
        payload.setdefault("timestamp", time.time())
        self.event_bus.publish(event_name, payload)

    async def initialize(self) -> None:
        """
        Run ``on_initialize`` once.

        Failures are reported through ``on_error`` and leave the component
        ERRORED; they are not raised. Check ``is_ready()`` afterwards.
        """
        if self.state != ComponentState.UNINITIALIZED:
            self.logger.warning(
                f"Component {self.component_id} already past initialization (state={self.state.value})"
            )
            return

        self.state = ComponentState.INITIALIZING
        self.logger.info(f"Initializing component: {self.component_id}")

        try:
            await self.on_initialize()
        except Exception as e:
            self.state = ComponentState.ERRORED
            self.error = str(e)
            self.logger.error(f"Error initializing component {self.component_id}: {e}")
            self._handle_error(e, "initialization")
            return

        if self.state != ComponentState.INITIALIZING:
            # on_initialize reported an error or the component was torn down meanwhile
            self.logger.warning(
                f"Component {self.component_id} left initialization in state {self.state.value}"
            )
            return

        self.state = ComponentState.READY
        self.initialized_at = time.time()
        self.logger.info(f"Component {self.component_id} initialized successfully")
        self._emit(SystemEvents.COMPONENT_INITIALIZED)

    async def on_initialize(self) -> None:
        """Initialization hook. Override in subclasses."""

    async def destroy(self) -> None:
        """
        Run ``on_destroy`` and mark the component DESTROYED.

        The component is DESTROYED when this returns, even if the hook failed.
        """
        if self.state in (ComponentState.DESTROYED, ComponentState.DESTROYING):
            self.logger.warning(f"Component {self.component_id} is already {self.state.value}")
            return

        self.state = ComponentState.DESTROYING
        self.logger.info(f"Destroying component: {self.component_id}")

        try:
            await self.on_destroy()
        except Exception as e:
            self.logger.error(f"Error destroying component {self.component_id}: {e}")
            self._handle_error(e, "destruction")
        finally:
            self.state = ComponentState.DESTROYED
            self.destroyed_at = time.time()

        self._emit(SystemEvents.COMPONENT_DESTROYED)

    async def on_destroy(self) -> None:
        """Cleanup hook. Override in subclasses."""

    def on_error(self, error: Exception, context: str = "unknown") -> None:
        """
        Report an error.

        Overrides must call ``super().on_error(error, context)``: the registry
        drives recovery from the event published here.
        """
        self.logger.error(f"Component {self.component_id} error in {context}: {error}")
        self._emit(
            ErrorEvents.COMPONENT_ERROR,
            error=str(error),
            error_type=type(error).__name__,
            context=context,
        )

    def report_error(self, error: Exception, context: str = "runtime") -> None:
        """Report a failure noticed while running."""
        if self.state in (ComponentState.INITIALIZING, ComponentState.READY):
            self.state = ComponentState.ERRORED
        self.error = str(error)
        self._handle_error(error, context)

    def _handle_error(self, error: Exception, context: str) -> None:
        try:
            self.on_error(error, context)
        except Exception as e:
            self.logger.exception(f"on_error of {self.component_id} failed: {e}")

    def is_ready(self) -> bool:
        return self.state == ComponentState.READY

    def get_dependency(self, component_id: str) -> Optional["ComponentBase"]:
        return self.dependencies.get(component_id)

    def get_status(self) -> Dict[str, Any]:
        """
        Get the current component status information.

        Returns:
            Dictionary with component status information
        """
        uptime = None
        if self.initialized_at:
            end = self.destroyed_at or time.time()
            uptime = end - self.initialized_at

        return {
            "component_id": self.component_id,
            "state": self.state.value,
            "ready": self.is_ready(),
            "uptime": uptime,
            "error": self.error,
            "dependencies": list(self.dependencies),
        }


class LifecycleHooks:
    """
    Hook object for components built by composition.

    Each hook receives the owning component, so it can reach the component's
    config, dependencies and bus.
    """

    async def on_initialize(self, component: "HookedComponent") -> None:
        pass

    async def on_destroy(self, component: "HookedComponent") -> None:
        pass

    def on_error(self, component: "HookedComponent", error: Exception, context: str) -> None:
        pass


class HookedComponent(ComponentBase):
    """Component whose lifecycle hooks live on a separate hook object."""

    def __init__(self, component_id: str, hooks: LifecycleHooks, **kwargs):
        super().__init__(component_id, **kwargs)
        self.hooks = hooks

    async def on_initialize(self) -> None:
        await self.hooks.on_initialize(self)

    async def on_destroy(self) -> None:
        await self.hooks.on_destroy(self)

    def on_error(self, error: Exception, context: str = "unknown") -> None:
        try:
            self.hooks.on_error(self, error, context)
        except Exception as e:
            self.logger.exception(f"on_error hook of {self.component_id} failed: {e}")
        super().on_error(error, context)


def from_hooks(hooks_factory: Callable[[], LifecycleHooks]) -> Callable[..., HookedComponent]:
    """
    Turn a hook class (or any zero-argument hook factory) into a registry factory.

    Example:
        registry.register("cache", from_hooks(CacheHooks), ["db"])
    """
    def factory(component_id: str, **kwargs) -> HookedComponent:
        return HookedComponent(component_id, hooks=hooks_factory(), **kwargs)

    factory.__name__ = f"from_hooks({getattr(hooks_factory, '__name__', repr(hooks_factory))})"
    return factory
