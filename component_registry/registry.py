"""
Component Registry.

Owns the descriptor table and the instance cache, resolves and injects
dependencies, drives bulk initialize/destroy in dependency order and recovers
components that report errors.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Set, Tuple

from config import RegistryConfig
from custom_logging import get_logger
from component_registry.base import ComponentBase, ComponentState
from component_registry.events import EventBus
from component_registry.event_definitions import ErrorEvents, SystemEvents
from component_registry.exceptions import (
    CircularDependencyError,
    ComponentNotFoundError,
    ComponentTimeoutError,
    RegistryError
)
from component_registry.lifecycle import DependencyGraph


@dataclass
class ComponentDescriptor:
    """
    Registered blueprint of a component.

    Attributes:
        component_id: Unique registry key
        factory: Callable producing a ComponentBase from
            ``component_id, dependencies, event_bus, config`` keyword arguments
        dependencies: Declared dependency ids, ordered and without duplicates
        default_config: Merged under any runtime config at creation time
    """
    component_id: str
    factory: Callable[..., ComponentBase]
    dependencies: Tuple[str, ...] = ()
    default_config: Dict[str, Any] = field(default_factory=dict)
    registered_at: float = field(default_factory=time.time)


class ComponentRegistry:
    """
    Central registry for all components.

    Instances are created lazily by ``get`` and cached per id. ``get`` never
    suspends, so the cache write for an id always happens before another
    caller can observe the id as missing.
    """

    def __init__(self, event_bus: Optional[EventBus] = None, config: Optional[RegistryConfig] = None):
        """
        Initialize the component registry.

        Args:
            event_bus: Bus shared with every component (a new one if omitted)
            config: Timing and recovery settings
        """
        self.logger = get_logger("component_registry")
        self.event_bus = event_bus if event_bus is not None else EventBus()
        self.config = config if config is not None else RegistryConfig()
        self.descriptors: Dict[str, ComponentDescriptor] = {}
        self.instances: Dict[str, ComponentBase] = {}
        self.initialized = False
        self.last_cycle: Optional[List[str]] = None
        self.recovery_count = 0
        self._runtime_configs: Dict[str, Dict[str, Any]] = {}
        self._initializing = False
        self._recovering: Set[str] = set()
        self._tasks: Set[asyncio.Task] = set()
        self._unsubscribe_errors = self.event_bus.subscribe(
            ErrorEvents.COMPONENT_ERROR, self._on_component_error
        )

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self,
                 component_id: str,
                 factory: Callable[..., ComponentBase],
                 dependencies: Optional[Sequence[str]] = None,
                 default_config: Optional[Dict[str, Any]] = None) -> bool:
        """
        Register a component descriptor.

        Args:
            component_id: Unique id for the component
            factory: Component class or factory function
            dependencies: Ids of components this one needs
            default_config: Config every instance starts from

        Returns:
            True if registered, False for a duplicate id or a non-callable factory
        """
        if not isinstance(component_id, str) or not component_id:
            self.logger.error(f"Invalid component id: {component_id!r}")
            return False

        if component_id in self.descriptors:
            self.logger.warning(f"Component '{component_id}' is already registered, keeping existing")
            return False

        if not callable(factory):
            self.logger.error(f"Factory for component '{component_id}' is not callable: {factory!r}")
            return False

        if isinstance(dependencies, str):
            dependencies = [dependencies]
        deps = tuple(dict.fromkeys(dependencies or ()))
        if component_id in deps:
            self.logger.warning(f"Component '{component_id}' lists itself as a dependency; it will not resolve")

        self.descriptors[component_id] = ComponentDescriptor(
            component_id=component_id,
            factory=factory,
            dependencies=deps,
            default_config=dict(default_config or {}),
        )
        self.logger.info(f"Registered component: {component_id}")

        self.event_bus.publish(SystemEvents.COMPONENT_REGISTERED, {
            "component_id": component_id,
            "dependencies": list(deps),
            "timestamp": time.time(),
        })
        return True

    def register_many(self, components: Mapping[str, Mapping[str, Any]]) -> int:
        """
        Register several components.

        Args:
            components: Id -> ``{"factory": ..., "dependencies": [...], "config": {...}}``

        Returns:
            Number of components registered
        """
        count = 0
        for component_id, spec in components.items():
            if self.register(component_id,
                             spec.get("factory"),
                             spec.get("dependencies"),
                             spec.get("config")):
                count += 1
        return count

    def unregister(self, component_id: str) -> bool:
        """Remove a descriptor. Refused while a live instance exists for it."""
        if component_id not in self.descriptors:
            self.logger.warning(f"Cannot unregister unknown component: {component_id}")
            return False
        if component_id in self.instances:
            self.logger.warning(f"Cannot unregister '{component_id}' while an instance is live")
            return False
        del self.descriptors[component_id]
        self.logger.info(f"Unregistered component: {component_id}")
        return True

    def is_registered(self, component_id: str) -> bool:
        return component_id in self.descriptors

    def has_instance(self, component_id: str) -> bool:
        return component_id in self.instances

    def get_registered_ids(self) -> List[str]:
        return list(self.descriptors)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def get(self, component_id: str, runtime_config: Optional[Dict[str, Any]] = None) -> Optional[ComponentBase]:
        """
        Get a component instance, creating it and its dependencies if needed.

        Once the registry has been initialized, a newly created instance is
        initialized in the background; failures surface as error events only.

        Args:
            component_id: Registered component id
            runtime_config: Overrides for the descriptor's default config (first creation only)

        Returns:
            The cached instance, or None if the id is unknown or cannot be resolved
        """
        return self._get(component_id, runtime_config, ())

    def require(self, component_id: str, runtime_config: Optional[Dict[str, Any]] = None) -> ComponentBase:
        """Like ``get`` but raises ComponentNotFoundError instead of returning None."""
        instance = self.get(component_id, runtime_config)
        if instance is None:
            raise ComponentNotFoundError(component_id)
        return instance

    def _get(self, component_id: str, runtime_config: Optional[Dict[str, Any]],
             resolving: Tuple[str, ...]) -> Optional[ComponentBase]:
        instance = self.instances.get(component_id)
        if instance is not None:
            return instance

        descriptor = self.descriptors.get(component_id)
        if descriptor is None:
            self.logger.warning(f"Component '{component_id}' is not registered")
            return None

        instance = self._create(descriptor, runtime_config, resolving)
        if instance is None:
            return None

        if self.initialized:
            self._spawn(instance.initialize(), f"initialize:{component_id}")
        return instance

    def _create(self, descriptor: ComponentDescriptor, runtime_config: Optional[Dict[str, Any]],
                resolving: Tuple[str, ...]) -> Optional[ComponentBase]:
        component_id = descriptor.component_id
        dependencies = self._resolve_dependencies(descriptor, resolving + (component_id,))
        if dependencies is None:
            return None

        runtime_config = dict(runtime_config or {})
        config = {**descriptor.default_config, **runtime_config}

        try:
            instance = descriptor.factory(
                component_id=component_id,
                dependencies=dependencies,
                event_bus=self.event_bus,
                config=config,
            )
        except Exception as e:
            self.logger.exception(f"Factory for component '{component_id}' failed: {e}")
            return None

        if not isinstance(instance, ComponentBase):
            self.logger.error(
                f"Factory for '{component_id}' produced {type(instance).__name__}, not a ComponentBase"
            )
            return None

        self.instances[component_id] = instance
        self._runtime_configs[component_id] = runtime_config
        self.logger.debug(f"Created component: {component_id}")
        return instance

    def _resolve_dependencies(self, descriptor: ComponentDescriptor,
                              chain: Tuple[str, ...]) -> Optional[Dict[str, ComponentBase]]:
        component_id = descriptor.component_id
        resolved: Dict[str, ComponentBase] = {}

        for dep_id in descriptor.dependencies:
            if dep_id == component_id:
                self.logger.error(f"Component '{component_id}' cannot depend on itself")
                return None

            if dep_id in chain:
                cycle = " -> ".join(chain[chain.index(dep_id):] + (dep_id,))
                self.logger.error(f"Circular dependency while resolving '{component_id}': {cycle}")
                return None

            instance = self._get(dep_id, None, chain)
            if instance is None:
                self.logger.error(f"Failed to resolve dependency '{dep_id}' for component '{component_id}'")
                return None
            resolved[dep_id] = instance

        return resolved

    def get_dependency_graph(self) -> DependencyGraph:
        return DependencyGraph.from_descriptors(self.descriptors)

    def get_initialization_order(self) -> List[str]:
        """
        Ids in dependency order.

        A cycle degrades to registration order; the cycle is logged, kept in
        ``last_cycle`` and published as a dependency-cycle event.
        """
        try:
            order = self.get_dependency_graph().initialization_order()
        except CircularDependencyError as e:
            fallback = list(self.descriptors)
            self.last_cycle = e.dependency_chain
            self.logger.error(f"{e}; falling back to registration order: {fallback}")
            if self.config.publish_cycle_events:
                self.event_bus.publish(ErrorEvents.DEPENDENCY_CYCLE, {
                    "cycle": e.dependency_chain,
                    "visiting": e.visiting,
                    "fallback_order": fallback,
                    "timestamp": time.time(),
                })
            return fallback

        self.last_cycle = None
        return order

    # ------------------------------------------------------------------
    # Bulk lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Create and initialize every registered component in dependency order.

        Best effort: a component that fails is reported and the rest still start.
        """
        if self.initialized or self._initializing:
            self.logger.warning("Component registry already initialized")
            return

        self._initializing = True
        try:
            order = self.get_initialization_order()
            self.logger.info(f"Initializing {len(order)} components in order: {order}")

            attempted = set()
            for component_id in order:
                instance = self.get(component_id)
                if instance is None:
                    self.logger.error(f"Skipping component '{component_id}': could not be created")
                    continue
                attempted.add(component_id)
                await self._initialize_instance(component_id, instance)

            # Instances created through get() by hooks that ran during the loop
            while True:
                late = [(cid, instance) for cid, instance in self.instances.items()
                        if cid not in attempted and instance.state == ComponentState.UNINITIALIZED]
                if not late:
                    break
                for component_id, instance in late:
                    attempted.add(component_id)
                    await self._initialize_instance(component_id, instance)
        finally:
            self._initializing = False

        self.initialized = True
        ready = [cid for cid, instance in self.instances.items() if instance.is_ready()]
        if len(ready) == len(self.instances):
            self.logger.info(f"All {len(ready)} components initialized successfully")
        else:
            self.logger.error(f"{len(self.instances) - len(ready)} of {len(self.instances)} components not ready")

        self.event_bus.publish(SystemEvents.COMPONENTS_INITIALIZED, {
            "component_count": len(self.instances),
            "component_ids": list(self.instances),
            "ready_count": len(ready),
            "timestamp": time.time(),
        })

    async def _initialize_instance(self, component_id: str, instance: ComponentBase) -> None:
        if instance.state != ComponentState.UNINITIALIZED:
            return
        try:
            await instance.initialize()
        except Exception as e:
            self.logger.exception(f"Error initializing component '{component_id}': {e}")

    async def destroy(self) -> None:
        """
        Destroy every live instance, dependents before their dependencies.

        Descriptors stay registered, so the registry can be initialized again.
        """
        order = self.get_initialization_order()
        shutdown = [cid for cid in reversed(order) if cid in self.instances]
        stragglers = [cid for cid in reversed(list(self.instances)) if cid not in shutdown]
        self.logger.info(f"Destroying components in order: {shutdown + stragglers}")

        destroyed = []
        for component_id in shutdown + stragglers:
            instance = self.instances.get(component_id)
            if instance is None:
                continue
            try:
                await instance.destroy()
            except Exception as e:
                self.logger.exception(f"Error destroying component '{component_id}': {e}")
            destroyed.append(component_id)

        self.instances.clear()
        self._runtime_configs.clear()
        self.initialized = False

        self.event_bus.publish(SystemEvents.COMPONENTS_DESTROYED, {
            "component_count": len(destroyed),
            "component_ids": destroyed,
            "timestamp": time.time(),
        })

    async def wait_for(self, component_id: str, timeout: Optional[float] = None) -> ComponentBase:
        """
        Wait until a component instance exists and is ready.

        Args:
            component_id: Component to wait for
            timeout: Seconds to wait (defaults to ``config.wait_timeout``)

        Returns:
            The ready instance

        Raises:
            ComponentTimeoutError: If the deadline passes first
        """
        timeout = self.config.wait_timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            instance = self.instances.get(component_id)
            if instance is not None and instance.is_ready():
                return instance

            remaining = deadline - loop.time()
            if remaining <= 0:
                self.logger.warning(f"Timed out after {timeout}s waiting for component '{component_id}'")
                raise ComponentTimeoutError(component_id, timeout)

            await asyncio.sleep(min(self.config.poll_interval, remaining))

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    def _on_component_error(self, payload: Any) -> None:
        if not self.config.recovery_enabled or not isinstance(payload, dict):
            return

        component_id = payload.get("component_id")
        instance = self.instances.get(component_id)
        if instance is None:
            self.logger.debug(f"No live instance of '{component_id}' to recover")
            return
        if instance.state in (ComponentState.DESTROYING, ComponentState.DESTROYED):
            return
        if component_id in self._recovering:
            self.logger.warning(f"Component '{component_id}' failed again during recovery")
            return

        self._recovering.add(component_id)
        if self._spawn(self._recover(component_id), f"recover:{component_id}") is None:
            self._recovering.discard(component_id)

    async def recover(self, component_id: str) -> bool:
        """
        Destroy, evict, recreate and initialize a component.

        Returns:
            True if the new instance is ready
        """
        if component_id in self._recovering:
            self.logger.warning(f"Recovery of '{component_id}' already in progress")
            return False
        self._recovering.add(component_id)
        return await self._recover(component_id)

    async def _recover(self, component_id: str) -> bool:
        try:
            old = self.instances.get(component_id)
            if old is None:
                self.logger.warning(f"Cannot recover '{component_id}': no live instance")
                return False

            self.logger.warning(f"Attempting recovery of component: {component_id}")
            try:
                await old.destroy()
            except Exception as e:
                self.logger.exception(f"Error destroying '{component_id}' during recovery: {e}")

            if self.instances.get(component_id) is not old:
                self.logger.warning(f"Component '{component_id}' was replaced during recovery, aborting")
                return False

            del self.instances[component_id]
            runtime_config = self._runtime_configs.pop(component_id, {})

            descriptor = self.descriptors.get(component_id)
            if descriptor is None:
                self.logger.error(f"Cannot recover '{component_id}': no longer registered")
                return False

            new = self._create(descriptor, runtime_config, ())
            if new is None:
                self.logger.error(f"Recovery of '{component_id}' failed: could not recreate")
                return False

            self.recovery_count += 1
            self._rebind_dependents(component_id, old, new)

            await new.initialize()
            if not new.is_ready():
                self.logger.error(f"Recovery of '{component_id}' failed: new instance is {new.state.value}")
                return False

            self.logger.info(f"Component recovered: {component_id}")
            self.event_bus.publish(SystemEvents.COMPONENT_RECOVERED, {
                "component_id": component_id,
                "timestamp": time.time(),
            })
            return True
        finally:
            self._recovering.discard(component_id)

    def _rebind_dependents(self, component_id: str, old: ComponentBase, new: ComponentBase) -> None:
        for dependent_id in self.get_dependency_graph().direct_dependents(component_id):
            dependent = self.instances.get(dependent_id)
            if dependent is not None and dependent.dependencies.get(component_id) is old:
                dependent.dependencies[component_id] = new
                self.logger.debug(f"Rebound '{component_id}' in dependent '{dependent_id}'")

    # ------------------------------------------------------------------
    # Background tasks
    # ------------------------------------------------------------------

    def _spawn(self, coro: Awaitable, name: str) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            self.logger.warning(f"No running event loop, skipped background {name}")
            return None

        task = loop.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.logger.error(
                f"Background task {task.get_name()} failed: {error}",
                exc_info=(type(error), error, error.__traceback__)
            )

    async def wait_for_pending(self) -> None:
        """Wait for background initializations and recoveries to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self.event_bus.drain()

    # ------------------------------------------------------------------
    # Introspection and teardown
    # ------------------------------------------------------------------

    def get_stats(self) -> Dict[str, Any]:
        """
        Get a snapshot of registry state.

        Returns:
            Dictionary with registration, instance and readiness counts
        """
        states = {cid: instance.state.value for cid, instance in self.instances.items()}
        return {
            "registered": len(self.descriptors),
            "instantiated": len(self.instances),
            "initialized": sum(1 for instance in self.instances.values() if instance.is_ready()),
            "errored": sum(1 for instance in self.instances.values()
                           if instance.state == ComponentState.ERRORED),
            "recoveries": self.recovery_count,
            "registry_initialized": self.initialized,
            "component_ids": list(self.descriptors),
            "instance_ids": list(self.instances),
            "states": states,
        }

    def clear(self) -> None:
        """Forget every descriptor and instance without running hooks (testing only)."""
        if self.instances:
            self.logger.warning(f"Clearing registry with {len(self.instances)} live instances")
        self.instances.clear()
        self.descriptors.clear()
        self._runtime_configs.clear()
        self.initialized = False
        self.last_cycle = None
        self.logger.debug("Component registry cleared")

    def close(self) -> None:
        """Detach from the event bus; automatic recovery stops."""
        self._unsubscribe_errors()


# Default registry, created explicitly at startup
_registry: Optional[ComponentRegistry] = None


def init_registry(event_bus: Optional[EventBus] = None,
                  config: Optional[RegistryConfig] = None) -> ComponentRegistry:
    """Create the process-wide default registry, replacing any previous one."""
    global _registry
    if _registry is not None:
        _registry.close()
    _registry = ComponentRegistry(event_bus=event_bus, config=config)
    return _registry


def get_registry() -> ComponentRegistry:
    """Get the default registry created by ``init_registry``."""
    if _registry is None:
        raise RegistryError("Default registry not initialized; call init_registry() first")
    return _registry


def reset_registry() -> None:
    """Drop the default registry."""
    global _registry
    if _registry is not None:
        _registry.close()
    _registry = None
