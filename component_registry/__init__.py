"""
Component Registry Package.

A dependency-injection and lifecycle-supervision kernel:

- EventBus: synchronous publish/subscribe hub
- ComponentBase: supervised initialize/destroy contract for managed units
- DependencyGraph: initialization order and graph queries
- ComponentRegistry: descriptor table, lazy instantiation, bulk lifecycle, recovery
- Decorators for registration and injection
"""

from .events import EventBus, Subscription

from .event_definitions import (
    SystemEvents,
    ErrorEvents,
    all_events,
    is_known_event
)

from .base import (
    ComponentBase,
    ComponentState,
    LifecycleHooks,
    HookedComponent,
    from_hooks
)

from .lifecycle import DependencyGraph

from .registry import (
    ComponentDescriptor,
    ComponentRegistry,
    init_registry,
    get_registry,
    reset_registry
)

from .decorators import (
    component,
    requires,
    inject
)

from .exceptions import (
    RegistryError,
    ComponentNotFoundError,
    DependencyError,
    CircularDependencyError,
    ComponentTimeoutError
)

__all__ = [
    # Events
    'EventBus',
    'Subscription',
    'SystemEvents',
    'ErrorEvents',
    'all_events',
    'is_known_event',

    # Components
    'ComponentBase',
    'ComponentState',
    'LifecycleHooks',
    'HookedComponent',
    'from_hooks',

    # Registry and ordering
    'ComponentDescriptor',
    'ComponentRegistry',
    'DependencyGraph',
    'init_registry',
    'get_registry',
    'reset_registry',

    # Decorators
    'component',
    'requires',
    'inject',

    # Exceptions
    'RegistryError',
    'ComponentNotFoundError',
    'DependencyError',
    'CircularDependencyError',
    'ComponentTimeoutError'
]
