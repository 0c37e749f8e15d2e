"""Event names published by the component kernel."""

from typing import List


class SystemEvents:
    """Lifecycle notifications."""
    COMPONENT_REGISTERED = "system:component:registered"
    COMPONENT_INITIALIZED = "system:component:initialized"
    COMPONENT_DESTROYED = "system:component:destroyed"
    COMPONENT_RECOVERED = "system:component:recovered"
    COMPONENTS_INITIALIZED = "system:components:initialized"
    COMPONENTS_DESTROYED = "system:components:destroyed"


class ErrorEvents:
    """Failure notifications."""
    COMPONENT_ERROR = "error:component"
    DEPENDENCY_CYCLE = "error:dependency-cycle"


WILDCARD = "*"
NAMESPACE_SEPARATOR = ":"


def all_events() -> List[str]:
    """Every event name the kernel publishes, sorted."""
    names = []
    for group in (SystemEvents, ErrorEvents):
        names.extend(
            value for key, value in vars(group).items()
            if key.isupper() and isinstance(value, str)
        )
    return sorted(names)


def is_known_event(event_name: str) -> bool:
    return event_name in all_events()
