"""
Component Registry Decorators.

This module provides decorators for registering components and injecting
component instances into plain functions.
"""

from functools import wraps
from typing import Any, Callable, Dict, Optional, Sequence, Type, TypeVar

from custom_logging import get_logger
from component_registry.base import ComponentBase
from component_registry.registry import ComponentRegistry, get_registry

logger = get_logger("component_decorators")

T = TypeVar('T', bound=Type[ComponentBase])


def requires(*component_ids: str):
    """
    Decorator for declaring component dependencies.

    Args:
        *component_ids: Ids of the components this class needs

    Example:
        @component("api")
        @requires("cache", "db")
        class ApiComponent(ComponentBase):
            ...
    """
    def decorator(cls: T) -> T:
        declared = list(getattr(cls, "declared_dependencies", ()))
        for component_id in component_ids:
            if component_id not in declared:
                declared.append(component_id)
        cls.declared_dependencies = tuple(declared)
        return cls

    return decorator


def component(component_id: Optional[str] = None,
              dependencies: Sequence[str] = (),
              config: Optional[Dict[str, Any]] = None,
              registry: Optional[ComponentRegistry] = None):
    """
    Decorator for registering a component class.

    Args:
        component_id: Registry id (defaults to the class name)
        dependencies: Dependency ids, added after any declared with ``requires``
        config: Default config for the descriptor
        registry: Target registry (defaults to the one from ``init_registry``)

    Example:
        @component("cache", dependencies=["db"], config={"ttl": 60})
        class CacheComponent(ComponentBase):
            ...
    """
    def decorator(cls: T) -> T:
        target = registry if registry is not None else get_registry()
        name = component_id or cls.__name__
        deps = list(getattr(cls, "declared_dependencies", ()))
        for dep in dependencies:
            if dep not in deps:
                deps.append(dep)

        if not target.register(name, cls, deps, config):
            logger.warning(f"Component class {cls.__name__} was not registered as '{name}'")
        cls.registered_as = name
        return cls

    return decorator


def inject(*component_ids: str, registry: Optional[ComponentRegistry] = None):
    """
    Decorator for injecting component instances into a function.

    Instances are passed as keyword arguments named after their ids, unless
    the caller supplies them. Only already created instances are injected.

    Example:
        @inject("cache")
        def warm(key, cache=None):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            target = registry if registry is not None else get_registry()
            for component_id in component_ids:
                if component_id not in kwargs and target.has_instance(component_id):
                    kwargs[component_id] = target.instances[component_id]
            return func(*args, **kwargs)

        return wrapper

    return decorator
