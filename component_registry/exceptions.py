"""
Component Registry Exceptions.

Kernel operations report failures through return values and events; these
classes cover the places where code does raise.
"""

from typing import Iterable, List, Optional


class RegistryError(Exception):
    """Base exception for all component registry errors."""
    pass


class ComponentNotFoundError(RegistryError):
    """Raised when a strict lookup names a component that cannot be provided."""
    def __init__(self, component_id):
        super().__init__(f"Component not found: {component_id}")
        self.component_id = component_id


class DependencyError(RegistryError):
    """Raised when there's an issue with component dependencies."""
    def __init__(self, component_id, dependency_id, message=None):
        if not message:
            message = f"Dependency error for {component_id} -> {dependency_id}"
        super().__init__(message)
        self.component_id = component_id
        self.dependency_id = dependency_id


class CircularDependencyError(DependencyError):
    """Raised when circular dependencies are detected."""
    def __init__(self, dependency_chain: List[str], visiting: Optional[Iterable[str]] = None):
        chain_str = " -> ".join(dependency_chain)
        super().__init__(
            dependency_chain[0],
            dependency_chain[-1],
            f"Circular dependency detected: {chain_str}"
        )
        self.dependency_chain = list(dependency_chain)
        self.visiting = sorted(visiting) if visiting is not None else sorted(set(dependency_chain))


class ComponentTimeoutError(RegistryError, TimeoutError):
    """Raised when a component does not become ready before a deadline."""
    def __init__(self, component_id, timeout):
        super().__init__(f"Component '{component_id}' not ready after {timeout}s")
        self.component_id = component_id
        self.timeout = timeout
