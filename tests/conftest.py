import pytest

from config import RegistryConfig
from component_registry import ComponentRegistry, EventBus, reset_registry


@pytest.fixture
def bus():
    return EventBus("test")


@pytest.fixture
def registry_config():
    return RegistryConfig(wait_timeout=1.0, poll_interval=0.01)


@pytest.fixture
def registry(bus, registry_config):
    registry = ComponentRegistry(event_bus=bus, config=registry_config)
    yield registry
    registry.close()


@pytest.fixture
def quiet_registry(bus):
    """Registry with automatic recovery switched off."""
    registry = ComponentRegistry(
        event_bus=bus,
        config=RegistryConfig(wait_timeout=1.0, poll_interval=0.01, recovery_enabled=False)
    )
    yield registry
    registry.close()


@pytest.fixture(autouse=True)
def _reset_default_registry():
    yield
    reset_registry()
