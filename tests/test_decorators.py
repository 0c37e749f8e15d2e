"""Tests for the registration and injection decorators."""

import pytest

from component_registry import (
    ComponentBase,
    RegistryError,
    component,
    init_registry,
    inject,
    requires
)


class TestComponentDecorator:

    def test_registers_with_explicit_registry(self, registry):
        @component("cache", dependencies=["db"], config={"ttl": 60}, registry=registry)
        class CacheComponent(ComponentBase):
            pass

        descriptor = registry.descriptors["cache"]
        assert descriptor.factory is CacheComponent
        assert descriptor.dependencies == ("db",)
        assert descriptor.default_config == {"ttl": 60}
        assert CacheComponent.registered_as == "cache"

    def test_defaults_to_class_name_and_default_registry(self, bus):
        registry = init_registry(event_bus=bus)

        @component()
        class Geocoder(ComponentBase):
            pass

        assert registry.is_registered("Geocoder")

    def test_requires_merges_with_explicit_dependencies(self, registry):
        @component("api", dependencies=["db", "metrics"], registry=registry)
        @requires("cache", "db")
        class ApiComponent(ComponentBase):
            pass

        assert ApiComponent.declared_dependencies == ("cache", "db")
        assert registry.descriptors["api"].dependencies == ("cache", "db", "metrics")

    def test_stacked_requires_accumulate(self):
        @requires("db")
        @requires("cache", "db")
        class Worker(ComponentBase):
            pass

        assert Worker.declared_dependencies == ("cache", "db")

    def test_duplicate_registration_leaves_existing(self, registry):
        @component("store", registry=registry)
        class First(ComponentBase):
            pass

        @component("store", registry=registry)
        class Second(ComponentBase):
            pass

        assert registry.descriptors["store"].factory is First

    def test_without_default_registry_raises(self):
        with pytest.raises(RegistryError):
            @component("orphan")
            class Orphan(ComponentBase):
                pass

    @pytest.mark.asyncio
    async def test_decorated_components_start_in_order(self, registry):
        started = []

        @component("form", registry=registry)
        @requires("location")
        class Form(ComponentBase):
            async def on_initialize(self):
                started.append(self.component_id)

        @component("location", registry=registry)
        class Location(ComponentBase):
            async def on_initialize(self):
                started.append(self.component_id)

        await registry.initialize()

        assert started == ["location", "form"]
        assert registry.get("form").get_dependency("location") is registry.get("location")


class TestInject:

    def test_injects_existing_instances(self, registry):
        registry.register("cache", ComponentBase)
        cache = registry.get("cache")

        @inject("cache", "db", registry=registry)
        def lookup(key, cache=None, db=None):
            return key, cache, db

        assert lookup("k") == ("k", cache, None)

    def test_caller_arguments_win(self, registry):
        registry.register("cache", ComponentBase)
        registry.get("cache")

        @inject("cache", registry=registry)
        def lookup(cache=None):
            return cache

        assert lookup(cache="mine") == "mine"

    def test_uses_default_registry_at_call_time(self, bus):
        @inject("cache")
        def lookup(cache=None):
            return cache

        registry = init_registry(event_bus=bus)
        registry.register("cache", ComponentBase)
        cache = registry.get("cache")

        assert lookup() is cache
        assert lookup.__name__ == "lookup"
