#!/usr/bin/env python3
"""
Component Registry Demonstration

Wires three booking-form components through the registry: a location service,
a vehicle catalog that needs it, and a booking form that needs both. Shows
dependency-ordered startup, readiness waiting, automatic recovery of a flaky
component and reverse-order teardown.
"""

import sys
import os
import asyncio
import json

# Add project root to path
sys.path.insert(0, os.getcwd())

from config import init_config
from custom_logging import setup_logger
from component_registry import (
    ComponentBase,
    EventBus,
    ErrorEvents,
    init_registry,
    component,
    requires
)


class LocationService(ComponentBase):
    """Resolves pickup and drop-off addresses."""

    async def on_initialize(self):
        await asyncio.sleep(0.05)  # stand-in for loading a places client
        self.known_places = {"MIA": "Miami International Airport", "SB": "South Beach"}

    def lookup(self, code):
        return self.known_places.get(code)


class VehicleCatalog(ComponentBase):
    """Vehicle list; fails on its first start to exercise recovery."""

    attempts = 0

    async def on_initialize(self):
        VehicleCatalog.attempts += 1
        if VehicleCatalog.attempts == 1:
            raise ConnectionError("vehicle feed unavailable")
        self.vehicles = ["sedan", "suv", "sprinter"]


class BookingForm(ComponentBase):
    """Form that needs both services ready before it can quote."""

    async def on_initialize(self):
        self.locations = self.get_dependency("location")

    async def on_destroy(self):
        print(f"  booking form closing (location still {self.locations.state.value})")


async def main():
    config = init_config()
    setup_logger(config.logging)

    bus = EventBus("demo")
    bus.subscribe("system:*", lambda payload: print(f"  event: {payload}"))
    bus.subscribe(ErrorEvents.COMPONENT_ERROR, lambda payload: print(f"  error: {payload['error']}"))

    registry = init_registry(event_bus=bus, config=config.registry)

    component("location")(LocationService)
    component("vehicles", dependencies=["location"])(VehicleCatalog)
    component("booking-form", config={"currency": "USD"})(requires("location", "vehicles")(BookingForm))

    print("Initialization order:", registry.get_initialization_order())

    print("\nInitializing components...")
    await registry.initialize()

    print("\nWaiting for vehicle catalog recovery...")
    vehicles = await registry.wait_for("vehicles", timeout=2.0)
    print(f"  vehicles ready: {vehicles.vehicles}")

    await registry.wait_for_pending()
    print("\nRegistry stats:")
    print(json.dumps(registry.get_stats(), indent=2))

    print("\nShutting down components...")
    await registry.destroy()


if __name__ == "__main__":
    asyncio.run(main())
