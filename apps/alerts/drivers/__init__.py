"""
Alert drivers for ingesting alerts from various sources.
"""

from apps.alerts.drivers.base import BaseAlertDriver, ParsedPayload, RejectedAlert
from apps.alerts.drivers.alertmanager import AlertManagerDriver
from apps.alerts.drivers.manual import ManualAlertDriver

__all__ = [
    "BaseAlertDriver",
    "ParsedPayload",
    "RejectedAlert",
    "AlertManagerDriver",
    "ManualAlertDriver",
    "DRIVER_REGISTRY",
    "get_driver",
    "detect_driver",
]

# Registry of available drivers (order matters for detection)
DRIVER_REGISTRY: dict[str, type[BaseAlertDriver]] = {
    "alertmanager": AlertManagerDriver,
    "manual": ManualAlertDriver,
}


def get_driver(name: str) -> BaseAlertDriver:
    """
    Get a driver instance by name.

    Args:
        name: Driver name (e.g., "alertmanager", "manual").

    Returns:
        Driver instance.

    Raises:
        ValueError: If driver name is not found.
    """
    if name not in DRIVER_REGISTRY:
        raise ValueError(
            f"Unknown driver: {name}. Available: {', '.join(DRIVER_REGISTRY.keys())}"
        )
    return DRIVER_REGISTRY[name]()


def detect_driver(payload: dict) -> BaseAlertDriver | None:
    """
    Auto-detect the appropriate driver for a payload.

    Tries each driver's validate() method in registry order and returns the
    first match, or None if no driver accepts the payload.
    """
    for driver_class in DRIVER_REGISTRY.values():
        driver = driver_class()
        if driver.validate(payload):
            return driver
    return None
