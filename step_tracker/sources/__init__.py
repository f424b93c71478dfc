"""
Sensor sources and permission gates.

Example usage:
    config = TrackerConfig()
    sources = termux_sources(config)
    controller = SessionController(*sources)
"""

from .base import (
    MovementFilter, PermissionGate, PressureSource, SensorSource, StaticPermissionGate,
    Subscription,
)


def termux_sources(config=None):
    """
    Build the on-device source set.

    Returns:
        tuple: (step_source, position_source, pressure_source, permission_gate)
    """
    from .termux import (
        TermuxLocationSource, TermuxPermissionGate, TermuxPressureSource, TermuxStepSource,
    )
    return (
        TermuxStepSource(config),
        TermuxLocationSource(config),
        TermuxPressureSource(config),
        TermuxPermissionGate(config),
    )


__all__ = [
    'MovementFilter', 'PermissionGate', 'PressureSource', 'SensorSource',
    'StaticPermissionGate', 'Subscription', 'termux_sources',
]
