"""
Feetech serial bus servo controller - message-passing actor architecture.

One controller actor owns the serial bus; one actuator actor per servo
turns joint position commands into goal writes. A safety controller
holds the arm state and the crash-safe disarm hooks.
"""

__version__ = "0.1.0"
