"""Core framework for the message-passing servo bus runtime."""

from .messages import (
    ArmState,
    BeginMotion,
    CommandType,
    Diagnostic,
    DiagnosticLevel,
    JointState,
    PositionCommand,
    ServoStatus,
    Transition,
)
from .bus import MessageBus, Topics
from .actor import Actor, MailboxActor
from .config import Config, load_config
from .safety import DisarmSnapshot, SafetyController

__all__ = [
    "ArmState",
    "BeginMotion",
    "CommandType",
    "Diagnostic",
    "DiagnosticLevel",
    "JointState",
    "PositionCommand",
    "ServoStatus",
    "Transition",
    "MessageBus",
    "Topics",
    "Actor",
    "MailboxActor",
    "Config",
    "load_config",
    "DisarmSnapshot",
    "SafetyController",
]
