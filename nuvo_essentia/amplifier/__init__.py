"""Amplifier layer: command ordering and the client facade.

This module provides:
- The single-flight command queue (CommandQueue)
- The blocking per-zone client (AmplifierClient)
"""

from .client import AmplifierClient
from .command_queue import CommandQueue, PendingRequest, QueueState

__all__ = [
    'AmplifierClient',
    'CommandQueue',
    'PendingRequest',
    'QueueState',
]
