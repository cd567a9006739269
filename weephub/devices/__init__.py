"""Device control via the remote device-control API"""

from .remote_client import DeviceControlClient
from .dispatcher import CommandDispatcher, DispatchOutcome

__all__ = ["DeviceControlClient", "CommandDispatcher", "DispatchOutcome"]
