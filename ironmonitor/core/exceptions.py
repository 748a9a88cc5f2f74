"""
Exception hierarchy for IronMonitor
"""


class IronMonitorError(Exception):
    """Base class for all IronMonitor errors"""


class TransportFailure(IronMonitorError):
    """Network, HTTP status or payload decoding failure talking to the remote store"""

    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status


class DeviceNotFoundError(IronMonitorError):
    """No device with the requested id exists in the cache"""

    def __init__(self, device_id):
        super().__init__(f"Device {device_id} not found")
        self.device_id = device_id


class NothingToExportError(IronMonitorError):
    """Raised when an export is requested but there is no data"""


class ConfirmationRequired(IronMonitorError):
    """Starting a machine needs explicit operator confirmation"""
