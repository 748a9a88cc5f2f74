# Models package
from .status_history import DeviceStatusHistory

__all__ = ['DeviceStatusHistory']
