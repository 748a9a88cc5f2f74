"""IronMonitor: live monitoring core for the mixing and packaging lines"""

__version__ = "1.0.0"
