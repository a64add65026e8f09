"""KPI Gate - evaluation lock and unlock-request workflow service."""

__version__ = "0.1.0"
