"""Self-hosted runner health monitoring and outage tracking."""

__version__ = "0.1.0"
