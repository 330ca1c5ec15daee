"""Discover EC2 instances and register them as Sensu Go proxy entities."""

__version__ = "1.0.0"
