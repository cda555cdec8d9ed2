"""
Client for remote aggregation services.
"""
from .client import AggregatorClient

__all__ = ["AggregatorClient"]
