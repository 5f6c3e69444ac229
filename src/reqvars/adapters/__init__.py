"""Adapters to the outside world."""

from reqvars.adapters.http import HttpxTransport, Transport

__all__ = ["HttpxTransport", "Transport"]
