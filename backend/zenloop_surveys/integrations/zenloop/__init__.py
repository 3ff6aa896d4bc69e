"""Zenloop survey API client."""

from zenloop_surveys.integrations.zenloop.client import ZenloopClient

__all__ = ["ZenloopClient"]
