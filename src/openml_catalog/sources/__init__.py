"""Network transports."""

from .transport import HttpTransport, Transport

__all__ = ["HttpTransport", "Transport"]
