"""Platform building blocks for a game streaming client."""

__version__ = "0.1.0"
__all__ = [
    "blocking_queue",
    "crypto",
    "netaddr",
    "platform",
    "recorder",
    "sockets",
    "version",
]