"""Engine binary management, query engine control and data proxy access for Prisma clients."""

__version__ = "0.1.0"

__all__ = [
    "binaries",
    "cli",
    "platform",
    "protocol",
    "proxy",
    "queryengine",
    "transform",
    "transport",
    "unpack",
]