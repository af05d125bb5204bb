"""Client-side chat sync engine: live stream + room-partitioned local log."""

__version__ = "0.1.0"
