"""nbrmap — build neighbor topology graphs from LLDP/CDP command output."""

__version__ = "0.3.0"
