"""Client, protocol, configuration and state handling for a local development reverse proxy."""

__version__ = "0.1.0"