"""Ground-station tooling for CSP networks."""

__version__ = "0.1.0"