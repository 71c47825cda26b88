"""Medicine store admin console: state layer over the remote store API."""

__version__ = "1.0.0"
