"""buildrelay - source-control triggers in, signed build webhooks out."""
__version__ = "0.1.0"
