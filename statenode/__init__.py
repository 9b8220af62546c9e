"""statenode - stateless HTTP application node with session state kept in Redis."""

__version__ = "0.1.0"
