"""Database driver adapters implementing :mod:`sqlweave.protocols`."""
