from sqlweave.utils import ids, logging, text

__all__ = ("ids", "logging", "text")
