"""Persistent storage for tradesxbt."""
from .db import KeyValueStore

__all__ = ['KeyValueStore']
