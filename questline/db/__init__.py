"""
Database package for Questline.

SQLite-based persistence for characters, quests and the memory tiers.
"""

from .manager import DatabaseManager

__all__ = ["DatabaseManager"]
