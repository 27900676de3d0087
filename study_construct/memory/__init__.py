"""Durable per-user weakness memory."""

from .store import WeaknessMemoryStore, atomic_write_json, profile_filename

__all__ = ["WeaknessMemoryStore", "atomic_write_json", "profile_filename"]
