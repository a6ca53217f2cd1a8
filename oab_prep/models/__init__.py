"""
Database models package
"""
from oab_prep.models.storage_entry import StorageEntry

__all__ = ["StorageEntry"]
