"""
StorageEntry model - durable key-value documents
"""
from sqlalchemy import Column, String, Text, DateTime, func
from oab_prep.database import Base


class StorageEntry(Base):
    """
    Storage entries table - one JSON document per key

    Keys in use:
    - oab_users: registry of every UserProfile
    - oab_history_{user_id}: ExamResult list of one user, most recent first
    - theme: light/dark preference
    """
    __tablename__ = "storage_entries"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)  # JSON document, rewritten whole
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<StorageEntry(key={self.key})>"
