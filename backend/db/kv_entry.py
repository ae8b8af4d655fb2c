from sqlalchemy import Column, String, Text

from .database import Base


class KvEntry(Base):
    """One key/value pair of the ledger store (status or a delivery record)."""
    __tablename__ = "kv_entries"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
