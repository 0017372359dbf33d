"""
Key/value table backing the persistence port.

Search history and saved searches are stored as serialized blobs under a
fixed key each; the engine never queries inside them.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import String, LargeBinary, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from site_search.database import Base


class StoredValue(Base):
    __tablename__ = "search_store"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=func.now())
