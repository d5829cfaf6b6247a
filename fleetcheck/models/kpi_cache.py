# fleetcheck/models/kpi_cache.py
from sqlalchemy import Column, String, DateTime, JSON

from fleetcheck.db.base import Base


class KpiCache(Base):
    """Key-value cache rows with an explicit expiry."""

    __tablename__ = "kpi_cache"

    key = Column(String(120), primary_key=True)
    payload = Column(JSON, nullable=False)
    cached_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<KpiCache key={self.key!r} expires={self.expires_at}>"
