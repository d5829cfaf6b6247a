# fleetcheck/models/nc_audit.py
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, JSON, ForeignKey, Index
from sqlalchemy.orm import relationship

from fleetcheck.db.base import Base


class NcAudit(Base):
    __tablename__ = "nc_audits"

    id = Column(Integer, primary_key=True, index=True)
    nc_id = Column(String(64), ForeignKey("non_conformities.id", ondelete="CASCADE"), nullable=False)

    by_user_id = Column(String(64), nullable=False, default="system")
    by_nome = Column(String(255), nullable=True)
    at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # {field: {before, after}}
    diff = Column(JSON, nullable=False, default=dict)

    non_conformity = relationship("NonConformity")

    __table_args__ = (
        Index("ix_nc_audits_nc_at", "nc_id", "at"),
    )

    def __repr__(self) -> str:
        return f"<NcAudit id={self.id} nc={self.nc_id} by={self.by_user_id}>"
