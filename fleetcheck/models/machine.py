# fleetcheck/models/machine.py
from datetime import datetime

from sqlalchemy import Column, String, DateTime, JSON, CheckConstraint

from fleetcheck.db.base import Base

FLEET_TYPES = ("machine", "vehicle")


class Machine(Base):
    __tablename__ = "machines"

    id = Column(String(64), primary_key=True)
    tag = Column(String(64), nullable=False, default="", index=True)

    modelo = Column(String(255), nullable=True)
    tipo = Column(String(120), nullable=True)
    setor = Column(String(120), nullable=True)
    placa = Column(String(20), nullable=True)

    # machine | vehicle
    fleet_type = Column(String(20), nullable=False, default="machine")

    # template ids assigned to this machine
    checklists = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint(f"fleet_type IN {FLEET_TYPES}", name="ck_machines_fleet_type_allowed"),
    )

    def __repr__(self) -> str:
        return f"<Machine id={self.id} tag={self.tag!r}>"
