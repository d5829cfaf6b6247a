# fleetcheck/models/checklist_template.py
from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON, CheckConstraint, Index

from fleetcheck.db.base import Base

TEMPLATE_TYPES = ("operador", "motorista", "mecanico")


class ChecklistTemplate(Base):
    __tablename__ = "checklist_templates"

    id = Column(String(64), primary_key=True)

    # operador | motorista | mecanico
    type = Column(String(20), nullable=False, default="operador")
    title = Column(String(255), nullable=False)
    version = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)

    # ordered list of question dicts (see schemas.checklist.ChecklistQuestion)
    questions = Column(JSON, nullable=False, default=list)

    # {quantity, unit, window_days, anchor, active} or NULL
    periodicity = Column(JSON, nullable=True)
    # mirrors periodicity.active so the compliance job can filter in SQL
    periodicity_active = Column(Boolean, nullable=False, default=False, index=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint(f"type IN {TEMPLATE_TYPES}", name="ck_checklist_templates_type_allowed"),
        Index("ix_templates_active_periodicity", "is_active", "periodicity_active"),
    )

    def __repr__(self) -> str:
        return f"<ChecklistTemplate id={self.id} title={self.title!r} v{self.version}>"
