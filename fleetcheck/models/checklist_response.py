# fleetcheck/models/checklist_response.py
from sqlalchemy import Column, String, DateTime, JSON, Index

from fleetcheck.db.base import Base


class ChecklistResponse(Base):
    """Immutable once stored; NCs reference it by id."""

    __tablename__ = "checklist_responses"

    id = Column(String(64), primary_key=True)

    machine_id = Column(String(64), nullable=False, index=True)
    template_id = Column(String(64), nullable=False, index=True)

    user_id = Column(String(64), nullable=False)
    operator_matricula = Column(String(64), nullable=True, index=True)
    operator_nome = Column(String(255), nullable=True)

    created_at = Column(DateTime, nullable=False, index=True)

    answers = Column(JSON, nullable=False, default=list)
    extra_non_conformities = Column(JSON, nullable=False, default=list)

    __table_args__ = (
        # latest submission per (template, machine)
        Index("ix_responses_template_machine_created", "template_id", "machine_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ChecklistResponse id={self.id} template={self.template_id} machine={self.machine_id}>"
