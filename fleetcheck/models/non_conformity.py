# fleetcheck/models/non_conformity.py
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, JSON,
    CheckConstraint, Index, UniqueConstraint,
)

from fleetcheck.db.base import Base

# NOTE: keep simple string "enums" for SQLite portability
NC_STATUS = ("aberta", "em_execucao", "aguardando_peca", "bloqueada", "resolvida")
NC_SEVERITY = ("baixa", "media", "alta")
NC_SOURCE = ("checklist_question", "checklist_extra")


class NonConformity(Base):
    __tablename__ = "non_conformities"

    id = Column(String(64), primary_key=True)

    title = Column(String(500), nullable=False)
    normalized_title = Column(String(500), nullable=False, default="", index=True)
    description = Column(Text, nullable=True)

    severity = Column(String(10), nullable=False, default="media", index=True)
    severity_rank = Column(Integer, nullable=False, default=2)
    safety_risk = Column(Boolean, nullable=False, default=False)
    impact_availability = Column(Boolean, nullable=False, default=False)

    status = Column(String(20), nullable=False, default="aberta", index=True)
    due_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime, nullable=True)

    # {id, matricula, nome}
    created_by = Column(JSON, nullable=False)
    operator_matricula = Column(String(64), nullable=True, index=True)

    # asset snapshot {id, tag, modelo, tipo, setor}; asset_id duplicated for queries
    linked_asset = Column(JSON, nullable=False)
    asset_id = Column(String(64), nullable=False, index=True)
    linked_template_id = Column(String(64), nullable=True, index=True)

    source = Column(String(30), nullable=False)
    origin_checklist_response_id = Column(String(64), nullable=False, index=True)
    origin_question_id = Column(String(64), nullable=True)
    origin_key = Column(String(80), nullable=False)

    root_cause = Column(Text, nullable=True)
    actions = Column(JSON, nullable=False, default=list)

    # weak id back-reference to an earlier NC (no FK: history is append-only)
    recurrence_of_id = Column(String(64), nullable=True, index=True)

    telemetry_ref = Column(JSON, nullable=True)
    year_month = Column(String(7), nullable=False, index=True)
    system_category = Column(String(120), nullable=True)

    __table_args__ = (
        CheckConstraint(f"status IN {NC_STATUS}", name="ck_non_conformities_status_allowed"),
        CheckConstraint(f"severity IN {NC_SEVERITY}", name="ck_non_conformities_severity_allowed"),
        CheckConstraint(f"source IN {NC_SOURCE}", name="ck_non_conformities_source_allowed"),
        # one NC per failed item per submission
        UniqueConstraint(
            "origin_checklist_response_id", "origin_key", name="uq_non_conformities_origin"
        ),
        Index("ix_nc_asset_created", "asset_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<NonConformity id={self.id} title={self.title!r} status={self.status}>"
