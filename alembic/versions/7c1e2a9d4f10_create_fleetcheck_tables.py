"""create fleet checklist, non-conformity and kpi cache tables

Revision ID: 7c1e2a9d4f10
Revises:
Create Date: 2026-10-19 09:00:00
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "7c1e2a9d4f10"
down_revision = None
branch_labels = None
depends_on = None


def _has_table(name: str) -> bool:
    return name in sa.inspect(op.get_bind()).get_table_names()


def upgrade():
    if not _has_table("machines"):
        op.create_table(
            "machines",
            sa.Column("id", sa.String(length=64), primary_key=True),
            sa.Column("tag", sa.String(length=64), nullable=False, server_default=""),
            sa.Column("modelo", sa.String(length=255), nullable=True),
            sa.Column("tipo", sa.String(length=120), nullable=True),
            sa.Column("setor", sa.String(length=120), nullable=True),
            sa.Column("placa", sa.String(length=20), nullable=True),
            sa.Column("fleet_type", sa.String(length=20), nullable=False, server_default="machine"),
            sa.Column("checklists", sa.JSON, nullable=False),
            sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.CheckConstraint("fleet_type IN ('machine', 'vehicle')", name="ck_machines_fleet_type_allowed"),
        )
        op.create_index("ix_machines_tag", "machines", ["tag"])

    if not _has_table("checklist_templates"):
        op.create_table(
            "checklist_templates",
            sa.Column("id", sa.String(length=64), primary_key=True),
            sa.Column("type", sa.String(length=20), nullable=False, server_default="operador"),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("version", sa.Integer, nullable=False, server_default="1"),
            sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
            sa.Column("questions", sa.JSON, nullable=False),
            sa.Column("periodicity", sa.JSON, nullable=True),
            sa.Column("periodicity_active", sa.Boolean, nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.CheckConstraint(
                "type IN ('operador', 'motorista', 'mecanico')",
                name="ck_checklist_templates_type_allowed",
            ),
        )
        op.create_index(
            "ix_checklist_templates_periodicity_active", "checklist_templates", ["periodicity_active"]
        )
        op.create_index(
            "ix_templates_active_periodicity", "checklist_templates", ["is_active", "periodicity_active"]
        )

    if not _has_table("checklist_responses"):
        op.create_table(
            "checklist_responses",
            sa.Column("id", sa.String(length=64), primary_key=True),
            sa.Column("machine_id", sa.String(length=64), nullable=False),
            sa.Column("template_id", sa.String(length=64), nullable=False),
            sa.Column("user_id", sa.String(length=64), nullable=False),
            sa.Column("operator_matricula", sa.String(length=64), nullable=True),
            sa.Column("operator_nome", sa.String(length=255), nullable=True),
            sa.Column("created_at", sa.DateTime, nullable=False),
            sa.Column("answers", sa.JSON, nullable=False),
            sa.Column("extra_non_conformities", sa.JSON, nullable=False),
        )
        op.create_index("ix_checklist_responses_machine_id", "checklist_responses", ["machine_id"])
        op.create_index("ix_checklist_responses_template_id", "checklist_responses", ["template_id"])
        op.create_index("ix_checklist_responses_created_at", "checklist_responses", ["created_at"])
        op.create_index(
            "ix_checklist_responses_operator_matricula", "checklist_responses", ["operator_matricula"]
        )
        op.create_index(
            "ix_responses_template_machine_created",
            "checklist_responses",
            ["template_id", "machine_id", "created_at"],
        )

    if not _has_table("non_conformities"):
        op.create_table(
            "non_conformities",
            sa.Column("id", sa.String(length=64), primary_key=True),
            sa.Column("title", sa.String(length=500), nullable=False),
            sa.Column("normalized_title", sa.String(length=500), nullable=False, server_default=""),
            sa.Column("description", sa.Text, nullable=True),
            sa.Column("severity", sa.String(length=10), nullable=False, server_default="media"),
            sa.Column("severity_rank", sa.Integer, nullable=False, server_default="2"),
            sa.Column("safety_risk", sa.Boolean, nullable=False, server_default=sa.false()),
            sa.Column("impact_availability", sa.Boolean, nullable=False, server_default=sa.false()),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="aberta"),
            sa.Column("due_at", sa.DateTime, nullable=True),
            sa.Column("created_at", sa.DateTime, nullable=False),
            sa.Column("updated_at", sa.DateTime, nullable=True),
            sa.Column("created_by", sa.JSON, nullable=False),
            sa.Column("operator_matricula", sa.String(length=64), nullable=True),
            sa.Column("linked_asset", sa.JSON, nullable=False),
            sa.Column("asset_id", sa.String(length=64), nullable=False),
            sa.Column("linked_template_id", sa.String(length=64), nullable=True),
            sa.Column("source", sa.String(length=30), nullable=False),
            sa.Column("origin_checklist_response_id", sa.String(length=64), nullable=False),
            sa.Column("origin_question_id", sa.String(length=64), nullable=True),
            sa.Column("origin_key", sa.String(length=80), nullable=False),
            sa.Column("root_cause", sa.Text, nullable=True),
            sa.Column("actions", sa.JSON, nullable=False),
            sa.Column("recurrence_of_id", sa.String(length=64), nullable=True),
            sa.Column("telemetry_ref", sa.JSON, nullable=True),
            sa.Column("year_month", sa.String(length=7), nullable=False),
            sa.Column("system_category", sa.String(length=120), nullable=True),
            sa.CheckConstraint(
                "status IN ('aberta', 'em_execucao', 'aguardando_peca', 'bloqueada', 'resolvida')",
                name="ck_non_conformities_status_allowed",
            ),
            sa.CheckConstraint(
                "severity IN ('baixa', 'media', 'alta')", name="ck_non_conformities_severity_allowed"
            ),
            sa.CheckConstraint(
                "source IN ('checklist_question', 'checklist_extra')",
                name="ck_non_conformities_source_allowed",
            ),
            sa.UniqueConstraint(
                "origin_checklist_response_id", "origin_key", name="uq_non_conformities_origin"
            ),
        )
        for col in (
            "normalized_title",
            "severity",
            "status",
            "created_at",
            "operator_matricula",
            "asset_id",
            "linked_template_id",
            "origin_checklist_response_id",
            "recurrence_of_id",
            "year_month",
        ):
            op.create_index(f"ix_non_conformities_{col}", "non_conformities", [col])
        op.create_index("ix_nc_asset_created", "non_conformities", ["asset_id", "created_at"])

    if not _has_table("nc_audits"):
        op.create_table(
            "nc_audits",
            sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
            sa.Column("nc_id", sa.String(length=64), nullable=False),
            sa.Column("by_user_id", sa.String(length=64), nullable=False, server_default="system"),
            sa.Column("by_nome", sa.String(length=255), nullable=True),
            sa.Column("at", sa.DateTime, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.Column("diff", sa.JSON, nullable=False),
            sa.ForeignKeyConstraint(["nc_id"], ["non_conformities.id"], ondelete="CASCADE"),
        )
        op.create_index("ix_nc_audits_id", "nc_audits", ["id"])
        op.create_index("ix_nc_audits_nc_at", "nc_audits", ["nc_id", "at"])

    if not _has_table("kpi_cache"):
        op.create_table(
            "kpi_cache",
            sa.Column("key", sa.String(length=120), primary_key=True),
            sa.Column("payload", sa.JSON, nullable=False),
            sa.Column("cached_at", sa.DateTime, nullable=False),
            sa.Column("expires_at", sa.DateTime, nullable=False),
        )
        op.create_index("ix_kpi_cache_expires_at", "kpi_cache", ["expires_at"])


def downgrade():
    for table in (
        "kpi_cache",
        "nc_audits",
        "non_conformities",
        "checklist_responses",
        "checklist_templates",
        "machines",
    ):
        if _has_table(table):
            op.drop_table(table)
