#!/usr/bin/env python3
"""
Demo fleet seed:
- two checklist templates (tracked variable on one, alerting variable on the other)
- three machines assigned to them
Safe to run multiple times (idempotent upserts by id).
"""
import os
import sys

# enable 'fleetcheck.' imports
sys.path.append(os.getcwd())

from sqlalchemy.orm import Session

from fleetcheck.crud.checklist import upsert_machine, upsert_template
from fleetcheck.db.session import SessionLocal, engine
from fleetcheck.models import Base
from fleetcheck.schemas.checklist import (
    ChecklistQuestion,
    ChecklistTemplate,
    Machine,
    QuestionVariable,
    VariableAlertRule,
)
from fleetcheck.services.periodicity import build_periodicity

TEMPLATES = [
    ChecklistTemplate(
        id="tpl-operador-diario",
        type="operador",
        title="Checklist diario do operador",
        questions=[
            ChecklistQuestion(id="q1", text="Nivel de oleo do motor", system_category="Motor"),
            ChecklistQuestion(id="q2", text="Vazamento hidraulico", system_category="Hidraulico", default_severity="alta"),
            ChecklistQuestion(id="q3", text="Pneus e esteiras", category="Rodagem"),
            ChecklistQuestion(
                id="q4",
                text="Horimetro",
                variable=QuestionVariable(
                    name="horimetro",
                    type="decimal",
                    condition="always",
                    periodicity=build_periodicity(1, "week"),
                ),
            ),
        ],
        periodicity=build_periodicity(1, "day"),
    ),
    ChecklistTemplate(
        id="tpl-mecanico-semanal",
        type="mecanico",
        title="Inspecao semanal do mecanico",
        questions=[
            ChecklistQuestion(id="m1", text="Freios", system_category="Freios", default_severity="alta"),
            ChecklistQuestion(id="m2", text="Filtro de ar", system_category="Motor"),
            ChecklistQuestion(
                id="m3",
                text="Pressao dos pneus (psi)",
                system_category="Rodagem",
                variable=QuestionVariable(
                    name="pressao_pneus",
                    type="int",
                    condition="nc",
                    alert_rule=VariableAlertRule(
                        color="amber", message="Calibrar pneus antes de liberar", trigger_condition="nc"
                    ),
                ),
            ),
        ],
        periodicity=build_periodicity(1, "week"),
    ),
]

MACHINES = [
    Machine(id="maq-001", tag="ESC-01", modelo="Escavadeira 320", tipo="escavadeira", setor="Mina",
            checklists=["tpl-operador-diario", "tpl-mecanico-semanal"]),
    Machine(id="maq-002", tag="CAR-07", modelo="Carregadeira 950", tipo="carregadeira", setor="Patio",
            checklists=["tpl-operador-diario"]),
    Machine(id="vei-010", tag="CAM-10", modelo="Caminhao basculante", tipo="caminhao", setor="Transporte",
            placa="ABC1D23", fleet_type="vehicle", checklists=["tpl-mecanico-semanal"]),
]


def seed(db: Session) -> None:
    for t in TEMPLATES:
        upsert_template(db, t)
    for m in MACHINES:
        upsert_machine(db, m)


def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed(db)
        print(f"OK: {len(TEMPLATES)} templates, {len(MACHINES)} machines ensured")
    finally:
        db.close()


if __name__ == "__main__":
    main()
