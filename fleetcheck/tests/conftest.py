import os
os.environ["DATABASE_URL"] = "sqlite:///./test_fleetcheck.db"
os.environ["ENABLE_SCHEDULER"] = "0"
os.environ.setdefault("TELEMETRY_ENABLED", "1")
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import sys
from pathlib import Path
from datetime import datetime
import uuid

sys.path.append(str(Path(__file__).resolve().parents[2]))

from fleetcheck.main import app
from fleetcheck.db.session import get_db
from fleetcheck.models import Base
from fleetcheck.schemas.checklist import ChecklistPeriodicity, ChecklistResponse, ChecklistTemplate, Machine
from fleetcheck.schemas.non_conformity import CreatedBy, LinkedAsset, NcAction, NonConformity

SQLALCHEMY_DATABASE_URL = "sqlite:///./test_fleetcheck.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base.metadata.drop_all(bind=engine)
Base.metadata.create_all(bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def uid(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def dt(value: str) -> datetime:
    """'2024-01-10T12:00:00Z' -> naive UTC datetime."""
    return datetime.fromisoformat(value.replace("Z", ""))


def periodicity(quantity=1, unit="day", anchor="last_submission", active=True):
    return ChecklistPeriodicity(
        quantity=quantity,
        unit=unit,
        anchor=anchor,
        active=active,
    )


def template(template_id="tpl-1", title="Checklist diario", periodicity_cfg=None, questions=()):
    return ChecklistTemplate(
        id=template_id,
        title=title,
        questions=list(questions),
        periodicity=periodicity_cfg,
    )


def machine(machine_id="m-1", checklists=(), modelo=None, tag="", placa=None):
    return Machine(id=machine_id, tag=tag, modelo=modelo, placa=placa, checklists=list(checklists))


def response(response_id, template_id, machine_id, created_at, answers=(), extras=()):
    return ChecklistResponse(
        id=response_id,
        template_id=template_id,
        machine_id=machine_id,
        user_id="user-1",
        operator_matricula="123",
        operator_nome="Operador",
        created_at=dt(created_at),
        answers=list(answers),
        extra_non_conformities=list(extras),
    )


def corrective(started="2024-01-01T02:00:00Z", completed="2024-01-01T04:00:00Z", **kw):
    return NcAction(
        id=kw.pop("id", uuid.uuid4().hex),
        type=kw.pop("type", "corretiva"),
        description=kw.pop("description", "Acao corretiva"),
        started_at=dt(started) if started else None,
        completed_at=dt(completed) if completed else None,
        **kw,
    )


def make_nc(**overrides) -> NonConformity:
    data = dict(
        id=uuid.uuid4().hex,
        title="Teste",
        normalized_title="teste",
        severity="media",
        severity_rank=2,
        status="resolvida",
        created_at=dt("2024-01-01T00:00:00Z"),
        created_by=CreatedBy(id="user", matricula="000", nome="Seed"),
        linked_asset=LinkedAsset(id="asset", tag="TAG-1"),
        source="checklist_question",
        origin_checklist_response_id="response-1",
        origin_key="q:q1",
        year_month="2024-01",
        actions=[],
    )
    data.update(overrides)
    for key in ("created_at", "due_at"):
        if isinstance(data.get(key), str):
            data[key] = dt(data[key])
    return NonConformity(**data)
