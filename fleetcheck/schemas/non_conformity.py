# fleetcheck/schemas/non_conformity.py
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from fleetcheck.schemas.checklist import Severity
from fleetcheck.schemas.common import UtcDateTime

NcStatus = Literal["aberta", "em_execucao", "aguardando_peca", "bloqueada", "resolvida"]
NcSource = Literal["checklist_question", "checklist_extra"]
ActionType = Literal["corretiva", "preventiva"]

SEVERITIES = ("baixa", "media", "alta")


class ActionOwner(BaseModel):
    id: str
    nome: Optional[str] = None


class NcAction(BaseModel):
    id: Optional[str] = None
    type: ActionType = "corretiva"
    description: str
    owner: Optional[ActionOwner] = None
    started_at: Optional[UtcDateTime] = None
    completed_at: Optional[UtcDateTime] = None
    effective: Optional[bool] = None


class LinkedAsset(BaseModel):
    """Denormalised machine snapshot taken when the NC was raised."""

    id: str
    tag: str = ""
    modelo: Optional[str] = None
    tipo: Optional[str] = None
    setor: Optional[str] = None


class CreatedBy(BaseModel):
    id: str
    matricula: str = ""
    nome: Optional[str] = None


class TelemetrySnapshot(BaseModel):
    hours: Optional[float] = None
    odometer_km: Optional[float] = None
    fuel_used_l: Optional[float] = None
    idle_time_h: Optional[float] = None
    fault_codes: List[str] = Field(default_factory=list)
    window_start: Optional[UtcDateTime] = None
    window_end: Optional[UtcDateTime] = None


class NonConformityBase(BaseModel):
    title: str
    normalized_title: str = ""
    description: Optional[str] = None
    severity: Severity = "media"
    severity_rank: int = 2
    safety_risk: bool = False
    impact_availability: bool = False
    status: NcStatus = "aberta"
    due_at: Optional[UtcDateTime] = None
    created_at: UtcDateTime
    created_by: CreatedBy
    linked_asset: LinkedAsset
    linked_template_id: Optional[str] = None
    source: NcSource
    origin_checklist_response_id: str
    origin_question_id: Optional[str] = None
    origin_key: str = Field(..., description="'q:<question_id>' or 'x:<extra index>'; unique per response.")
    root_cause: Optional[str] = None
    actions: List[NcAction] = Field(default_factory=list)
    # weak back-reference to an earlier NC id; never an object reference
    recurrence_of_id: Optional[str] = None
    telemetry_ref: Optional[TelemetrySnapshot] = None
    year_month: str
    system_category: Optional[str] = None


class NonConformityCreate(NonConformityBase):
    """Record produced by the checklist mapper, ready to persist."""


class NonConformity(NonConformityBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    updated_at: Optional[UtcDateTime] = None


class ActorRef(BaseModel):
    id: Optional[str] = None
    nome: Optional[str] = None


class NonConformityUpdate(BaseModel):
    # All optional for PATCH
    status: Optional[NcStatus] = None
    severity: Optional[Severity] = None
    due_at: Optional[UtcDateTime] = None
    root_cause: Optional[str] = None
    safety_risk: Optional[bool] = None
    impact_availability: Optional[bool] = None
    actions: Optional[List[NcAction]] = None
    telemetry_ref: Optional[TelemetrySnapshot] = None
    actor: Optional[ActorRef] = Field(None, description="Who performed the change (audit trail).")


class NcAuditOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    nc_id: str
    by_user_id: str
    by_nome: Optional[str] = None
    at: datetime
    diff: Dict[str, Any]


class NcDetailOut(BaseModel):
    data: NonConformity
    audits: List[NcAuditOut] = Field(default_factory=list)


class NcFilters(BaseModel):
    """Empty / missing fields are wildcards; everything present is AND-ed."""

    statuses: List[str] = Field(default_factory=list)
    severities: List[str] = Field(default_factory=list)
    asset_id: Optional[str] = None
    date_from: Optional[UtcDateTime] = None
    date_to: Optional[UtcDateTime] = None
    query: Optional[str] = None


class NcPage(BaseModel):
    data: List[NonConformity]
    page: int
    page_size: int
    total: int
    has_more: bool
