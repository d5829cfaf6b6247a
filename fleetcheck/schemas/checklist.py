# fleetcheck/schemas/checklist.py
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, conint, constr, model_validator

from fleetcheck.schemas.common import UtcDateTime

PeriodicityUnit = Literal["day", "week", "month"]
PeriodicityAnchor = Literal["last_submission", "calendar"]
ActorKind = Literal["operador", "motorista", "mecanico"]
AnswerValue = Literal["ok", "nc", "na"]
Severity = Literal["baixa", "media", "alta"]
VariableType = Literal["int", "decimal", "text", "long_text", "date", "time", "boolean"]
VariableCondition = Literal["ok", "nc", "always"]
FleetType = Literal["machine", "vehicle"]

# month is a flat 30-day approximation
UNIT_DAYS = {"day": 1, "week": 7, "month": 30}


class ChecklistPeriodicity(BaseModel):
    """
    Required re-submission cadence.
    window_days is always derived from (quantity, unit); a value sent by the
    caller is overwritten on validation.
    """

    quantity: conint(ge=1) = Field(1, description="How many units between submissions.")
    unit: PeriodicityUnit = Field("day", description="day | week | month")
    window_days: int = Field(1, description="Derived compliance window in days.")
    anchor: PeriodicityAnchor = Field("last_submission", description="Window reference point.")
    active: bool = Field(False, description="Whether the periodicity is tracked.")

    @model_validator(mode="after")
    def _derive_window(self):
        self.window_days = self.quantity * UNIT_DAYS[self.unit]
        return self


class ChecklistPeriodicityUpdate(BaseModel):
    # unit/quantity/anchor stay raw so invalid values reach the service and get a specific message
    active: bool = Field(..., description="Enable/disable periodicity tracking.")
    quantity: Optional[Union[int, float]] = Field(None, description="Units between submissions (>= 1).")
    unit: Optional[str] = Field(None, description="day | week | month")
    anchor: Optional[str] = Field(None, description="last_submission | calendar")


class VariableAlertRule(BaseModel):
    """Home-screen alert raised when an answer to the variable's question matches trigger_condition."""

    color: str = Field("red", description="Card colour (name or hex).")
    message: str = ""
    trigger_condition: VariableCondition = "nc"
    show_on_home_page: bool = True


class QuestionVariable(BaseModel):
    name: str
    type: VariableType = "text"
    condition: VariableCondition = "always"
    alert_rule: Optional[VariableAlertRule] = None
    periodicity: Optional[ChecklistPeriodicity] = None


class ChecklistQuestion(BaseModel):
    id: str
    text: str
    # subsystem labels, resolved in this order (legacy templates use any of them)
    system_category: Optional[str] = None
    system: Optional[str] = None
    category: Optional[str] = None
    group: Optional[str] = None
    section: Optional[str] = None
    default_severity: Optional[Severity] = Field(
        None, description="Severity for NCs raised from this question (defaults to 'media')."
    )
    variable: Optional[QuestionVariable] = None


class ChecklistTemplate(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: ActorKind = "operador"
    title: str
    version: int = 1
    is_active: bool = True
    questions: List[ChecklistQuestion] = Field(default_factory=list)
    periodicity: Optional[ChecklistPeriodicity] = None


class Machine(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tag: str = ""
    modelo: Optional[str] = None
    tipo: Optional[str] = None
    setor: Optional[str] = None
    placa: Optional[str] = None
    fleet_type: FleetType = "machine"
    checklists: List[str] = Field(default_factory=list)


class ChecklistAnswer(BaseModel):
    question_id: str
    response: AnswerValue
    photo_urls: List[str] = Field(default_factory=list)
    observation: Optional[str] = None
    variable_value: Optional[Union[bool, int, float, str]] = None


class ExtraNonConformity(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    severity: Optional[Severity] = None
    safety_risk: bool = False
    impact_availability: bool = False


class ChecklistResponseCreate(BaseModel):
    machine_id: constr(strip_whitespace=True, min_length=1)
    template_id: constr(strip_whitespace=True, min_length=1)
    user_id: constr(strip_whitespace=True, min_length=1)
    operator_matricula: Optional[str] = None
    operator_nome: Optional[str] = None
    created_at: Optional[UtcDateTime] = Field(
        None, description="Submission time (ISO 8601); defaults to server time."
    )
    answers: List[ChecklistAnswer] = Field(default_factory=list)
    extra_non_conformities: List[ExtraNonConformity] = Field(default_factory=list)


class ChecklistResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    machine_id: str
    template_id: str
    user_id: str
    operator_matricula: Optional[str] = None
    operator_nome: Optional[str] = None
    created_at: UtcDateTime
    answers: List[ChecklistAnswer] = Field(default_factory=list)
    extra_non_conformities: List[ExtraNonConformity] = Field(default_factory=list)


class ChecklistResponseOut(ChecklistResponse):
    non_conformity_ids: List[str] = Field(
        default_factory=list, description="NCs raised from this submission."
    )
