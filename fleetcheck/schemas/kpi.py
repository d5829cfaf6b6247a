# fleetcheck/schemas/kpi.py
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from fleetcheck.schemas.checklist import PeriodicityAnchor, PeriodicityUnit, VariableAlertRule
from fleetcheck.schemas.common import UtcDateTime

ComplianceStatus = Literal["compliant", "non_compliant", "never_submitted"]


class PeriodicityComplianceItem(BaseModel):
    template_id: str
    template_name: str
    machine_id: str
    machine_name: Optional[str] = None
    last_submission_at: Optional[UtcDateTime] = None
    window_days: int
    unit: PeriodicityUnit
    quantity: int
    anchor: PeriodicityAnchor
    status: ComplianceStatus


class PeriodicityComplianceSummary(BaseModel):
    total_tracked: int = 0
    compliant: int = 0
    non_compliant: int = 0
    never_submitted: int = 0


class PeriodicityComplianceResult(BaseModel):
    generated_at: UtcDateTime
    summary: PeriodicityComplianceSummary
    items: List[PeriodicityComplianceItem] = Field(default_factory=list)


class CachedPeriodicityCompliance(PeriodicityComplianceResult):
    cached_at: UtcDateTime
    expires_at: UtcDateTime


class VariablePeriodicityItem(BaseModel):
    variable_name: str
    template_id: str
    template_name: str
    question_id: str
    question_text: str
    machine_id: str
    machine_name: Optional[str] = None
    machine_placa: Optional[str] = None
    last_submission_at: Optional[UtcDateTime] = None
    window_days: int
    unit: PeriodicityUnit
    quantity: int
    anchor: PeriodicityAnchor
    status: ComplianceStatus


class VariablePeriodicityResult(BaseModel):
    generated_at: UtcDateTime
    summary: PeriodicityComplianceSummary
    items: List[VariablePeriodicityItem] = Field(default_factory=list)


class VariableAlertItem(BaseModel):
    variable_name: str
    template_id: str
    template_name: str
    question_id: str
    question_text: str
    machine_id: str
    machine_name: Optional[str] = None
    machine_placa: Optional[str] = None
    response_id: str
    response_at: UtcDateTime
    alert_rule: VariableAlertRule


class VariableAlertsResult(BaseModel):
    generated_at: UtcDateTime
    items: List[VariableAlertItem] = Field(default_factory=list)


class TimeSeriesPoint(BaseModel):
    period: str
    opened: int = 0
    closed: int = 0


class RootCauseBucket(BaseModel):
    root_cause: str
    value: int


class SystemBucket(BaseModel):
    system: str
    value: int


class SeverityBySystem(BaseModel):
    system: str
    alta: int = 0
    media: int = 0
    baixa: int = 0


class NcSeries(BaseModel):
    daily: List[TimeSeriesPoint] = Field(default_factory=list)
    weekly: List[TimeSeriesPoint] = Field(default_factory=list)


class NcKpiReport(BaseModel):
    open_total: int = 0
    open_by_severity: Dict[str, int] = Field(default_factory=dict)
    on_time_percentage: float = 0.0
    recurrence_30d: float = 0.0
    avg_containment_hours: float = 0.0
    avg_resolution_hours: float = 0.0
    series: NcSeries = Field(default_factory=NcSeries)
    root_cause_pareto: List[RootCauseBucket] = Field(default_factory=list)
    system_breakdown: List[SystemBucket] = Field(default_factory=list)
    severity_by_system: List[SeverityBySystem] = Field(default_factory=list)
