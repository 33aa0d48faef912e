from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from chamados.db.models import ServiceType


class _CallFields(BaseModel):
    cell: Optional[str] = None
    robot: Optional[str] = None
    automation_technology: Optional[str] = None
    company: Optional[str] = None


class _SupportFields(_CallFields):
    client_code: Optional[str] = None
    client_name: Optional[str] = None
    service_code: Optional[str] = None
    service_name: Optional[str] = None
    has_documentation: Optional[bool] = None
    automation_user: Optional[str] = None
    automation_server: Optional[str] = None


class _ProjectFields(_CallFields):
    roi: Optional[str] = None
    client: Optional[str] = None
    service: Optional[str] = None
    business_area: Optional[str] = None
    process_name: Optional[str] = None
    execution_frequency: Optional[str] = None
    seasonality: Optional[str] = None
    volume: Optional[str] = None
    case_duration: Optional[str] = None
    people_count: Optional[int] = Field(default=None, ge=0)
    input_data_source: Optional[str] = None
    uses_mfa: Optional[str] = None
    has_captcha: Optional[str] = None
    has_digital_certificate: Optional[str] = None
    api_available: Optional[str] = None
    robotic_user_possible: Optional[str] = None
    login_access_limits: Optional[str] = None
    application_access: Optional[str] = None
    rdp_positive: Optional[str] = None
    needs_vpn: Optional[str] = None
    human_analysis_step: Optional[str] = None
    technology_restrictions: Optional[str] = None
    rules_defined: Optional[str] = None
    repetitive_process: Optional[str] = None
    structured_data: Optional[str] = None


class _NewCall(BaseModel):
    description: str = Field(..., min_length=1, max_length=2000)

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise ValueError("Descricao obrigatoria")
        return cleaned


class MelhoriaCreate(_NewCall, _SupportFields):
    kind: Literal[ServiceType.MELHORIA] = ServiceType.MELHORIA
    already_supported: Optional[bool] = None


class SustentacaoCreate(_NewCall, _SupportFields):
    kind: Literal[ServiceType.SUSTENTACAO] = ServiceType.SUSTENTACAO


class NovoProjetoCreate(_NewCall, _ProjectFields):
    kind: Literal[ServiceType.NOVO_PROJETO] = ServiceType.NOVO_PROJETO


class CallUpdate(_SupportFields, _ProjectFields):
    """Partial update; fields that do not belong to the request's kind are ignored."""

    kind: Optional[ServiceType] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=2000)
    already_supported: Optional[bool] = None


def _kind_fields(schema: type[BaseModel]) -> frozenset[str]:
    return frozenset(schema.model_fields) - {"kind"}


KIND_FIELDS = {
    ServiceType.MELHORIA: _kind_fields(MelhoriaCreate),
    ServiceType.SUSTENTACAO: _kind_fields(SustentacaoCreate),
    ServiceType.NOVO_PROJETO: _kind_fields(NovoProjetoCreate),
}
