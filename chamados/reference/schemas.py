from typing import Optional

from pydantic import BaseModel, Field, field_validator

from chamados.db.models import ExecutionType, RobotStatus, UserRole


def _required_text(value: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValueError("Campo obrigatorio")
    return cleaned


class ClientPayload(BaseModel):
    name: str = Field(..., min_length=1)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _required_text(value)


class ProjectPayload(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    area: Optional[str] = None
    client_id: int = Field(..., gt=0)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _required_text(value)


class RobotCreate(BaseModel):
    name: str = Field(..., min_length=1)
    cell: Optional[str] = None
    technology: Optional[str] = None
    execution_type: Optional[ExecutionType] = None
    client: Optional[str] = None
    status: RobotStatus = RobotStatus.ACTIVE

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _required_text(value)


class RobotUpdate(BaseModel):
    name: Optional[str] = None
    cell: Optional[str] = None
    technology: Optional[str] = None
    execution_type: Optional[ExecutionType] = None
    client: Optional[str] = None
    status: Optional[RobotStatus] = None


class SubmitterPayload(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    phone: Optional[str] = None
    department: Optional[str] = None
    company: Optional[str] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        cleaned = _required_text(value).lower()
        if "@" not in cleaned:
            raise ValueError("Email invalido")
        return cleaned


class SubmitterStatusPayload(BaseModel):
    is_active: bool


class SubmitterRolePayload(BaseModel):
    role: Optional[UserRole] = None
