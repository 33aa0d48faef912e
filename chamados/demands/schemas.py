from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from chamados.db.models import DemandStatus, ServiceType


class DemandCreate(BaseModel):
    name: str = Field(..., min_length=1)
    doc_hours: Optional[float] = Field(default=None, ge=0)
    dev_hours: Optional[float] = Field(default=None, ge=0)
    type: ServiceType
    description: Optional[str] = None
    focal_point_id: str = Field(..., min_length=1)
    analyst_id: str = Field(..., min_length=1)
    project_id: int = Field(..., gt=0)
    status: DemandStatus = DemandStatus.BACKLOG
    opened_at: Optional[date] = None
    start_at: Optional[date] = None
    ends_at: Optional[date] = None
    roi: Optional[str] = None
    robot_id: int = Field(..., gt=0)
    client: Optional[int] = Field(default=None, ge=0)
    service: Optional[int] = Field(default=None, ge=0)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise ValueError("Nome da demanda obrigatorio")
        return cleaned


class DemandUpdate(DemandCreate):
    status: DemandStatus
    ended_at: Optional[date] = None
