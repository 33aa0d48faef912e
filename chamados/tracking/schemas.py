from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from chamados.db.models import Nature


class TrackingCreate(BaseModel):
    demand_id: int = Field(..., gt=0)
    hours: float = Field(..., ge=0)
    nature: Nature
    description: Optional[str] = None
    submitted_at: date
    submitter_id: str = Field(..., min_length=1)


class TrackingUpdate(TrackingCreate):
    pass
