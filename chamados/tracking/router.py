from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from chamados.core.identity import CallerIdentity
from chamados.core.security import get_current_caller
from chamados.db import models
from chamados.db.session import get_db
from chamados.tracking import service
from chamados.tracking.schemas import TrackingCreate, TrackingUpdate

router = APIRouter(prefix="/trackings", tags=["Apontamentos"])


@router.get("")
def list_trackings(
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return [service.serialize_tracking(db, caller, item) for item in service.list_trackings(db, caller)]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_tracking(
    payload: TrackingCreate,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    tracking = service.create_tracking(db, caller, payload)
    return service.serialize_tracking(db, caller, tracking)


@router.get("/demand/{demand_id}")
def find_by_demand(
    demand_id: int,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    items = service.find_by_demand_id(db, caller, demand_id)
    return [service.serialize_tracking(db, caller, item) for item in items]


@router.get("/demand/{demand_id}/total-hours")
def total_hours(
    demand_id: int,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return {"demand_id": demand_id, "total_hours": service.get_total_hours_by_demand_id(db, caller, demand_id)}


@router.get("/demand/{demand_id}/total-hours/{nature}")
def total_hours_by_nature(
    demand_id: int,
    nature: models.Nature,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    total = service.get_total_hours_by_demand_id_and_nature(db, caller, demand_id, nature)
    return {"demand_id": demand_id, "nature": nature.value, "total_hours": total}


@router.get("/submitter/{submitter_id}")
def find_by_submitter(
    submitter_id: str,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    items = service.find_by_submitter_id(db, caller, submitter_id)
    return [service.serialize_tracking(db, caller, item) for item in items]


@router.get("/nature/{nature}")
def find_by_nature(
    nature: models.Nature,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    items = service.find_by_nature(db, caller, nature)
    return [service.serialize_tracking(db, caller, item) for item in items]


@router.get("/{tracking_id}")
def get_tracking(
    tracking_id: int,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return service.serialize_tracking(db, caller, service.find_by_id(db, caller, tracking_id))


@router.put("/{tracking_id}")
def update_tracking(
    tracking_id: int,
    payload: TrackingUpdate,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    tracking = service.update_tracking(db, caller, tracking_id, payload)
    return service.serialize_tracking(db, caller, tracking)


@router.delete("/{tracking_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_tracking(
    tracking_id: int,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    service.delete_tracking_by_id(db, caller, tracking_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
