from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from chamados.core.identity import CallerIdentity
from chamados.core.security import get_current_caller
from chamados.db import models
from chamados.db.session import get_db
from chamados.demands import service
from chamados.demands.schemas import DemandCreate, DemandUpdate

router = APIRouter(prefix="/demands", tags=["Demandas"])


def _many(items: list[models.Demand]) -> list[dict]:
    return [service.serialize_demand(item) for item in items]


@router.get("")
def list_demands(
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return _many(service.list_demands(db, caller))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_demand(
    payload: DemandCreate,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return service.serialize_demand(service.create_demand(db, caller, payload))


@router.get("/status/{demand_status}")
def find_by_status(
    demand_status: models.DemandStatus,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return _many(service.find_by_status(db, caller, demand_status))


@router.get("/type/{service_type}")
def find_by_type(
    service_type: models.ServiceType,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return _many(service.find_by_type(db, caller, service_type))


@router.get("/analyst/{analyst_id}")
def find_by_analyst(
    analyst_id: str,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return _many(service.find_by_analyst_id(db, caller, analyst_id))


@router.get("/focal-point/{focal_point_id}")
def find_by_focal_point(
    focal_point_id: str,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return _many(service.find_by_focal_point_id(db, caller, focal_point_id))


@router.get("/project/{project_id}")
def find_by_project(
    project_id: int,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return _many(service.find_by_project_id(db, caller, project_id))


@router.get("/project/client/{client_id}")
def find_by_project_client(
    client_id: int,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return _many(service.find_by_project_client_id(db, caller, client_id))


@router.get("/client/{client}")
def find_by_client(
    client: int,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return _many(service.find_by_client(db, caller, client))


@router.get("/service/{service_id}")
def find_by_service(
    service_id: int,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return _many(service.find_by_service(db, caller, service_id))


@router.get("/robot/{robot_id}")
def find_by_robot(
    robot_id: int,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return _many(service.find_by_robot_id(db, caller, robot_id))


@router.get("/{demand_id}")
def get_demand(
    demand_id: int,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return service.serialize_demand(service.find_by_id(db, caller, demand_id))


@router.put("/{demand_id}")
def update_demand(
    demand_id: int,
    payload: DemandUpdate,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return service.serialize_demand(service.update_demand(db, caller, demand_id, payload))


@router.delete("/{demand_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_demand(
    demand_id: int,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    service.delete_demand_by_id(db, caller, demand_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
