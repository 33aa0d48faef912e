from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from chamados.core.identity import CallerIdentity
from chamados.core.security import get_current_caller
from chamados.db.session import get_db
from chamados.reference import service
from chamados.reference.schemas import (
    ClientPayload,
    ProjectPayload,
    RobotCreate,
    RobotUpdate,
    SubmitterPayload,
    SubmitterRolePayload,
    SubmitterStatusPayload,
)

router = APIRouter(tags=["Cadastros"])


@router.get("/clients")
def list_clients(
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return [service.serialize_client(item) for item in service.list_clients(db)]


@router.post("/clients", status_code=status.HTTP_201_CREATED)
def create_client(
    payload: ClientPayload,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return service.serialize_client(service.create_client(db, caller, payload))


@router.get("/clients/{client_id}")
def get_client(
    client_id: int,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return service.serialize_client(service.get_client(db, client_id))


@router.put("/clients/{client_id}")
def update_client(
    client_id: int,
    payload: ClientPayload,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return service.serialize_client(service.update_client(db, caller, client_id, payload))


@router.delete("/clients/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_client(
    client_id: int,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    service.delete_client(db, caller, client_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/projects")
def list_projects(
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return [service.serialize_project(item) for item in service.list_projects(db)]


@router.post("/projects", status_code=status.HTTP_201_CREATED)
def create_project(
    payload: ProjectPayload,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return service.serialize_project(service.create_project(db, caller, payload))


@router.get("/projects/{project_id}")
def get_project(
    project_id: int,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return service.serialize_project(service.get_project(db, project_id))


@router.put("/projects/{project_id}")
def update_project(
    project_id: int,
    payload: ProjectPayload,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return service.serialize_project(service.update_project(db, caller, project_id, payload))


@router.delete("/projects/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_project(
    project_id: int,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    service.delete_project(db, caller, project_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/robots")
def list_robots(
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return [service.serialize_robot(item) for item in service.list_robots(db)]


@router.post("/robots", status_code=status.HTTP_201_CREATED)
def create_robot(
    payload: RobotCreate,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return service.serialize_robot(service.create_robot(db, caller, payload))


@router.get("/robots/{robot_id}")
def get_robot(
    robot_id: int,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return service.serialize_robot(service.get_robot(db, robot_id))


@router.patch("/robots/{robot_id}")
def update_robot(
    robot_id: int,
    payload: RobotUpdate,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return service.serialize_robot(service.update_robot(db, caller, robot_id, payload))


@router.delete("/robots/{robot_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_robot(
    robot_id: int,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    service.delete_robot(db, caller, robot_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/users")
def list_users(
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return [service.serialize_submitter(item) for item in service.list_submitters(db)]


@router.post("/users")
def find_or_create_user(
    payload: SubmitterPayload,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return service.serialize_submitter(service.find_or_create_submitter(db, caller, payload))


@router.get("/users/by-email")
def get_user_by_email(
    email: str = Query(..., min_length=3),
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return service.serialize_submitter(service.get_submitter_by_email(db, email))


@router.get("/users/{submitter_id}")
def get_user(
    submitter_id: str,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return service.serialize_submitter(service.get_submitter(db, submitter_id))


@router.patch("/users/{submitter_id}/status")
def set_user_status(
    submitter_id: str,
    payload: SubmitterStatusPayload,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    submitter = service.set_submitter_active(db, caller, submitter_id, payload.is_active)
    return service.serialize_submitter(submitter)


@router.patch("/users/{submitter_id}/role")
def set_user_role(
    submitter_id: str,
    payload: SubmitterRolePayload,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    submitter = service.set_submitter_role(db, caller, submitter_id, payload.role)
    return service.serialize_submitter(submitter)
