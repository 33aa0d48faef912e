"""Reference data: clients, projects, robots and submitters.

``get`` is the lookup the demand and tracking services resolve their
references through. The rest is plain CRUD with existence and uniqueness
checks.
"""
import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from chamados.core.errors import AlreadyExists, InvalidReference, InvalidState, NotFound
from chamados.core.identity import CallerIdentity
from chamados.core.security import ADMINS, authorize
from chamados.db import models
from chamados.db.session import commit_or_conflict
from chamados.reference.schemas import (
    ClientPayload,
    ProjectPayload,
    RobotCreate,
    RobotUpdate,
    SubmitterPayload,
)

logger = logging.getLogger("chamados.reference")

KINDS = {
    "client": models.Client,
    "project": models.Project,
    "robot": models.Robot,
    "submitter": models.Submitter,
}


def get(db: Session, kind: str, record_id: Any) -> Optional[Any]:
    model = KINDS[kind]
    if record_id is None:
        return None
    return db.query(model).filter(model.id == record_id).first()


def serialize_client(client: models.Client) -> dict:
    return {"id": client.id, "name": client.name, "created_at": client.created_at}


def serialize_project(project: models.Project) -> dict:
    return {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "area": project.area,
        "client": serialize_client(project.client) if project.client else None,
    }


def serialize_robot(robot: models.Robot) -> dict:
    return {
        "id": robot.id,
        "name": robot.name,
        "cell": robot.cell,
        "technology": robot.technology,
        "execution_type": robot.execution_type.value if robot.execution_type else None,
        "client": robot.client,
        "status": robot.status.value if robot.status else None,
    }


def serialize_submitter(submitter: models.Submitter) -> dict:
    return {
        "id": submitter.id,
        "name": submitter.name,
        "email": submitter.email,
        "phone": submitter.phone,
        "department": submitter.department,
        "company": submitter.company,
        "role": submitter.role.value if submitter.role else None,
        "is_active": submitter.is_active,
        "joined_at": submitter.joined_at,
        "last_activity": submitter.last_activity,
    }


# Clients


def list_clients(db: Session) -> list[models.Client]:
    return db.query(models.Client).order_by(models.Client.name.asc()).all()


def get_client(db: Session, client_id: int) -> models.Client:
    client = get(db, "client", client_id)
    if not client:
        raise NotFound(f"Cliente com ID {client_id} nao encontrado")
    return client


def create_client(db: Session, caller: CallerIdentity, payload: ClientPayload) -> models.Client:
    authorize(caller, ADMINS)
    if db.query(models.Client).filter(models.Client.name == payload.name).first():
        raise AlreadyExists(f"Cliente com o nome '{payload.name}' ja existe")
    client = models.Client(name=payload.name)
    db.add(client)
    commit_or_conflict(db, f"Cliente com o nome '{payload.name}' ja existe")
    db.refresh(client)
    logger.info("Cliente %s criado por %s", client.id, caller.email)
    return client


def update_client(db: Session, caller: CallerIdentity, client_id: int, payload: ClientPayload) -> models.Client:
    authorize(caller, ADMINS)
    client = get_client(db, client_id)
    clash = (
        db.query(models.Client)
        .filter(models.Client.name == payload.name, models.Client.id != client_id)
        .first()
    )
    if clash:
        raise AlreadyExists(f"Cliente com o nome '{payload.name}' ja existe")
    client.name = payload.name
    commit_or_conflict(db, f"Cliente com o nome '{payload.name}' ja existe")
    db.refresh(client)
    return client


def delete_client(db: Session, caller: CallerIdentity, client_id: int) -> None:
    authorize(caller, ADMINS)
    client = get_client(db, client_id)
    if db.query(models.Project).filter(models.Project.client_id == client_id).count():
        raise InvalidState(f"Cliente com ID {client_id} possui projetos vinculados")
    db.delete(client)
    db.commit()
    logger.info("Cliente %s removido por %s", client_id, caller.email)


# Projects


def list_projects(db: Session) -> list[models.Project]:
    return db.query(models.Project).order_by(models.Project.name.asc()).all()


def get_project(db: Session, project_id: int) -> models.Project:
    project = get(db, "project", project_id)
    if not project:
        raise NotFound(f"Projeto com ID {project_id} nao encontrado")
    return project


def _resolve_project_client(db: Session, client_id: int) -> models.Client:
    client = get(db, "client", client_id)
    if not client:
        raise InvalidReference(f"Cliente com ID {client_id} nao encontrado")
    return client


def create_project(db: Session, caller: CallerIdentity, payload: ProjectPayload) -> models.Project:
    authorize(caller, ADMINS)
    if db.query(models.Project).filter(models.Project.name == payload.name).first():
        raise AlreadyExists(f"Projeto com o nome '{payload.name}' ja existe")
    client = _resolve_project_client(db, payload.client_id)
    project = models.Project(
        name=payload.name,
        description=payload.description,
        area=payload.area,
        client=client,
    )
    db.add(project)
    commit_or_conflict(db, f"Projeto com o nome '{payload.name}' ja existe")
    db.refresh(project)
    logger.info("Projeto %s criado por %s", project.id, caller.email)
    return project


def update_project(
    db: Session, caller: CallerIdentity, project_id: int, payload: ProjectPayload
) -> models.Project:
    authorize(caller, ADMINS)
    project = get_project(db, project_id)
    clash = (
        db.query(models.Project)
        .filter(models.Project.name == payload.name, models.Project.id != project_id)
        .first()
    )
    if clash:
        raise AlreadyExists(f"Projeto com o nome '{payload.name}' ja existe")
    client = _resolve_project_client(db, payload.client_id)
    project.name = payload.name
    project.description = payload.description
    project.area = payload.area
    project.client = client
    commit_or_conflict(db, f"Projeto com o nome '{payload.name}' ja existe")
    db.refresh(project)
    return project


def delete_project(db: Session, caller: CallerIdentity, project_id: int) -> None:
    authorize(caller, ADMINS)
    project = get_project(db, project_id)
    if db.query(models.Demand).filter(models.Demand.project_id == project_id).count():
        raise InvalidState(f"Projeto com ID {project_id} possui demandas vinculadas")
    db.delete(project)
    db.commit()


# Robots


def list_robots(db: Session) -> list[models.Robot]:
    return db.query(models.Robot).order_by(models.Robot.name.asc()).all()


def get_robot(db: Session, robot_id: int) -> models.Robot:
    robot = get(db, "robot", robot_id)
    if not robot:
        raise NotFound(f"Robo com ID {robot_id} nao encontrado")
    return robot


def create_robot(db: Session, caller: CallerIdentity, payload: RobotCreate) -> models.Robot:
    authorize(caller, ADMINS)
    robot = models.Robot(**payload.model_dump())
    db.add(robot)
    db.commit()
    db.refresh(robot)
    logger.info("Robo %s criado por %s", robot.id, caller.email)
    return robot


def update_robot(db: Session, caller: CallerIdentity, robot_id: int, payload: RobotUpdate) -> models.Robot:
    """Only the fields present in the payload change."""
    authorize(caller, ADMINS)
    robot = get_robot(db, robot_id)
    for field, value in payload.model_dump(exclude_none=True).items():
        setattr(robot, field, value)
    db.commit()
    db.refresh(robot)
    return robot


def delete_robot(db: Session, caller: CallerIdentity, robot_id: int) -> None:
    authorize(caller, ADMINS)
    robot = get_robot(db, robot_id)
    if db.query(models.Demand).filter(models.Demand.robot_id == robot_id).count():
        raise InvalidState(f"Robo com ID {robot_id} possui demandas vinculadas")
    db.delete(robot)
    db.commit()


# Submitters


def list_submitters(db: Session) -> list[models.Submitter]:
    return db.query(models.Submitter).order_by(models.Submitter.name.asc()).all()


def get_submitter(db: Session, submitter_id: str) -> models.Submitter:
    submitter = get(db, "submitter", submitter_id)
    if not submitter:
        raise NotFound(f"Usuario com ID {submitter_id} nao encontrado")
    return submitter


def get_submitter_by_email(db: Session, email: str) -> models.Submitter:
    lowered = email.strip().lower()
    submitter = db.query(models.Submitter).filter(models.Submitter.email == lowered).first()
    if not submitter:
        raise NotFound(f"Usuario com email {lowered} nao encontrado")
    return submitter


def find_or_create_submitter(db: Session, caller: CallerIdentity, payload: SubmitterPayload) -> models.Submitter:
    """Upsert by email. Changing the access role or the active flag stays an admin operation."""
    submitter = db.query(models.Submitter).filter(models.Submitter.email == payload.email).first()
    if payload.role is not None and (submitter is None or payload.role != submitter.role):
        authorize(caller, ADMINS)
    current_active = submitter.is_active if submitter is not None else True
    if payload.is_active is not None and payload.is_active != current_active:
        authorize(caller, ADMINS)
    if submitter is None:
        submitter = models.Submitter(email=payload.email)
        db.add(submitter)
    submitter.name = payload.name
    submitter.phone = payload.phone
    submitter.department = payload.department
    submitter.company = payload.company
    if payload.role is not None:
        submitter.role = payload.role
    if payload.is_active is not None:
        submitter.is_active = payload.is_active
    commit_or_conflict(db, f"Usuario com email {payload.email} ja existe")
    db.refresh(submitter)
    return submitter


def ensure_caller_submitter(db: Session, caller: CallerIdentity) -> models.Submitter:
    """Submitter row for the authenticated caller, created on first use."""
    submitter = db.query(models.Submitter).filter(models.Submitter.email == caller.email).first()
    if submitter is None:
        local = caller.email.split("@", 1)[0]
        submitter = models.Submitter(email=caller.email, name=caller.display_name or local.capitalize())
        db.add(submitter)
        logger.info("Usuario %s registrado no primeiro chamado", caller.email)
    submitter.last_activity = datetime.utcnow()
    db.flush()
    return submitter


def set_submitter_active(
    db: Session, caller: CallerIdentity, submitter_id: str, is_active: bool
) -> models.Submitter:
    authorize(caller, ADMINS)
    submitter = get_submitter(db, submitter_id)
    submitter.is_active = is_active
    db.commit()
    db.refresh(submitter)
    return submitter


def set_submitter_role(
    db: Session, caller: CallerIdentity, submitter_id: str, role: Optional[models.UserRole]
) -> models.Submitter:
    authorize(caller, ADMINS)
    submitter = get_submitter(db, submitter_id)
    submitter.role = role
    db.commit()
    db.refresh(submitter)
    logger.info("Role de %s alterada para %s por %s", submitter.email, role, caller.email)
    return submitter
