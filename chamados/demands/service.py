import logging
from datetime import datetime

from sqlalchemy.orm import Session

from chamados.core.errors import AlreadyExists, InvalidReference, InvalidState, NotFound
from chamados.core.identity import CallerIdentity
from chamados.core.security import DEMAND_EDITORS, authorize
from chamados.db import models
from chamados.db.session import commit_or_conflict
from chamados.demands.schemas import DemandCreate, DemandUpdate
from chamados.reference import service as reference

logger = logging.getLogger("chamados.demands")


def serialize_demand(demand: models.Demand) -> dict:
    return {
        "id": demand.id,
        "name": demand.name,
        "doc_hours": demand.doc_hours,
        "dev_hours": demand.dev_hours,
        "type": demand.type.value if demand.type else None,
        "description": demand.description,
        "focal_point": reference.serialize_submitter(demand.focal_point) if demand.focal_point else None,
        "analyst": reference.serialize_submitter(demand.analyst) if demand.analyst else None,
        "project": reference.serialize_project(demand.project) if demand.project else None,
        "status": demand.status.value if demand.status else None,
        "opened_at": demand.opened_at,
        "start_at": demand.start_at,
        "ends_at": demand.ends_at,
        "ended_at": demand.ended_at,
        "created_at": demand.created_at,
        "roi": demand.roi,
        "robot": reference.serialize_robot(demand.robot) if demand.robot else None,
        "client": demand.client,
        "service": demand.service,
    }


def _name_taken(db: Session, name: str, exclude_id: int | None = None) -> bool:
    query = db.query(models.Demand.id).filter(models.Demand.name == name)
    if exclude_id is not None:
        query = query.filter(models.Demand.id != exclude_id)
    return query.first() is not None


def _resolve_references(db: Session, payload: DemandCreate) -> dict:
    # Checked in a fixed order; the first missing reference is reported.
    project = reference.get(db, "project", payload.project_id)
    if not project:
        raise InvalidReference(f"Projeto com ID {payload.project_id} nao encontrado")
    focal_point = reference.get(db, "submitter", payload.focal_point_id)
    if not focal_point:
        raise InvalidReference(f"Ponto focal com ID {payload.focal_point_id} nao encontrado")
    analyst = reference.get(db, "submitter", payload.analyst_id)
    if not analyst:
        raise InvalidReference(f"Analista com ID {payload.analyst_id} nao encontrado")
    robot = reference.get(db, "robot", payload.robot_id)
    if not robot:
        raise InvalidReference(f"Robo com ID {payload.robot_id} nao encontrado")
    return {"project": project, "focal_point": focal_point, "analyst": analyst, "robot": robot}


def create_demand(db: Session, caller: CallerIdentity, payload: DemandCreate) -> models.Demand:
    authorize(caller, DEMAND_EDITORS)
    conflict = f"Demanda com o nome '{payload.name}' ja existe"
    if _name_taken(db, payload.name):
        raise AlreadyExists(conflict)
    refs = _resolve_references(db, payload)

    demand = models.Demand(
        name=payload.name,
        doc_hours=payload.doc_hours,
        dev_hours=payload.dev_hours,
        type=payload.type,
        description=payload.description,
        status=payload.status,
        opened_at=payload.opened_at,
        start_at=payload.start_at,
        ends_at=payload.ends_at,
        ended_at=None,
        created_at=datetime.utcnow(),
        roi=payload.roi,
        client=payload.client,
        service=payload.service,
        **refs,
    )
    db.add(demand)
    commit_or_conflict(db, conflict)
    db.refresh(demand)
    logger.info("Demanda %s '%s' criada por %s", demand.id, demand.name, caller.email)
    return demand


def update_demand(db: Session, caller: CallerIdentity, demand_id: int, payload: DemandUpdate) -> models.Demand:
    """Replace every mutable field of the demand; ``id`` and ``created_at`` stay."""
    authorize(caller, DEMAND_EDITORS)
    demand = find_by_id(db, caller, demand_id)
    conflict = f"Demanda com o nome '{payload.name}' ja existe"
    if _name_taken(db, payload.name, exclude_id=demand_id):
        raise AlreadyExists(conflict)
    refs = _resolve_references(db, payload)

    demand.name = payload.name
    demand.doc_hours = payload.doc_hours
    demand.dev_hours = payload.dev_hours
    demand.type = payload.type
    demand.description = payload.description
    demand.status = payload.status
    demand.opened_at = payload.opened_at
    demand.start_at = payload.start_at
    demand.ends_at = payload.ends_at
    demand.ended_at = payload.ended_at
    demand.roi = payload.roi
    demand.client = payload.client
    demand.service = payload.service
    demand.project = refs["project"]
    demand.focal_point = refs["focal_point"]
    demand.analyst = refs["analyst"]
    demand.robot = refs["robot"]

    commit_or_conflict(db, conflict)
    db.refresh(demand)
    logger.info("Demanda %s atualizada por %s (status=%s)", demand.id, caller.email, demand.status.value)
    return demand


def delete_demand_by_id(db: Session, caller: CallerIdentity, demand_id: int) -> None:
    authorize(caller, DEMAND_EDITORS)
    # Same row lock as create_tracking, so no tracking lands between the count and the delete.
    demand = db.query(models.Demand).filter(models.Demand.id == demand_id).with_for_update().first()
    if not demand:
        raise NotFound(f"Demanda com ID {demand_id} nao encontrada")
    tracked = db.query(models.Tracking.id).filter(models.Tracking.demand_id == demand_id).count()
    if tracked:
        raise InvalidState(f"Demanda com ID {demand_id} possui {tracked} apontamento(s) de horas")
    db.delete(demand)
    db.commit()
    logger.info("Demanda %s removida por %s", demand_id, caller.email)


def find_by_id(db: Session, caller: CallerIdentity, demand_id: int) -> models.Demand:
    demand = db.query(models.Demand).filter(models.Demand.id == demand_id).first()
    if not demand:
        raise NotFound(f"Demanda com ID {demand_id} nao encontrada")
    return demand


def _list(db: Session, *criteria) -> list[models.Demand]:
    return db.query(models.Demand).filter(*criteria).order_by(models.Demand.id.asc()).all()


def list_demands(db: Session, caller: CallerIdentity) -> list[models.Demand]:
    return _list(db)


def find_by_status(db: Session, caller: CallerIdentity, status: models.DemandStatus) -> list[models.Demand]:
    return _list(db, models.Demand.status == status)


def find_by_analyst_id(db: Session, caller: CallerIdentity, analyst_id: str) -> list[models.Demand]:
    return _list(db, models.Demand.analyst_id == analyst_id)


def find_by_focal_point_id(db: Session, caller: CallerIdentity, focal_point_id: str) -> list[models.Demand]:
    return _list(db, models.Demand.focal_point_id == focal_point_id)


def find_by_project_id(db: Session, caller: CallerIdentity, project_id: int) -> list[models.Demand]:
    return _list(db, models.Demand.project_id == project_id)


def find_by_type(db: Session, caller: CallerIdentity, service_type: models.ServiceType) -> list[models.Demand]:
    return _list(db, models.Demand.type == service_type)


def find_by_client(db: Session, caller: CallerIdentity, client: int) -> list[models.Demand]:
    return _list(db, models.Demand.client == client)


def find_by_service(db: Session, caller: CallerIdentity, service: int) -> list[models.Demand]:
    return _list(db, models.Demand.service == service)


def find_by_robot_id(db: Session, caller: CallerIdentity, robot_id: int) -> list[models.Demand]:
    return _list(db, models.Demand.robot_id == robot_id)


def find_by_project_client_id(db: Session, caller: CallerIdentity, client_id: int) -> list[models.Demand]:
    return (
        db.query(models.Demand)
        .join(models.Project, models.Project.id == models.Demand.project_id)
        .filter(models.Project.client_id == client_id)
        .order_by(models.Demand.id.asc())
        .all()
    )
