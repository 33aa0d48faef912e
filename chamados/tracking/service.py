import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from chamados.core.errors import InvalidReference, InvalidState, NotFound
from chamados.core.identity import CallerIdentity
from chamados.core.security import TRACKING_EDITORS, authorize
from chamados.db import models
from chamados.demands import service as demands
from chamados.reference import service as reference
from chamados.tracking.schemas import TrackingCreate, TrackingUpdate

logger = logging.getLogger("chamados.tracking")


def serialize_tracking(db: Session, caller: CallerIdentity, tracking: models.Tracking) -> dict:
    # The demand is always projected in full, through the demand service.
    demand = demands.find_by_id(db, caller, tracking.demand_id)
    return {
        "id": tracking.id,
        "demand": demands.serialize_demand(demand),
        "hours": tracking.hours,
        "nature": tracking.nature.value if tracking.nature else None,
        "description": tracking.description,
        "submitted_at": tracking.submitted_at,
        "submitter": reference.serialize_submitter(tracking.submitter) if tracking.submitter else None,
        "created_at": tracking.created_at,
    }


def _resolve_submitter(db: Session, submitter_id: str) -> models.Submitter:
    submitter = reference.get(db, "submitter", submitter_id)
    if not submitter:
        raise InvalidReference(f"Usuario com ID {submitter_id} nao encontrado")
    return submitter


def create_tracking(db: Session, caller: CallerIdentity, payload: TrackingCreate) -> models.Tracking:
    authorize(caller, TRACKING_EDITORS)
    # Row lock keeps the status check and the insert in one unit of work.
    demand = (
        db.query(models.Demand)
        .filter(models.Demand.id == payload.demand_id)
        .with_for_update()
        .first()
    )
    if not demand:
        raise InvalidReference(f"Demanda com ID {payload.demand_id} nao encontrada")
    if demand.status == models.DemandStatus.BLOCKED:
        logger.warning("Apontamento recusado: demanda %s bloqueada (%s)", demand.id, caller.email)
        raise InvalidState("Nao e possivel apontar horas em uma demanda bloqueada")
    submitter = _resolve_submitter(db, payload.submitter_id)

    tracking = models.Tracking(
        demand=demand,
        hours=payload.hours,
        nature=payload.nature,
        description=payload.description,
        submitted_at=payload.submitted_at,
        submitter=submitter,
    )
    db.add(tracking)
    db.commit()
    db.refresh(tracking)
    logger.info(
        "Apontamento %s criado: demanda=%s horas=%s natureza=%s por %s",
        tracking.id,
        demand.id,
        tracking.hours,
        tracking.nature.value,
        caller.email,
    )
    return tracking


def update_tracking(
    db: Session, caller: CallerIdentity, tracking_id: int, payload: TrackingUpdate
) -> models.Tracking:
    """Full replace. The blocked-demand gate is only enforced on creation."""
    authorize(caller, TRACKING_EDITORS)
    tracking = find_by_id(db, caller, tracking_id)
    demand = _resolve_demand(db, payload.demand_id)
    submitter = _resolve_submitter(db, payload.submitter_id)

    tracking.demand = demand
    tracking.hours = payload.hours
    tracking.nature = payload.nature
    tracking.description = payload.description
    tracking.submitted_at = payload.submitted_at
    tracking.submitter = submitter
    db.commit()
    db.refresh(tracking)
    logger.info("Apontamento %s atualizado por %s", tracking.id, caller.email)
    return tracking


def _resolve_demand(db: Session, demand_id: int) -> models.Demand:
    demand = db.query(models.Demand).filter(models.Demand.id == demand_id).first()
    if not demand:
        raise InvalidReference(f"Demanda com ID {demand_id} nao encontrada")
    return demand


def delete_tracking_by_id(db: Session, caller: CallerIdentity, tracking_id: int) -> None:
    authorize(caller, TRACKING_EDITORS)
    tracking = find_by_id(db, caller, tracking_id)
    db.delete(tracking)
    db.commit()
    logger.info("Apontamento %s removido por %s", tracking_id, caller.email)


def find_by_id(db: Session, caller: CallerIdentity, tracking_id: int) -> models.Tracking:
    tracking = db.query(models.Tracking).filter(models.Tracking.id == tracking_id).first()
    if not tracking:
        raise NotFound(f"Apontamento com ID {tracking_id} nao encontrado")
    return tracking


def list_trackings(db: Session, caller: CallerIdentity) -> list[models.Tracking]:
    return db.query(models.Tracking).order_by(models.Tracking.id.asc()).all()


def find_by_demand_id(db: Session, caller: CallerIdentity, demand_id: int) -> list[models.Tracking]:
    return (
        db.query(models.Tracking)
        .filter(models.Tracking.demand_id == demand_id)
        .order_by(models.Tracking.submitted_at.desc())
        .all()
    )


def find_by_submitter_id(db: Session, caller: CallerIdentity, submitter_id: str) -> list[models.Tracking]:
    return (
        db.query(models.Tracking)
        .filter(models.Tracking.submitter_id == submitter_id)
        .order_by(models.Tracking.submitted_at.desc())
        .all()
    )


def find_by_nature(db: Session, caller: CallerIdentity, nature: models.Nature) -> list[models.Tracking]:
    return db.query(models.Tracking).filter(models.Tracking.nature == nature).all()


def get_total_hours_by_demand_id(db: Session, caller: CallerIdentity, demand_id: int) -> float:
    total = (
        db.query(func.sum(models.Tracking.hours))
        .filter(models.Tracking.demand_id == demand_id)
        .scalar()
    )
    return float(total) if total is not None else 0.0


def get_total_hours_by_demand_id_and_nature(
    db: Session, caller: CallerIdentity, demand_id: int, nature: models.Nature
) -> float:
    total = (
        db.query(func.sum(models.Tracking.hours))
        .filter(models.Tracking.demand_id == demand_id, models.Tracking.nature == nature)
        .scalar()
    )
    return float(total) if total is not None else 0.0
