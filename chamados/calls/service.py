"""Service requests ("chamados") opened by business users.

Any authenticated caller may open a request; it is filed under the caller's
Submitter row, which is created on first use. Editing or deleting a request
is reserved to its submitter and to ANALYST/ADMIN callers.
"""
import logging
from typing import Union

from sqlalchemy.orm import Session

from chamados.calls.schemas import KIND_FIELDS, CallUpdate, MelhoriaCreate, NovoProjetoCreate, SustentacaoCreate
from chamados.core.errors import InvalidState, NotFound
from chamados.core.identity import CallerIdentity
from chamados.core.security import DEMAND_EDITORS, authorize
from chamados.db import models
from chamados.reference import service as reference

logger = logging.getLogger("chamados.calls")

CALL_CLASSES = {
    models.ServiceType.MELHORIA: models.MelhoriaRequest,
    models.ServiceType.SUSTENTACAO: models.SustentacaoRequest,
    models.ServiceType.NOVO_PROJETO: models.NovoProjetoRequest,
}

CREATED_MESSAGES = {
    models.ServiceType.MELHORIA: "Solicitacao de melhoria criada com sucesso!",
    models.ServiceType.SUSTENTACAO: "Solicitacao de sustentacao criada com sucesso!",
    models.ServiceType.NOVO_PROJETO: "Solicitacao de novo projeto criada com sucesso!",
}

CallCreate = Union[MelhoriaCreate, SustentacaoCreate, NovoProjetoCreate]


def protocol(call: models.ServiceRequest) -> str:
    return "RPA-" + call.id[:8].upper()


def serialize_call(call: models.ServiceRequest) -> dict:
    data = {
        "id": call.id,
        "protocol": protocol(call),
        "kind": call.kind.value,
        "submitter": reference.serialize_submitter(call.submitter) if call.submitter else None,
        "created_at": call.created_at,
        "updated_at": call.updated_at,
    }
    for field in sorted(KIND_FIELDS[call.kind]):
        data[field] = getattr(call, field)
    return data


def submission_response(call: models.ServiceRequest) -> dict:
    return {"id": call.id, "protocol": protocol(call), "message": CREATED_MESSAGES[call.kind]}


def create_call(db: Session, caller: CallerIdentity, payload: CallCreate) -> models.ServiceRequest:
    submitter = reference.ensure_caller_submitter(db, caller)
    call = CALL_CLASSES[payload.kind](submitter=submitter, **payload.model_dump(exclude={"kind"}))
    db.add(call)
    db.commit()
    db.refresh(call)
    logger.info("Chamado %s (%s) aberto por %s", protocol(call), call.kind.value, caller.email)
    return call


def get_call(db: Session, caller: CallerIdentity, call_id: str) -> models.ServiceRequest:
    call = db.query(models.ServiceRequest).filter(models.ServiceRequest.id == call_id).first()
    if not call:
        raise NotFound(f"Solicitacao nao encontrada com ID: {call_id}")
    return call


def list_calls(db: Session, caller: CallerIdentity) -> list[models.ServiceRequest]:
    return db.query(models.ServiceRequest).order_by(models.ServiceRequest.created_at.desc()).all()


def find_calls_by_submitter(db: Session, caller: CallerIdentity, submitter_id: str) -> list[models.ServiceRequest]:
    return (
        db.query(models.ServiceRequest)
        .filter(models.ServiceRequest.submitter_id == submitter_id)
        .order_by(models.ServiceRequest.created_at.desc())
        .all()
    )


def _authorize_owner_or_editor(caller: CallerIdentity, call: models.ServiceRequest) -> None:
    if call.submitter is not None and call.submitter.email == caller.email:
        return
    authorize(caller, DEMAND_EDITORS)


def update_call(db: Session, caller: CallerIdentity, call_id: str, payload: CallUpdate) -> models.ServiceRequest:
    """Only supplied fields change. The kind of a request is fixed at creation."""
    call = get_call(db, caller, call_id)
    _authorize_owner_or_editor(caller, call)
    if payload.kind is not None and payload.kind != call.kind:
        raise InvalidState("Nao e possivel alterar o tipo de servico de uma solicitacao existente")

    allowed = KIND_FIELDS[call.kind]
    for field, value in payload.model_dump(exclude_none=True, exclude={"kind"}).items():
        if field in allowed:
            setattr(call, field, value)
    db.commit()
    db.refresh(call)
    logger.info("Chamado %s atualizado por %s", protocol(call), caller.email)
    return call


def delete_call(db: Session, caller: CallerIdentity, call_id: str) -> None:
    call = get_call(db, caller, call_id)
    _authorize_owner_or_editor(caller, call)
    db.delete(call)
    db.commit()
    logger.info("Chamado %s removido por %s", call_id, caller.email)
