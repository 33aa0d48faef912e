from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from chamados.calls import service
from chamados.calls.schemas import CallUpdate, MelhoriaCreate, NovoProjetoCreate, SustentacaoCreate
from chamados.core.identity import CallerIdentity
from chamados.core.security import get_current_caller
from chamados.db.session import get_db

router = APIRouter(prefix="/calls", tags=["Chamados"])


@router.post("/melhoria", status_code=status.HTTP_201_CREATED)
def create_melhoria(
    payload: MelhoriaCreate,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return service.submission_response(service.create_call(db, caller, payload))


@router.post("/sustentacao", status_code=status.HTTP_201_CREATED)
def create_sustentacao(
    payload: SustentacaoCreate,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return service.submission_response(service.create_call(db, caller, payload))


@router.post("/novo-projeto", status_code=status.HTTP_201_CREATED)
def create_novo_projeto(
    payload: NovoProjetoCreate,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return service.submission_response(service.create_call(db, caller, payload))


@router.get("")
def list_calls(
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return [service.serialize_call(item) for item in service.list_calls(db, caller)]


@router.get("/user/{submitter_id}")
def list_calls_by_user(
    submitter_id: str,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return [service.serialize_call(item) for item in service.find_calls_by_submitter(db, caller, submitter_id)]


@router.get("/{call_id}")
def get_call(
    call_id: str,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return service.serialize_call(service.get_call(db, caller, call_id))


@router.put("/{call_id}")
def update_call(
    call_id: str,
    payload: CallUpdate,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return service.serialize_call(service.update_call(db, caller, call_id, payload))


@router.delete("/{call_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_call(
    call_id: str,
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    service.delete_call(db, caller, call_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
