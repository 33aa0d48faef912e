from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from chamados.core.identity import CallerIdentity
from chamados.core.security import get_current_caller
from chamados.db import models
from chamados.db.session import get_db
from chamados.reference import service as reference

router = APIRouter(tags=["Usuario"])


@router.get("/me")
def get_me(
    caller: CallerIdentity = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    submitter = db.query(models.Submitter).filter(models.Submitter.email == caller.email).first()
    return {
        "user": {
            "subject_id": caller.subject_id,
            "email": caller.email,
            "name": caller.display_name,
            "role": caller.role,
        },
        "submitter": reference.serialize_submitter(submitter) if submitter else None,
    }
