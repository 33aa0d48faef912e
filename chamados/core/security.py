import logging
from dataclasses import replace
from typing import Iterable

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from chamados.core import identity
from chamados.core.config import settings
from chamados.core.errors import AccessDenied, AuthError
from chamados.core.identity import CallerIdentity
from chamados.db import models
from chamados.db.session import get_db

logger = logging.getLogger("chamados.security")

DEMAND_EDITORS = frozenset({models.UserRole.ANALYST, models.UserRole.ADMIN})
TRACKING_EDITORS = frozenset({models.UserRole.DEVELOP, models.UserRole.ADMIN})
ADMINS = frozenset({models.UserRole.ADMIN})


def _name_from_email(email: str) -> str:
    local = email.split("@", 1)[0]
    return local[:1].upper() + local[1:]


def _ensure_admin_submitter(db: Session, caller: CallerIdentity) -> None:
    submitter = db.query(models.Submitter).filter(models.Submitter.email == caller.email).first()
    if not submitter:
        db.add(
            models.Submitter(
                name=caller.display_name or _name_from_email(caller.email),
                email=caller.email,
                role=models.UserRole.ADMIN,
                is_active=True,
            )
        )
        logger.info("Submitter ADMIN criado para %s", caller.email)
    elif submitter.role != models.UserRole.ADMIN:
        submitter.role = models.UserRole.ADMIN
        logger.info("Role ADMIN atribuida a %s", caller.email)
    else:
        return
    db.commit()


def resolve_caller(db: Session, verified: CallerIdentity) -> CallerIdentity:
    """Attach the access role of a verified identity."""
    if settings.ADMIN_EMAIL and verified.email == settings.ADMIN_EMAIL:
        if settings.ADMIN_AUTO_GRANT:
            _ensure_admin_submitter(db, verified)
        return replace(verified, role=models.UserRole.ADMIN.value)

    submitter = db.query(models.Submitter).filter(models.Submitter.email == verified.email).first()
    if not submitter:
        logger.debug("Usuario %s nao cadastrado, role DEFAULT", verified.email)
        return replace(verified, role=models.UserRole.DEFAULT.value)
    if not submitter.is_active:
        raise AccessDenied("Usuario inativo")
    role = submitter.role or models.UserRole.DEFAULT
    return replace(verified, role=models.UserRole(role).value)


def authorize(caller: CallerIdentity, required_roles: Iterable[models.UserRole]) -> None:
    """Access policy: allow when the caller holds one of ``required_roles``.

    An empty set admits any authenticated caller.
    """
    allowed = {models.UserRole(role).value for role in required_roles}
    if not allowed:
        return
    if caller.role not in allowed:
        logger.warning(
            "Acesso negado para %s com role %s. Roles exigidas: %s",
            caller.email,
            caller.role,
            sorted(allowed),
        )
        raise AccessDenied(f"Acesso negado. Role(s) exigida(s): {', '.join(sorted(allowed))}")


def _extract_bearer_token(request: Request) -> str:
    auth_header = request.headers.get("authorization", "")
    if not auth_header.lower().startswith("bearer "):
        raise AuthError("Token ausente")
    return auth_header.split(" ", 1)[1].strip()


def get_current_caller(request: Request, db: Session = Depends(get_db)) -> CallerIdentity:
    token = _extract_bearer_token(request)
    verified = identity.verify(token)
    return resolve_caller(db, verified)
