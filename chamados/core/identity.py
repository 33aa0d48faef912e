import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Optional

import requests
from jose import JWTError, jwt

from chamados.core.config import settings
from chamados.core.errors import AuthError

logger = logging.getLogger("chamados.identity")

AZURE_AD_ISSUER_PREFIX = "https://login.microsoftonline.com/"
AZURE_AD_JWKS_URL_TEMPLATE = "https://login.microsoftonline.com/{tenant}/discovery/v2.0/keys"
AZURE_AD_COMMON_JWKS_URL = "https://login.microsoftonline.com/common/discovery/v2.0/keys"
CLOCK_SKEW_SECONDS = 60
JWKS_MIN_REFRESH_SECONDS = 60


@dataclass(frozen=True)
class CallerIdentity:
    subject_id: str
    email: str
    display_name: Optional[str] = None
    role: Optional[str] = None


class AzureAdKeySet:
    """RSA signing keys published by the tenant, cached by ``kid``.

    An unknown ``kid`` triggers a refetch at most once per
    ``min_refresh_seconds``; the full set is refetched after ``ttl_seconds``.
    """

    def __init__(self, tenant_id: str, ttl_seconds: int, min_refresh_seconds: int = JWKS_MIN_REFRESH_SECONDS) -> None:
        self.tenant_id = tenant_id
        self.ttl_seconds = ttl_seconds
        self.min_refresh_seconds = min_refresh_seconds
        self._keys: dict[str, dict] = {}
        self._fetched_at: Optional[float] = None
        self._attempted_at: Optional[float] = None
        self._lock = threading.Lock()

    def _expired(self) -> bool:
        return self._fetched_at is None or time.monotonic() - self._fetched_at > self.ttl_seconds

    def _refresh_allowed(self) -> bool:
        return self._attempted_at is None or time.monotonic() - self._attempted_at >= self.min_refresh_seconds

    def _fetch(self, url: str) -> Optional[dict]:
        try:
            res = requests.get(url, timeout=10)
        except requests.RequestException as exc:
            logger.warning("Falha ao buscar JWKS em %s: %s", url, exc)
            return None
        if res.status_code != 200:
            logger.warning("Falha ao buscar JWKS em %s: HTTP %s", url, res.status_code)
            return None
        try:
            payload = res.json()
        except ValueError:
            logger.warning("Resposta JWKS invalida em %s", url)
            return None
        if not isinstance(payload, dict):
            logger.warning("Resposta JWKS invalida em %s", url)
            return None
        return payload

    def refresh(self) -> None:
        self._attempted_at = time.monotonic()
        payload = self._fetch(AZURE_AD_JWKS_URL_TEMPLATE.format(tenant=self.tenant_id))
        if payload is None:
            payload = self._fetch(AZURE_AD_COMMON_JWKS_URL)
        if payload is None:
            logger.error("Nenhum endpoint JWKS respondeu")
            return
        keys: dict[str, dict] = {}
        for key in payload.get("keys") or []:
            if key.get("kty") != "RSA" or key.get("use", "sig") != "sig" or not key.get("kid"):
                continue
            keys[key["kid"]] = key
        self._keys = keys
        self._fetched_at = time.monotonic()
        logger.info("JWKS atualizado com %s chaves", len(keys))

    def get(self, kid: str) -> Optional[dict]:
        with self._lock:
            if (self._expired() or kid not in self._keys) and self._refresh_allowed():
                self.refresh()
            return self._keys.get(kid)


_key_set = AzureAdKeySet(settings.AZURE_AD_TENANT_ID, settings.AZURE_AD_JWKS_CACHE_SECONDS)


def _expected_issuers() -> list[str]:
    tenant = settings.AZURE_AD_TENANT_ID
    return [f"{AZURE_AD_ISSUER_PREFIX}{tenant}/", f"{AZURE_AD_ISSUER_PREFIX}{tenant}/v2.0"]


def _decode_verified(token: str) -> dict[str, Any]:
    try:
        header = jwt.get_unverified_header(token)
    except JWTError as exc:
        raise AuthError("Token invalido") from exc
    kid = header.get("kid")
    if not kid:
        raise AuthError("Token sem identificador de chave (kid)")
    key = _key_set.get(kid)
    if key is None:
        raise AuthError("Chave publica nao encontrada para o token")

    audience = settings.AZURE_AD_CLIENT_ID or None
    try:
        return jwt.decode(
            token,
            key,
            algorithms=["RS256"],
            audience=audience,
            issuer=_expected_issuers(),
            options={"verify_aud": audience is not None, "leeway": CLOCK_SKEW_SECONDS},
        )
    except JWTError as exc:
        logger.warning("Falha na verificacao do token: %s", exc)
        raise AuthError("Token invalido") from exc


def _decode_claims_only(token: str) -> dict[str, Any]:
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError as exc:
        raise AuthError("Token invalido") from exc
    now = time.time()
    exp = claims.get("exp")
    if exp is not None and float(exp) + CLOCK_SKEW_SECONDS < now:
        raise AuthError("Token expirado")
    nbf = claims.get("nbf")
    if nbf is not None and float(nbf) - CLOCK_SKEW_SECONDS > now:
        raise AuthError("Token ainda nao e valido")
    return claims


def _first_text(claims: dict[str, Any], *names: str) -> Optional[str]:
    for name in names:
        value = claims.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _display_name(claims: dict[str, Any]) -> Optional[str]:
    name = _first_text(claims, "name")
    if name:
        return name
    full = " ".join(part for part in (_first_text(claims, "given_name"), _first_text(claims, "family_name")) if part)
    return full or None


def verify(token: str) -> CallerIdentity:
    """Verify a bearer token and return who it belongs to.

    The role is left empty; it is attached by ``security.resolve_caller``.
    """
    if not token:
        raise AuthError("Token ausente")
    if token.lower().startswith("bearer "):
        token = token[7:].strip()

    claims = _decode_verified(token) if settings.AZURE_AD_VERIFY_SIGNATURE else _decode_claims_only(token)

    subject = _first_text(claims, "sub")
    if not subject:
        raise AuthError("Token sem subject")
    email = _first_text(claims, "email", "unique_name", "preferred_username")
    if not email:
        raise AuthError("Token sem email")
    return CallerIdentity(subject_id=subject, email=email.lower(), display_name=_display_name(claims))
