import time
from unittest.mock import MagicMock, patch

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwk, jwt

from chamados.core import identity, security
from chamados.core.config import settings
from chamados.core.errors import AccessDenied, AuthError
from chamados.core.identity import CallerIdentity
from chamados.db import models

TENANT = "tenant-123"
CLIENT_ID = "api://chamados"


def _claims(**overrides):
    now = int(time.time())
    claims = {
        "sub": "subject-1",
        "email": "Maria@Example.com",
        "name": "Maria Silva",
        "iat": now,
        "nbf": now,
        "exp": now + 3600,
    }
    claims.update(overrides)
    return {key: value for key, value in claims.items() if value is not None}


def _unsigned(**overrides):
    return jwt.encode(_claims(**overrides), "qualquer", algorithm="HS256")


@pytest.fixture()
def claims_only(monkeypatch):
    monkeypatch.setattr(settings, "AZURE_AD_VERIFY_SIGNATURE", False)


@pytest.fixture()
def signature_mode(monkeypatch):
    monkeypatch.setattr(settings, "AZURE_AD_VERIFY_SIGNATURE", True)
    monkeypatch.setattr(settings, "AZURE_AD_TENANT_ID", TENANT)
    monkeypatch.setattr(settings, "AZURE_AD_CLIENT_ID", CLIENT_ID)
    monkeypatch.setattr(identity, "_key_set", identity.AzureAdKeySet(TENANT, 3600))


@pytest.fixture()
def rsa_key():
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public = jwk.construct(pem, "RS256").public_key().to_dict()
    public.update({"kid": "key-1", "use": "sig"})
    return pem, public


def _jwks_response(*keys, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = {"keys": list(keys)}
    return response


def test_verify_claims_only(claims_only):
    caller = identity.verify("Bearer " + _unsigned())

    assert caller.subject_id == "subject-1"
    assert caller.email == "maria@example.com"
    assert caller.display_name == "Maria Silva"
    assert caller.role is None


def test_verify_email_fallbacks(claims_only):
    caller = identity.verify(_unsigned(email=None, unique_name="Joao@Example.com", name=None, given_name="Joao", family_name="Souza"))

    assert caller.email == "joao@example.com"
    assert caller.display_name == "Joao Souza"

    caller = identity.verify(_unsigned(email=None, preferred_username="pedro@example.com"))
    assert caller.email == "pedro@example.com"


@pytest.mark.parametrize(
    "overrides",
    [
        {"exp": int(time.time()) - 3600},
        {"nbf": int(time.time()) + 3600},
        {"sub": None},
        {"email": None},
    ],
)
def test_verify_rejects_bad_claims(claims_only, overrides):
    with pytest.raises(AuthError):
        identity.verify(_unsigned(**overrides))


def test_verify_rejects_garbage(claims_only):
    with pytest.raises(AuthError):
        identity.verify("nao-e-um-jwt")
    with pytest.raises(AuthError):
        identity.verify("")


def test_signature_mode_requires_kid(signature_mode):
    with pytest.raises(AuthError):
        identity.verify(_unsigned())


def test_signature_mode_unknown_kid(signature_mode, rsa_key):
    pem, public = rsa_key
    token = jwt.encode(_claims(aud=CLIENT_ID), pem, algorithm="RS256", headers={"kid": "outra"})

    with patch("chamados.core.identity.requests.get", return_value=_jwks_response(public)) as mock_get:
        with pytest.raises(AuthError):
            identity.verify(token)

    assert TENANT in mock_get.call_args_list[0].args[0]


def test_signature_mode_accepts_valid_token(signature_mode, rsa_key):
    pem, public = rsa_key
    token = jwt.encode(
        _claims(aud=CLIENT_ID, iss=f"https://login.microsoftonline.com/{TENANT}/v2.0"),
        pem,
        algorithm="RS256",
        headers={"kid": "key-1"},
    )

    with patch("chamados.core.identity.requests.get", return_value=_jwks_response(public)):
        caller = identity.verify(token)

    assert caller.email == "maria@example.com"


def test_signature_mode_rejects_wrong_issuer(signature_mode, rsa_key):
    pem, public = rsa_key
    token = jwt.encode(
        _claims(aud=CLIENT_ID, iss="https://sts.example.com/"),
        pem,
        algorithm="RS256",
        headers={"kid": "key-1"},
    )

    with patch("chamados.core.identity.requests.get", return_value=_jwks_response(public)):
        with pytest.raises(AuthError):
            identity.verify(token)


def test_key_set_falls_back_to_common_endpoint(rsa_key):
    _, public = rsa_key
    key_set = identity.AzureAdKeySet(TENANT, 3600)
    responses = [_jwks_response(status_code=500), _jwks_response(public)]

    with patch("chamados.core.identity.requests.get", side_effect=responses) as mock_get:
        assert key_set.get("key-1")["kid"] == "key-1"
        # Cached: a second lookup does not fetch again.
        assert key_set.get("key-1") is not None

    assert mock_get.call_count == 2
    assert mock_get.call_args_list[1].args[0] == identity.AZURE_AD_COMMON_JWKS_URL


def test_key_set_skips_non_json_body(rsa_key):
    _, public = rsa_key
    broken = _jwks_response()
    broken.json.side_effect = ValueError("corpo nao e JSON")
    key_set = identity.AzureAdKeySet(TENANT, 3600)

    with patch("chamados.core.identity.requests.get", side_effect=[broken, _jwks_response(public)]) as mock_get:
        assert key_set.get("key-1")["kid"] == "key-1"

    assert mock_get.call_args_list[1].args[0] == identity.AZURE_AD_COMMON_JWKS_URL


def test_signature_mode_non_json_jwks_is_auth_error(signature_mode, rsa_key):
    pem, _ = rsa_key
    token = jwt.encode(_claims(aud=CLIENT_ID), pem, algorithm="RS256", headers={"kid": "key-1"})
    broken = _jwks_response()
    broken.json.side_effect = ValueError("corpo nao e JSON")

    with patch("chamados.core.identity.requests.get", return_value=broken):
        with pytest.raises(AuthError):
            identity.verify(token)


def test_unknown_kid_refetch_is_throttled(rsa_key):
    _, public = rsa_key
    key_set = identity.AzureAdKeySet(TENANT, 3600, min_refresh_seconds=60)

    with patch("chamados.core.identity.requests.get", return_value=_jwks_response(public)) as mock_get:
        assert key_set.get("outra") is None
        assert key_set.get("mais-uma") is None
        assert key_set.get("key-1") is not None

    assert mock_get.call_count == 1


def _verified(email="maria@example.com"):
    return CallerIdentity(subject_id="subject-1", email=email, display_name="Maria Silva")


def test_resolve_caller_admin_email_creates_submitter(db_session, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_EMAIL", "maria@example.com")
    monkeypatch.setattr(settings, "ADMIN_AUTO_GRANT", True)

    caller = security.resolve_caller(db_session, _verified())

    assert caller.role == "ADMIN"
    submitter = db_session.query(models.Submitter).filter(models.Submitter.email == "maria@example.com").one()
    assert submitter.role == models.UserRole.ADMIN
    assert submitter.name == "Maria Silva"


def test_resolve_caller_admin_email_promotes_submitter(db_session, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_EMAIL", "maria@example.com")
    monkeypatch.setattr(settings, "ADMIN_AUTO_GRANT", True)
    db_session.add(models.Submitter(name="Maria", email="maria@example.com", role=models.UserRole.DEVELOP))
    db_session.commit()

    assert security.resolve_caller(db_session, _verified()).role == "ADMIN"
    db_session.expire_all()
    assert db_session.query(models.Submitter).one().role == models.UserRole.ADMIN


def test_resolve_caller_uses_submitter_role(db_session, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_EMAIL", "")
    db_session.add(models.Submitter(name="Maria", email="maria@example.com", role=models.UserRole.ANALYST))
    db_session.add(models.Submitter(name="Sem role", email="semrole@example.com"))
    db_session.commit()

    assert security.resolve_caller(db_session, _verified()).role == "ANALYST"
    assert security.resolve_caller(db_session, _verified("semrole@example.com")).role == "DEFAULT"
    assert security.resolve_caller(db_session, _verified("novo@example.com")).role == "DEFAULT"


def test_resolve_caller_inactive_submitter(db_session, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_EMAIL", "")
    db_session.add(
        models.Submitter(name="Maria", email="maria@example.com", role=models.UserRole.ANALYST, is_active=False)
    )
    db_session.commit()

    with pytest.raises(AccessDenied):
        security.resolve_caller(db_session, _verified())


def test_authorize(analyst, viewer):
    security.authorize(analyst, security.DEMAND_EDITORS)
    security.authorize(viewer, set())

    with pytest.raises(AccessDenied):
        security.authorize(viewer, security.DEMAND_EDITORS)
    with pytest.raises(AccessDenied):
        security.authorize(analyst, security.TRACKING_EDITORS)
