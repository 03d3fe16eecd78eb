"""Password hashing, session tokens, credential contexts and settings."""

import pytest
from jose import jwt

from rubberband.config import Settings, settings
from rubberband.errors.exceptions import AuthorizationError
from rubberband.services.context import AdministrativeContext, UserSessionContext, require_admin
from rubberband.services.security import decode_access_token, hash_password, make_access_token, verify_password


def test_password_hash_is_salted():
    first = hash_password("s3cret-pass")
    second = hash_password("s3cret-pass")
    assert first != second
    assert verify_password("s3cret-pass", first)
    assert not verify_password("wrong", first)
    assert not verify_password("s3cret-pass", "not-a-hash")


def test_access_token_carries_supabase_claims():
    token, expires_in = make_access_token("usr_1", "ada@example.com")
    claims = decode_access_token(token)
    assert claims["sub"] == "usr_1"
    assert claims["email"] == "ada@example.com"
    assert claims["role"] == "authenticated"
    assert expires_in == settings.jwt_access_token_expire_minutes * 60


def test_token_signed_with_other_secret_is_rejected():
    forged = jwt.encode(
        {"sub": "usr_1", "aud": settings.jwt_audience, "iss": settings.effective_jwt_issuer},
        "not-the-secret",
        algorithm="HS256",
    )
    with pytest.raises(ValueError):
        decode_access_token(forged)


def test_require_admin_rejects_user_sessions():
    admin = AdministrativeContext(service_role_key="k")
    assert require_admin(admin) is admin
    with pytest.raises(AuthorizationError):
        require_admin(UserSessionContext(user_id="u", email="e", access_token="t"))


def test_contexts_hide_secrets_from_repr():
    assert "k3y" not in repr(AdministrativeContext(service_role_key="k3y"))
    assert "t0ken" not in repr(UserSessionContext(user_id="u", email="e", access_token="t0ken"))


def test_settings_select_backend(monkeypatch):
    monkeypatch.setenv("RUBBERBAND_SUPABASE_URL", "https://project.supabase.co")
    assert Settings().uses_supabase is True

    monkeypatch.setenv("RUBBERBAND_LOCAL_MODE", "1")
    local = Settings()
    assert local.uses_supabase is False
    assert local.effective_database_url.startswith("sqlite+aiosqlite")


def test_issuer_defaults_to_gotrue_in_supabase_mode(monkeypatch):
    monkeypatch.delenv("RUBBERBAND_LOCAL_MODE", raising=False)
    monkeypatch.delenv("RUBBERBAND_JWT_ISSUER", raising=False)
    monkeypatch.setenv("RUBBERBAND_SUPABASE_URL", "https://project.supabase.co/")
    assert Settings().effective_jwt_issuer == "https://project.supabase.co/auth/v1"

    monkeypatch.setenv("RUBBERBAND_JWT_ISSUER", "custom-issuer")
    assert Settings().effective_jwt_issuer == "custom-issuer"


def test_issuer_defaults_to_local_name_without_supabase(monkeypatch):
    monkeypatch.delenv("RUBBERBAND_SUPABASE_URL", raising=False)
    monkeypatch.delenv("RUBBERBAND_JWT_ISSUER", raising=False)
    assert Settings(supabase_url="").effective_jwt_issuer == "rubberband-api"


def test_gotrue_token_accepted_in_supabase_mode(monkeypatch):
    monkeypatch.setattr(settings, "supabase_url", "https://project.supabase.co")
    monkeypatch.setattr(settings, "local_mode", False)
    monkeypatch.setattr(settings, "jwt_issuer", None)
    gotrue_token = jwt.encode(
        {
            "sub": "usr_1",
            "email": "ada@example.com",
            "role": "authenticated",
            "aud": settings.jwt_audience,
            "iss": "https://project.supabase.co/auth/v1",
        },
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )
    assert decode_access_token(gotrue_token)["sub"] == "usr_1"
