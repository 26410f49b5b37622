"""
Tests para autenticación: registro, login, API keys y estado del usuario
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import jwt

from app.modules.auth.models import User, UserStatus, UserTier, ApiKey
from app.modules.auth.schemas import ApiKeyCreate
from app.modules.auth.service import ApiKeyService
from app.modules.auth.utils import extract_api_key_prefix, generate_api_key, create_access_token
from conftest import TEST_PASSWORD


class TestApiKeyUtils:

    def test_generated_key_has_live_prefix(self):
        key = generate_api_key()
        assert key.startswith("sk_live_")
        assert len(key) == len("sk_live_") + 32

    def test_extract_prefix(self):
        assert extract_api_key_prefix("sk_live_abc123") == "sk_live_"
        assert extract_api_key_prefix("sk_test_abc123") == "sk_test_"
        assert extract_api_key_prefix("pk_live_abc123") == ""
        assert extract_api_key_prefix("garbage") == ""


class TestSignupAndLogin:

    def test_signup_lowercases_email(self, api_client, db_session):
        response = api_client.post("/auth/signup", json={
            "email": "Nuevo@Empresa.COM",
            "password": "supersecreta",
            "name": "Nuevo Usuario",
            "tax_id": "20-12345678-6",
        })
        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "nuevo@empresa.com"
        assert data["tax_id"] == "20123456786"
        assert data["tier"] == UserTier.FREE.value
        assert data["status"] == UserStatus.ACTIVE.value

    def test_signup_rejects_invalid_cuit(self, api_client):
        response = api_client.post("/auth/signup", json={
            "email": "cuit@empresa.com",
            "password": "supersecreta",
            "name": "Usuario",
            "tax_id": "20123456780",
        })
        assert response.status_code == 422

    def test_signup_duplicate_email(self, api_client, sample_user):
        response = api_client.post("/auth/signup", json={
            "email": sample_user.email.upper(),
            "password": "supersecreta",
            "name": "Duplicado",
        })
        assert response.status_code == 409

    def test_login_returns_token(self, api_client, sample_user):
        response = api_client.post("/auth/login", json={
            "email": sample_user.email,
            "password": TEST_PASSWORD,
        })
        assert response.status_code == 200
        token = response.json()["access_token"]

        me = api_client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["id"] == str(sample_user.id)

    def test_login_wrong_password(self, api_client, sample_user):
        response = api_client.post("/auth/login", json={
            "email": sample_user.email,
            "password": "incorrecta",
        })
        assert response.status_code == 401


class TestApiKeys:

    def test_create_and_use_api_key(self, api_client, auth_headers, db_session):
        response = api_client.post("/auth/api-keys", json={"name": "integración"}, headers=auth_headers)
        assert response.status_code == 201
        plain_key = response.json()["api_key"]
        assert plain_key.startswith("sk_live_")

        stored = db_session.query(ApiKey).one()
        assert stored.key_hash != plain_key

        by_bearer = api_client.get("/auth/me", headers={"Authorization": f"Bearer {plain_key}"})
        assert by_bearer.status_code == 200
        by_header = api_client.get("/auth/me", headers={"X-API-Key": plain_key})
        assert by_header.status_code == 200

    def test_list_hides_plain_key(self, api_client, auth_headers):
        api_client.post("/auth/api-keys", json={"name": "k1"}, headers=auth_headers)
        response = api_client.get("/auth/api-keys", headers=auth_headers)
        assert response.status_code == 200
        keys = response.json()
        assert len(keys) == 1
        assert "api_key" not in keys[0]
        assert "key_hash" not in keys[0]

    def test_revoked_key_is_rejected(self, api_client, auth_headers):
        created = api_client.post("/auth/api-keys", json={"name": "k1"}, headers=auth_headers).json()
        revoke = api_client.delete(f"/auth/api-keys/{created['id']}", headers=auth_headers)
        assert revoke.status_code == 200
        assert revoke.json()["is_active"] is False

        response = api_client.get("/auth/me", headers={"X-API-Key": created["api_key"]})
        assert response.status_code == 401

    def test_expired_key_is_rejected(self, db_session, sample_user):
        service = ApiKeyService(db_session)
        _, plain_key = service.generate_api_key(
            sample_user.id,
            ApiKeyCreate(name="vencida", expires_at=datetime.now(timezone.utc) - timedelta(minutes=1)),
        )
        assert service.validate_api_key(plain_key) is None

    def test_validate_updates_last_used(self, db_session, sample_user):
        service = ApiKeyService(db_session)
        record, plain_key = service.generate_api_key(sample_user.id, ApiKeyCreate(name="uso"))
        assert record.last_used_at is None
        assert service.validate_api_key(plain_key).last_used_at is not None

    def test_cannot_revoke_foreign_key(self, api_client, db_session, other_user, auth_headers):
        record, _ = ApiKeyService(db_session).generate_api_key(other_user.id, ApiKeyCreate(name="ajena"))
        response = api_client.delete(f"/auth/api-keys/{record.id}", headers=auth_headers)
        assert response.status_code == 403


class TestUserStatus:

    def test_missing_credentials(self, api_client):
        assert api_client.get("/auth/me").status_code == 401

    def test_suspended_user_rejected(self, api_client, db_session, sample_user, auth_headers):
        user = db_session.get(User, sample_user.id)
        user.status = UserStatus.SUSPENDED
        db_session.commit()

        response = api_client.get("/auth/me", headers=auth_headers)
        assert response.status_code == 401

    def test_deleted_user_cannot_login(self, api_client, db_session, sample_user):
        user = db_session.get(User, sample_user.id)
        user.status = UserStatus.DELETED
        db_session.commit()

        response = api_client.post("/auth/login", json={
            "email": sample_user.email,
            "password": TEST_PASSWORD,
        })
        assert response.status_code == 401


class TestAccessToken:

    def test_token_resolves_user(self, api_client, sample_user, auth_headers):
        response = api_client.get("/auth/me", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["id"] == str(sample_user.id)

    def test_subject_that_is_not_a_uuid(self, api_client):
        token = create_access_token({"sub": "not-a-uuid"})
        response = api_client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_token_for_unknown_user(self, api_client):
        token = create_access_token({"sub": str(uuid4())})
        response = api_client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_token_signed_with_another_secret(self, api_client, sample_user):
        token = jwt.encode({"sub": str(sample_user.id)}, "otro-secreto", algorithm="HS256")
        response = api_client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
