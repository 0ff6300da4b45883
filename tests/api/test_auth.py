import pytest
import uuid
from unittest.mock import AsyncMock

from pydantic import ValidationError

from schoolhub.backend.main import app
from schoolhub.backend.api.dependencies import get_auth_provider, get_db_client
from schoolhub.backend.modules.auth_provider import AuthProviderAuthError, AuthProviderError
from schoolhub.backend.models.db_models import Profile, Role

AUTH = {"Authorization": "Bearer some-token"}


@pytest.fixture
def backend():
    auth_provider, db_client = AsyncMock(), AsyncMock()
    app.dependency_overrides[get_auth_provider] = lambda: auth_provider
    app.dependency_overrides[get_db_client] = lambda: db_client
    return auth_provider, db_client


@pytest.mark.asyncio
class TestCurrentUser:

    async def test_me_returns_profile_from_database(self, api_client, backend):
        auth_provider, db_client = backend
        user_id = uuid.uuid4()
        # The token metadata claims admin; the profiles table decides.
        auth_provider.get_user.return_value = {"id": str(user_id), "user_metadata": {"role": "admin"}}
        db_client.get_profile.return_value = Profile(id=user_id, full_name="Edna", role=Role.TEACHER)

        response = await api_client.get("/api/v1/me", headers=AUTH)

        assert response.status_code == 200
        assert response.json() == {"id": str(user_id), "full_name": "Edna", "role": "teacher"}
        auth_provider.get_user.assert_awaited_once_with("some-token")
        db_client.get_profile.assert_awaited_once_with(user_id)

    async def test_missing_token(self, api_client, backend):
        response = await api_client.get("/api/v1/me")

        assert response.status_code == 401
        assert response.json()["detail"] == "Missing authorization header"

    async def test_invalid_token(self, api_client, backend):
        auth_provider, db_client = backend
        auth_provider.get_user.side_effect = AuthProviderAuthError("Invalid or expired access token.")

        response = await api_client.get("/api/v1/me", headers=AUTH)

        assert response.status_code == 401
        db_client.get_profile.assert_not_called()

    async def test_provider_unavailable(self, api_client, backend):
        auth_provider, _ = backend
        auth_provider.get_user.side_effect = AuthProviderError("The auth provider could not be reached.")

        response = await api_client.get("/api/v1/me", headers=AUTH)

        assert response.status_code == 503

    async def test_user_without_profile(self, api_client, backend):
        auth_provider, db_client = backend
        auth_provider.get_user.return_value = {"id": str(uuid.uuid4())}
        db_client.get_profile.return_value = None

        response = await api_client.get("/api/v1/me", headers=AUTH)

        assert response.status_code == 403

    async def test_unsupported_role(self, api_client, backend):
        auth_provider, db_client = backend
        auth_provider.get_user.return_value = {"id": str(uuid.uuid4())}
        try:
            Profile(id=uuid.uuid4(), role="student")
        except ValidationError as e:
            db_client.get_profile.side_effect = e

        response = await api_client.get("/api/v1/me", headers=AUTH)

        assert response.status_code == 403


@pytest.mark.asyncio
async def test_health(api_client):
    response = await api_client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
