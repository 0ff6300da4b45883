import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import ValidationError

from ..models.db_models import Profile, Role
from ..modules.auth_provider import AuthProviderClient, AuthProviderAuthError, AuthProviderError
from ..db.db_client import AsyncPostgresClient
from .dependencies import get_auth_provider, get_db_client
from .utilities.limiter import limiter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Authentication"])
bearer_scheme = HTTPBearer(auto_error=False)


# --- Dependency for protected routes ---
async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    auth_provider: AuthProviderClient = Depends(get_auth_provider),
    db_client: AsyncPostgresClient = Depends(get_db_client),
) -> Profile:
    """
    Validates the bearer token against the auth provider and returns the
    caller's profile. The role always comes from the 'profiles' table,
    never from the token.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        auth_user = await auth_provider.get_user(credentials.credentials)
        user_id = UUID(str(auth_user["id"]))
    except AuthProviderAuthError as e:
        logger.warning(f"Token validation error: {e}")
        raise credentials_exception
    except (KeyError, ValueError) as e:
        logger.warning(f"Auth provider returned an unusable user id: {e}")
        raise credentials_exception
    except AuthProviderError as e:
        logger.error(f"Auth provider unavailable: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Authentication service is currently unavailable.")

    try:
        profile = await db_client.get_profile(user_id)
    except ValidationError as e:
        logger.warning(f"Profile {user_id} has an unsupported role: {e}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Your account has an unsupported role.")
    except Exception as e:
        logger.error(f"Error loading profile {user_id}.", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Could not load your profile: {e}")

    if profile is None:
        logger.warning(f"Authenticated user {user_id} has no profile row.")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No profile exists for this account.")
    return profile


def verify_role(user: Profile, *roles: Role):
    """Raises 403 unless the user has one of the given roles."""
    if user.role not in roles:
        allowed = ", ".join(role.value for role in roles)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"This operation is only valid for: {allowed}.")


@router.get("/me", response_model=Profile, summary="Get the signed-in user's profile")
@limiter.limit("120/minute")
async def read_me(request: Request, user: Profile = Depends(get_current_user)):
    return user
