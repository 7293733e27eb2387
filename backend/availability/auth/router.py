import logging

from authlib.integrations.starlette_client import OAuth, OAuthError
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from availability.auth.dependencies import get_current_user
from availability.auth.schemas import AuthMessageResponse, AuthProvidersResponse
from availability.auth.settings import auth_settings
from availability.auth.utils import create_access_token
from availability.database import get_db
from availability.users.models import OAuthAccountDB, UserDB, UserRead
from availability.users.service import get_user, get_user_by_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

oauth = OAuth()
if auth_settings.google_oauth_enabled:
    oauth.register(
        name="google",
        client_id=auth_settings.GOOGLE_CLIENT_ID,
        client_secret=auth_settings.GOOGLE_CLIENT_SECRET,
        server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
        client_kwargs={"scope": "openid email profile"},
    )


def _set_auth_cookie(response, token: str):
    response.set_cookie(
        key=auth_settings.COOKIE_NAME,
        value=token,
        httponly=auth_settings.COOKIE_HTTPONLY,
        secure=auth_settings.COOKIE_SECURE,
        samesite=auth_settings.COOKIE_SAMESITE,
        domain=auth_settings.COOKIE_DOMAIN,
        max_age=auth_settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    return response


def _clear_auth_cookie(response):
    response.delete_cookie(
        key=auth_settings.COOKIE_NAME,
        httponly=auth_settings.COOKIE_HTTPONLY,
        secure=auth_settings.COOKIE_SECURE,
        samesite=auth_settings.COOKIE_SAMESITE,
        domain=auth_settings.COOKIE_DOMAIN,
    )
    return response


def _safe_next(path: str | None) -> str:
    """Only same-site relative paths are allowed as post-login targets."""
    if path and path.startswith("/") and not path.startswith("//"):
        return path
    return "/dashboard"


async def upsert_google_user(
    sub_id: str, email: str, name: str | None, image: str | None, db: AsyncSession
) -> UserDB:
    """Find the user linked to a Google identity, linking or creating one as needed."""
    result = await db.execute(
        select(OAuthAccountDB).where(
            OAuthAccountDB.provider == "google",
            OAuthAccountDB.sub_id == sub_id,
        )
    )
    oauth_account = result.scalar_one_or_none()

    if oauth_account:
        user = await get_user(oauth_account.user_id, db)
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Linked user not found",
            )
        return user

    user = await get_user_by_email(email, db)
    if user is None:
        user = UserDB(email=email, name=name, image=image)
        db.add(user)
        await db.flush()
        logger.info("Created user %s from Google sign-in", user.id)

    db.add(OAuthAccountDB(provider="google", sub_id=sub_id, user_id=user.id))
    await db.commit()
    await db.refresh(user)
    return user


@router.get("/providers", response_model=AuthProvidersResponse)
async def get_auth_providers() -> AuthProvidersResponse:
    return AuthProvidersResponse(google=auth_settings.google_oauth_enabled)


@router.get("/google")
async def google_login(request: Request, next: str | None = None):
    """Initiate Google OAuth flow."""
    if not auth_settings.google_oauth_enabled:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Google OAuth is not configured",
        )

    # Remember where to send the user afterwards, e.g. back to an invite page
    request.session["next"] = _safe_next(next)

    redirect_uri = f"{auth_settings.FRONTEND_URL}/api/backend/auth/google/callback"
    return await oauth.google.authorize_redirect(request, redirect_uri)


@router.get("/google/callback", name="google_callback")
async def google_callback(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Handle Google OAuth callback."""
    if not auth_settings.google_oauth_enabled:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Google OAuth is not configured",
        )

    try:
        token = await oauth.google.authorize_access_token(request)
    except OAuthError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"OAuth error: {e!s}",
        ) from e

    userinfo = token.get("userinfo")
    if not userinfo or not userinfo.get("sub") or not userinfo.get("email"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required user info from Google",
        )

    user = await upsert_google_user(
        sub_id=userinfo["sub"],
        email=userinfo["email"],
        name=userinfo.get("name"),
        image=userinfo.get("picture"),
        db=db,
    )

    next_path = _safe_next(request.session.pop("next", None))
    response = RedirectResponse(url=f"{auth_settings.FRONTEND_URL}{next_path}", status_code=302)
    return _set_auth_cookie(response, create_access_token(user.id))


@router.post("/signout", response_model=AuthMessageResponse)
async def signout() -> JSONResponse:
    """Sign out the current user by clearing the auth cookie."""
    response = JSONResponse(
        status_code=200,
        content={"message": "Successfully signed out"},
    )
    return _clear_auth_cookie(response)


@router.get("/me", response_model=UserRead)
async def get_me(
    current_user: UserDB = Depends(get_current_user),
) -> UserRead:
    """Get the currently authenticated user."""
    return UserRead.model_validate(current_user)
