import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from availability.auth.router import router as auth_router
from availability.auth.settings import auth_settings
from availability.dashboard.router import router as dashboard_router
from availability.database import engine
from availability.events.router import router as events_router
from availability.groups.router import router as groups_router
from availability.invites.router import router as invites_router
from availability.settings import app_settings
from availability.users.router import router as profile_router

logger = logging.getLogger(__name__)

logging.getLogger("availability").setLevel(app_settings.log_level.upper())


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await engine.dispose()


app = FastAPI(lifespan=lifespan)


def format_validation_errors(errors) -> list[dict]:
    """Flatten pydantic errors into {field, message} pairs."""
    formatted = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        formatted.append(
            {
                "field": ".".join(loc),
                "message": str(error.get("msg", "")).removeprefix("Value error, "),
            }
        )
    return formatted


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid input", "errors": format_validation_errors(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


app.add_middleware(
    CORSMiddleware,
    allow_origins=[auth_settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# SessionMiddleware is required for OAuth flows (stores state during authorization)
app.add_middleware(
    SessionMiddleware,
    secret_key=auth_settings.JWT_SECRET_KEY,
    same_site="lax",
    https_only=auth_settings.COOKIE_SECURE,
)

app.include_router(auth_router)
app.include_router(dashboard_router)
app.include_router(groups_router)
app.include_router(invites_router)
app.include_router(events_router)
app.include_router(profile_router)
