import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.errors import error_code_for
from app.models import Base  # noqa: F401 - register models
from app.routers import auth, health, menu, orders, organizer, rsvp, wechat
from app.services.email import build_mailer

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Celebration API",
    description="Invitations, RSVPs and food pre-orders for a private event",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Chosen once; handlers receive it through app.core.deps.get_mailer
app.state.mailer = build_mailer(settings)

app.include_router(health.router, prefix="/health")
app.include_router(auth.router, prefix="/api/auth")
app.include_router(rsvp.router, prefix="/api/rsvp")
app.include_router(menu.router, prefix="/api/menu")
app.include_router(orders.router, prefix="/api/orders")
app.include_router(organizer.router, prefix="/api/organizer")
app.include_router(wechat.router, prefix="/api/wechat")


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "code": error_code_for(exc)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"error": message, "code": "VALIDATION_ERROR"})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "code": "INTERNAL_ERROR"},
    )


@app.on_event("startup")
async def startup():
    # Seed the bootstrap organizer if configured and no organizer exists yet
    if not settings.INITIAL_ORGANIZER_EMAIL:
        return
    from app.core.database import SessionLocal
    from app.models.user import User
    from app.services.invites import find_user_by_email

    db = SessionLocal()
    try:
        if db.query(User).filter(User.is_organizer.is_(True)).first() is None:
            user = find_user_by_email(db, settings.INITIAL_ORGANIZER_EMAIL)
            if user is None:
                user = User(
                    email=settings.INITIAL_ORGANIZER_EMAIL.strip().lower(),
                    name=settings.INITIAL_ORGANIZER_NAME,
                )
                db.add(user)
            user.is_organizer = True
            db.commit()
            logger.info("Seeded initial organizer %s", user.id)
    finally:
        db.close()
