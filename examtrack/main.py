# examtrack/main.py
import logging
import time

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.httpsredirect import HTTPSRedirectMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware
from starlette.responses import JSONResponse

from . import models
from .database import Base, SessionLocal, engine
from .errors import TrackingError
from .models import UserRole
from .routers import attendance, audit_logs, auth, events, tasks, tracking
from .security import hash_password
from .settings import (
    ALLOWED_HOSTS,
    CORS_ORIGINS,
    ENABLE_HTTPS_REDIRECT,
    LOG_LEVEL,
    SUPERADMIN_NAME,
    SUPERADMIN_PASSWORD,
    SUPERADMIN_PHONE,
    UPLOAD_DIR,
)
from .storage import URL_PREFIX

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="examtrack")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("Permissions-Policy", "geolocation=(self)")
        response.headers.setdefault("Cache-Control", "no-store")
        return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)
if ENABLE_HTTPS_REDIRECT:
    app.add_middleware(HTTPSRedirectMiddleware)
if ALLOWED_HOSTS and ALLOWED_HOSTS != ["*"]:
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=ALLOWED_HOSTS)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed-window request counter per (client ip, path)."""

    def __init__(self, app, limit: int = 60, window_seconds: int = 60, paths: list[str] | None = None):
        super().__init__(app)
        self.limit = limit
        self.window = window_seconds
        self.paths = set(paths or [])
        self._store: dict = {}

    async def dispatch(self, request, call_next):
        path = request.url.path
        method = request.method.upper()
        if self.paths and method == "POST" and any(path.startswith(p) for p in self.paths):
            ip = (request.client.host if request.client else "-")
            now = int(time.time())
            key = (ip, path)
            count, start = self._store.get(key, (0, now))
            if now - start >= self.window:
                count, start = 0, now
            count += 1
            self._store[key] = (count, start)
            if count > self.limit:
                logger.warning("Rate limit hit for %s on %s", ip, path)
                return JSONResponse({"detail": "Too Many Requests"}, status_code=429)
        return await call_next(request)


app.add_middleware(
    RateLimitMiddleware,
    limit=100,  # per IP per path per minute
    window_seconds=60,
    paths=["/api/auth/login"],
)

UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
app.mount(URL_PREFIX, StaticFiles(directory=str(UPLOAD_DIR)), name="uploads")


@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        user = db.query(models.User).filter(models.User.phone == SUPERADMIN_PHONE).first()
        if not user:
            db.add(models.User(
                name=SUPERADMIN_NAME,
                phone=SUPERADMIN_PHONE,
                password=hash_password(SUPERADMIN_PASSWORD),
                role=UserRole.SUPER_ADMIN,
                is_active=True,
                created_at=models.utcnow(),
            ))
            db.commit()
            logger.info("Default super admin '%s' created", SUPERADMIN_PHONE)
        else:
            logger.info("Default super admin '%s' already present", SUPERADMIN_PHONE)
    finally:
        db.close()


app.include_router(auth.router,       prefix="/api", tags=["auth"])
app.include_router(tasks.router,      prefix="/api", tags=["tasks"])
app.include_router(events.router,     prefix="/api", tags=["events"])
app.include_router(attendance.router, prefix="/api", tags=["attendance"])
app.include_router(tracking.router,   prefix="/api", tags=["tracking"])
app.include_router(audit_logs.router, prefix="/api", tags=["audit"])
app.include_router(tracking.gateway,                tags=["tracking"])  # ws /tracking


@app.get("/health", include_in_schema=False)
def health():
    return {"status": "ok"}


@app.exception_handler(TrackingError)
def tracking_error_handler(request: Request, exc: TrackingError):
    return JSONResponse({"detail": exc.detail}, status_code=exc.status_code)


@app.exception_handler(HTTPException)
def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse({"detail": exc.detail}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse({"detail": jsonable_encoder(exc.errors())}, status_code=status.HTTP_400_BAD_REQUEST)
