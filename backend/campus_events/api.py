from typing import List
from contextlib import asynccontextmanager
from pathlib import Path
import time
import logging

from fastapi import Depends, FastAPI, HTTPException, status, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import auth, models, schemas
from .config import settings
from .database import build_engine, build_session_factory, get_db
from .logging_utils import configure_logging, RequestIdMiddleware, log_event, log_warning
from .recommendations import recommend_events
from .registrations import list_registered_events, register_student

configure_logging()


def _run_migrations():
    """Run Alembic migrations to latest head. Controlled via settings.auto_run_migrations."""
    try:
        from alembic import command
        from alembic.config import Config
        base_dir = Path(__file__).resolve().parent.parent
        alembic_ini = base_dir / 'alembic.ini'
        if not alembic_ini.exists():
            logging.warning('alembic.ini not found; skipping migrations')
            return
        cfg = Config(str(alembic_ini))
        cfg.set_main_option('script_location', str(base_dir / 'alembic'))
        # keep the JSON root handler installed by configure_logging()
        cfg.attributes['configure_logger'] = False
        command.upgrade(cfg, 'head')
        logging.info('Migrations applied to head')
    except Exception:
        logging.exception('Failed to run migrations on startup')


def _check_configuration():
    if not settings.database_url:
        raise RuntimeError('DATABASE_URL is required')
    if not settings.secret_key:
        raise RuntimeError('SECRET_KEY is required')


@asynccontextmanager
async def lifespan(app: FastAPI):
    _check_configuration()
    engine = build_engine(settings.database_url)
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    if settings.auto_run_migrations:
        _run_migrations()
    elif settings.auto_create_tables:
        models.Base.metadata.create_all(bind=engine)
    log_event("app_started", database=engine.url.render_as_string(hide_password=True))
    try:
        yield
    finally:
        engine.dispose()


app = FastAPI(title="Campus Events API", version="1.0.0", lifespan=lifespan)

app.add_middleware(RequestIdMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins or [],
    allow_credentials="*" not in settings.allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(status_code: int, message: str, code: str | None = None, headers: dict | None = None, **extra):
    return JSONResponse(
        status_code=status_code,
        content={"message": message, "detail": message, "error": {"code": code or f"http_{status_code}", "message": message}, **extra},
        headers=headers,
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Error"
    return _error_response(exc.status_code, message, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if any(err.get("type") in ("missing", "string_too_short") for err in errors):
        message = "All fields are required"
    else:
        message = "Invalid request"
    fields = [".".join(str(part) for part in err.get("loc", ()) if part != "body") for err in errors]
    return _error_response(status.HTTP_400_BAD_REQUEST, message, code="validation_error", fields=fields)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logging.getLogger("campus_events").exception(
        "unhandled_exception", extra={"event": "unhandled_exception", "path": request.url.path}
    )
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", code="internal_error")


_RATE_LIMIT_STORE: dict[str, list[float]] = {}


def _rate_limit_key(action: str, request: Request | None = None, identifier: str | None = None) -> str:
    client_host = request.client.host if request and request.client else "unknown"
    return f"{action}:{client_host}:{identifier or '-'}"


def _prune_rate_limit_store(now: float, window_seconds: int) -> None:
    for key in list(_RATE_LIMIT_STORE):
        entries = [ts for ts in _RATE_LIMIT_STORE[key] if now - ts < window_seconds]
        if entries:
            _RATE_LIMIT_STORE[key] = entries
        else:
            del _RATE_LIMIT_STORE[key]


def _check_rate_limit(key: str) -> None:
    limit = settings.auth_rate_limit
    if limit <= 0:
        return
    _prune_rate_limit_store(time.time(), settings.auth_rate_window_seconds)
    if len(_RATE_LIMIT_STORE.get(key, [])) >= limit:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Try again in a moment.",
        )


def _record_rate_limit_hit(key: str) -> None:
    if settings.auth_rate_limit <= 0:
        return
    _RATE_LIMIT_STORE.setdefault(key, []).append(time.time())


def _clear_rate_limit(key: str) -> None:
    _RATE_LIMIT_STORE.pop(key, None)


def _enforce_rate_limit(
    action: str,
    request: Request | None = None,
    identifier: str | None = None,
) -> None:
    key = _rate_limit_key(action, request, identifier)
    _check_rate_limit(key)
    _record_rate_limit_hit(key)


def _normalize_email(value: str) -> str:
    return value.strip().lower()


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _ensure_roll_no_free(db: Session, roll_no: str | None, user_id: int | None = None) -> None:
    if not roll_no:
        return
    query = db.query(models.User.id).filter(models.User.roll_no == roll_no)
    if user_id is not None:
        query = query.filter(models.User.id != user_id)
    if query.first():
        raise HTTPException(status_code=400, detail="Roll number already in use")


def _auth_response(user: models.User, message: str) -> schemas.AuthResponse:
    return schemas.AuthResponse(
        message=message,
        token=auth.create_access_token(user.id, user.role),
        user=schemas.UserSummary.model_validate(user),
    )


@app.get("/")
def read_root():
    return {"message": "College Event Platform API running"}


@app.get("/api/health")
def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ok", "database": "ok"}
    except Exception:
        raise HTTPException(status_code=503, detail="Database unavailable")


# ===================== AUTH =====================


@app.post("/api/auth/register", response_model=schemas.AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: schemas.UserRegister, request: Request, db: Session = Depends(get_db)):
    email = _normalize_email(payload.email)
    _enforce_rate_limit("register", request=request, identifier=email)
    if payload.role == models.UserRole.admin.value:
        raise HTTPException(status_code=400, detail="Admin accounts cannot be self-registered")
    if db.query(models.User).filter(models.User.email == email).first():
        raise HTTPException(status_code=400, detail="User already exists")
    roll_no = _clean_optional(payload.roll_no)
    _ensure_roll_no_free(db, roll_no)

    new_user = models.User(
        name=payload.name.strip(),
        email=email,
        password_hash=auth.get_password_hash(payload.password),
        role=models.UserRole(payload.role or models.UserRole.student.value),
        roll_no=roll_no,
        college_name=payload.college_name,
        branch=payload.branch,
        course=payload.course,
        interests=list(payload.interests),
        enroll_year=payload.enroll_year,
        address=payload.address,
        profile_pic=payload.profile_pic or "",
    )
    db.add(new_user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="User already exists")
    db.refresh(new_user)
    log_event("user_registered", user_id=new_user.id, email=new_user.email, role=new_user.role.value)
    return _auth_response(new_user, "User registered successfully")


@app.post("/api/auth/login", response_model=schemas.AuthResponse)
def login(payload: schemas.UserLogin, request: Request, db: Session = Depends(get_db)):
    if not payload.email or not payload.password:
        raise HTTPException(status_code=400, detail="Email and password are required")
    email = _normalize_email(payload.email)
    # only failed attempts count; keyed per client and email
    rate_key = _rate_limit_key("login", request=request, identifier=email)
    _check_rate_limit(rate_key)
    user = db.query(models.User).filter(models.User.email == email).first()
    if not user or not auth.verify_password(payload.password, user.password_hash):
        _record_rate_limit_hit(rate_key)
        log_warning("login_failed", email=email)
        raise HTTPException(status_code=400, detail="Invalid email or password")
    _clear_rate_limit(rate_key)
    log_event("login_success", user_id=user.id, email=user.email, role=user.role.value)
    return _auth_response(user, "Login successful")


# ===================== EVENTS =====================


@app.post("/api/events", response_model=schemas.EventResponse, status_code=status.HTTP_201_CREATED)
def create_event(
    payload: schemas.EventCreate,
    db: Session = Depends(get_db),
    identity: schemas.TokenData = Depends(auth.require_organizer),
):
    if payload.capacity < 0:
        raise HTTPException(status_code=400, detail="Capacity must be a non-negative integer")

    new_event = models.Event(
        title=payload.title,
        description=payload.description,
        category=payload.category,
        date=payload.date,
        venue=payload.venue,
        capacity=payload.capacity,
        registered_count=0,
        organizer_id=identity.user_id,
    )
    db.add(new_event)
    db.commit()
    db.refresh(new_event)
    log_event("event_created", event_id=new_event.id, organizer_id=identity.user_id)
    return schemas.EventResponse.model_validate(new_event)


@app.get("/api/events", response_model=List[schemas.EventWithOrganizerResponse])
def list_events(db: Session = Depends(get_db)):
    events = db.query(models.Event).options(joinedload(models.Event.organizer)).order_by(models.Event.id).all()
    return [schemas.EventWithOrganizerResponse.model_validate(event) for event in events]


@app.get("/api/events/available", response_model=List[schemas.EventResponse])
def list_available_events(db: Session = Depends(get_db)):
    events = (
        db.query(models.Event)
        .filter(models.Event.registered_count < models.Event.capacity)
        .order_by(models.Event.id)
        .all()
    )
    return [schemas.EventResponse.model_validate(event) for event in events]


@app.post(
    "/api/events/{event_id}/register",
    response_model=schemas.MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
def register_for_event(
    event_id: int,
    db: Session = Depends(get_db),
    identity: schemas.TokenData = Depends(auth.require_student),
):
    register_student(db, student_id=identity.user_id, event_id=event_id)
    return {"message": "Successfully registered for event"}


@app.get("/api/events/my-registrations", response_model=List[schemas.EventResponse])
def my_registrations(db: Session = Depends(get_db), identity: schemas.TokenData = Depends(auth.require_student)):
    events = list_registered_events(db, student_id=identity.user_id)
    return [schemas.EventResponse.model_validate(event) for event in events]


@app.get("/api/events/my-events", response_model=List[schemas.EventResponse])
def my_events(db: Session = Depends(get_db), identity: schemas.TokenData = Depends(auth.require_organizer)):
    events = (
        db.query(models.Event)
        .filter(models.Event.organizer_id == identity.user_id)
        .order_by(models.Event.created_at.desc(), models.Event.id.desc())
        .all()
    )
    return [schemas.EventResponse.model_validate(event) for event in events]


@app.get("/api/events/recommended", response_model=List[schemas.EventResponse])
def recommended_events(db: Session = Depends(get_db), identity: schemas.TokenData = Depends(auth.require_student)):
    events = recommend_events(db, student_id=identity.user_id)
    return [schemas.EventResponse.model_validate(event) for event in events]


# ===================== USERS =====================


@app.get("/api/users/me", response_model=schemas.StudentProfileResponse)
def get_my_profile(current_user: models.User = Depends(auth.get_current_student)):
    return schemas.StudentProfileResponse.model_validate(current_user)


@app.put("/api/users/interests", response_model=schemas.UserProfileResponse)
def update_interests(
    payload: schemas.InterestsUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_student),
):
    current_user.interests = list(payload.interests)
    db.add(current_user)
    db.commit()
    db.refresh(current_user)
    log_event("interests_updated", user_id=current_user.id, interests=current_user.interests)
    return schemas.UserProfileResponse.model_validate(current_user)


@app.put("/api/users/me", response_model=schemas.UserProfileResponse)
def update_my_profile(
    payload: schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(auth.get_current_user),
):
    changes = payload.model_dump(exclude_unset=True)

    if changes.get("name") is not None:
        current_user.name = changes["name"].strip()
    if "roll_no" in changes:
        roll_no = _clean_optional(changes["roll_no"])
        _ensure_roll_no_free(db, roll_no, user_id=current_user.id)
        current_user.roll_no = roll_no
    for field in ("college_name", "branch", "course", "enroll_year", "address"):
        if field in changes:
            setattr(current_user, field, changes[field])
    if "profile_pic" in changes:
        current_user.profile_pic = changes["profile_pic"] or ""
    if changes.get("interests") is not None:
        current_user.interests = list(changes["interests"])

    db.add(current_user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Roll number already in use")
    db.refresh(current_user)
    log_event("profile_updated", user_id=current_user.id, fields=sorted(changes))
    return schemas.UserProfileResponse.model_validate(current_user)
