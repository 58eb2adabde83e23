import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from timecapsule import admin, auth
from timecapsule.auth import get_current_account, get_current_user
from timecapsule.config import get_settings
from timecapsule.database import get_db, init_db
from timecapsule.errors import CapsuleError
from timecapsule.files import FileStorage
from timecapsule.models import User
from timecapsule.notifier import EmailNotifier
from timecapsule.scheduler import UnlockScheduler
from timecapsule.schemas import AnalyticsResponse, CapsuleCreate, CapsuleResponse, CapsuleUpdate
from timecapsule.service import CapsuleService
from timecapsule.store import CapsuleStore, open_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    init_db()
    scheduler = None
    if settings.scheduler_backend == "thread":
        scheduler = UnlockScheduler(open_store, EmailNotifier(settings), interval=settings.scheduler_interval_seconds)
        scheduler.start()
    app.state.scheduler = scheduler
    logger.info(f"TimeCapsule API started (scheduler backend: {settings.scheduler_backend})")
    yield
    if scheduler:
        scheduler.stop()


app = FastAPI(
    title="TimeCapsule API",
    description="API for creating and managing time capsules",
    version="1.0.0",
    lifespan=lifespan,
)
app.include_router(auth.router)
app.include_router(admin.router)


@app.exception_handler(CapsuleError)
async def capsule_error_handler(request: Request, exc: CapsuleError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def get_capsule_service(db: Session = Depends(get_db)) -> CapsuleService:
    return CapsuleService(CapsuleStore(db), max_message_length=get_settings().max_message_length)


def get_file_storage() -> FileStorage:
    return FileStorage(get_settings().upload_dir)


@app.get("/status")
async def status():
    return {"status": "running"}


@app.post("/capsules", response_model=CapsuleResponse)
async def create_capsule(
    capsule: CapsuleCreate,
    user: User = Depends(get_current_account),
    service: CapsuleService = Depends(get_capsule_service),
):
    """
    Create a new time capsule.
    - **title**, **message**: Content of the capsule.
    - **unlock_at**: When the capsule unlocks; defaults to one year from now.
    """
    created = service.create(user, capsule.title, capsule.message, capsule.unlock_at)
    return CapsuleResponse.from_capsule(created)


@app.post("/capsules/with-file", response_model=CapsuleResponse)
async def create_capsule_with_file(
    title: str = Form(...),
    message: str = Form(""),
    unlock_at: Optional[datetime] = Form(None),
    file: UploadFile = File(...),
    user: User = Depends(get_current_account),
    service: CapsuleService = Depends(get_capsule_service),
    files: FileStorage = Depends(get_file_storage),
):
    """Create a capsule with an attachment."""
    file_ref = files.store(file)
    try:
        created = service.create(user, title, message, unlock_at, file_ref=file_ref)
    except CapsuleError:
        files.discard(file_ref)
        raise
    return CapsuleResponse.from_capsule(created)


@app.get("/capsules/locked", response_model=List[CapsuleResponse])
async def list_locked_capsules(
    username: str = Depends(get_current_user), service: CapsuleService = Depends(get_capsule_service)
):
    return [CapsuleResponse.from_capsule(c) for c in service.list_locked(username)]


@app.get("/capsules/unlocked", response_model=List[CapsuleResponse])
async def list_unlocked_capsules(
    username: str = Depends(get_current_user), service: CapsuleService = Depends(get_capsule_service)
):
    return [CapsuleResponse.from_capsule(c) for c in service.list_unlocked(username)]


@app.get("/capsules/analytics", response_model=AnalyticsResponse)
async def get_analytics(
    username: str = Depends(get_current_user), service: CapsuleService = Depends(get_capsule_service)
):
    """
    Get analytics for user's capsules.
    - **total_capsules**: Total number of capsules.
    - **pending_capsules**: Capsules not yet open.
    - **opened_capsules**: Capsules already open.
    """
    summary = service.summary(username)
    return AnalyticsResponse(
        total_capsules=summary["total"],
        pending_capsules=summary["locked"],
        opened_capsules=summary["unlocked"],
    )


@app.get("/capsules/{id}", response_model=CapsuleResponse)
async def get_capsule(
    id: int, username: str = Depends(get_current_user), service: CapsuleService = Depends(get_capsule_service)
):
    """
    Get a specific capsule by ID.
    Returns 404 for capsules that do not exist or belong to another user.
    """
    return CapsuleResponse.from_capsule(service.get(id, username))


@app.put("/capsules/{id}", response_model=CapsuleResponse)
async def update_capsule(
    id: int,
    patch: CapsuleUpdate,
    username: str = Depends(get_current_user),
    service: CapsuleService = Depends(get_capsule_service),
):
    """
    Update a locked capsule. Only the fields present in the body are changed.
    Returns 409 once the capsule has unlocked.
    """
    updated = service.update(id, username, title=patch.title, message=patch.message, unlock_at=patch.unlock_at)
    return CapsuleResponse.from_capsule(updated)


@app.delete("/capsules/{id}")
async def delete_capsule(
    id: int,
    username: str = Depends(get_current_user),
    service: CapsuleService = Depends(get_capsule_service),
    files: FileStorage = Depends(get_file_storage),
):
    """
    Delete a capsule by ID.
    """
    files.discard(service.delete(id, username))
    return {"message": "Capsule deleted successfully"}
