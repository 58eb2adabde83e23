"""Read-only reports for administrators."""

from typing import Dict, List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from timecapsule import queries
from timecapsule.auth import get_current_admin
from timecapsule.database import get_db
from timecapsule.models import utcnow
from timecapsule.schemas import CapsuleResponse, UserResponse
from timecapsule.store import CapsuleStore

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(get_current_admin)])


def get_store(db: Session = Depends(get_db)) -> CapsuleStore:
    return CapsuleStore(db)


@router.get("/users", response_model=List[UserResponse])
async def list_users(store: CapsuleStore = Depends(get_store)):
    return store.list_users()


@router.get("/capsules", response_model=List[CapsuleResponse])
async def list_capsules(store: CapsuleStore = Depends(get_store)):
    return [CapsuleResponse.from_capsule(c) for c in store.get_all()]


@router.get("/capsules/unlocked", response_model=List[CapsuleResponse])
async def list_unlocked_capsules(store: CapsuleStore = Depends(get_store)):
    capsules = queries.unlocked_capsules(store.get_all(), utcnow())
    return [CapsuleResponse.from_capsule(c) for c in capsules]


@router.get("/capsules/locked", response_model=List[CapsuleResponse])
async def list_locked_capsules(store: CapsuleStore = Depends(get_store)):
    capsules = queries.locked_capsules(store.get_all(), utcnow())
    return [CapsuleResponse.from_capsule(c) for c in capsules]


@router.get("/capsules/stats", response_model=Dict[str, int])
async def capsule_count_per_user(store: CapsuleStore = Depends(get_store)):
    """Number of capsules per username."""
    return queries.count_per_owner(store.list_users(), store.get_all())
