"""Admin user API routes."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from eventhub.database import get_db
from eventhub.exceptions import ConflictError
from eventhub.models.user import User
from eventhub.schemas.user import UserCreate, UserOut

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    """Register a user; emails are unique."""
    if db.query(User.id).filter(User.email == payload.email).first():
        raise ConflictError(f"User with email {payload.email} already exists")
    user = User(**payload.model_dump())
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Created user %s (%s)", user.id, user.email)
    return user


@router.get("", response_model=list[UserOut])
def list_users(
    ids: Optional[list[int]] = Query(None),
    offset: int = Query(0, ge=0, alias="from"),
    size: int = Query(10, gt=0),
    db: Session = Depends(get_db),
):
    """List users, optionally restricted to ``ids``."""
    query = db.query(User)
    if ids:
        query = query.filter(User.id.in_(ids))
    return query.order_by(User.id).offset(offset).limit(size).all()
