"""Category API routes: admin creation plus public lookup."""
import logging
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from eventhub.database import get_db
from eventhub.exceptions import ConflictError, NotFoundError
from eventhub.models.category import Category
from eventhub.schemas.category import CategoryCreate, CategoryOut

logger = logging.getLogger(__name__)
admin_router = APIRouter()
router = APIRouter()


@admin_router.post("", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
def create_category(payload: CategoryCreate, db: Session = Depends(get_db)):
    if db.query(Category.id).filter(Category.name == payload.name).first():
        raise ConflictError(f"Category '{payload.name}' already exists")
    category = Category(name=payload.name)
    db.add(category)
    db.commit()
    db.refresh(category)
    logger.info("Created category %s (%s)", category.id, category.name)
    return category


@router.get("", response_model=list[CategoryOut])
def list_categories(
    offset: int = Query(0, ge=0, alias="from"),
    size: int = Query(10, gt=0),
    db: Session = Depends(get_db),
):
    return db.query(Category).order_by(Category.id).offset(offset).limit(size).all()


@router.get("/{category_id}", response_model=CategoryOut)
def get_category(category_id: int, db: Session = Depends(get_db)):
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise NotFoundError(f"Category with id={category_id} was not found")
    return category
