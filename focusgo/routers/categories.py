import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from focusgo.database import get_db
from focusgo.dependencies import get_current_user, get_timer_registry
from focusgo.models.user import User
from focusgo.schemas.category import (
    CategoryCreate,
    CategoryOrder,
    CategoryResponse,
    CategoryUpdate,
)
from focusgo.services import category_service
from focusgo.services.timer_registry import TimerRegistry

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("", response_model=list[CategoryResponse])
async def list_categories(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List categories in display order; a user with none gets the defaults."""
    categories = await category_service.get_user_categories(db, user.id)
    if not categories:
        categories = await category_service.initialize_default_categories(db, user.id)
    return categories


@router.post("", response_model=CategoryResponse, status_code=201)
async def create_category(
    data: CategoryCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await category_service.add_category(
        db, user.id, data.name, data.color, data.icon
    )


@router.put("/order", response_model=list[CategoryResponse])
async def reorder_categories(
    data: list[CategoryOrder],
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await category_service.reorder_categories(
        db, user.id, [item.model_dump() for item in data]
    )


@router.patch("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: uuid.UUID,
    data: CategoryUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    category = await category_service.update_category(
        db, user.id, category_id, data.model_dump(exclude_unset=True)
    )
    if category is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Category not found"
        )
    return category


@router.delete("/{category_id}", status_code=204)
async def delete_category(
    category_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: TimerRegistry = Depends(get_timer_registry),
):
    deleted = await category_service.delete_category(db, user.id, category_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Category not found"
        )
    registry.drop_category(user.id, str(category_id))
