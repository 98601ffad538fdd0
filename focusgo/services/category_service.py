import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from focusgo.models.category import Category
from focusgo.schemas.category import DEFAULT_CATEGORIES, NO_CATEGORY, CategoryRef


async def get_user_categories(db: AsyncSession, user_id: uuid.UUID) -> list[Category]:
    result = await db.execute(
        select(Category).where(Category.user_id == user_id).order_by(Category.order.asc())
    )
    return list(result.scalars().all())


async def get_category(
    db: AsyncSession, user_id: uuid.UUID, category_id: uuid.UUID
) -> Category | None:
    result = await db.execute(
        select(Category).where(Category.id == category_id, Category.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def get_next_order_number(db: AsyncSession, user_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.max(Category.order)).where(Category.user_id == user_id)
    )
    highest = result.scalar()
    return 0 if highest is None else highest + 1


async def add_category(
    db: AsyncSession,
    user_id: uuid.UUID,
    name: str,
    color: str,
    icon: str,
    order: int | None = None,
) -> Category:
    if order is None:
        order = await get_next_order_number(db, user_id)
    category = Category(user_id=user_id, name=name, color=color, icon=icon, order=order)
    db.add(category)
    await db.flush()
    await db.refresh(category)
    return category


async def update_category(
    db: AsyncSession, user_id: uuid.UUID, category_id: uuid.UUID, data: dict
) -> Category | None:
    category = await get_category(db, user_id, category_id)
    if category is None:
        return None

    for key, value in data.items():
        if value is not None:
            setattr(category, key, value)

    await db.flush()
    await db.refresh(category)
    return category


async def delete_category(db: AsyncSession, user_id: uuid.UUID, category_id: uuid.UUID) -> bool:
    category = await get_category(db, user_id, category_id)
    if category is None:
        return False
    await db.delete(category)
    await db.flush()
    return True


async def reorder_categories(
    db: AsyncSession, user_id: uuid.UUID, orders: list[dict]
) -> list[Category]:
    """Apply ``[{"id": ..., "order": ...}]`` in one flush. Unknown ids are ignored."""
    categories = {c.id: c for c in await get_user_categories(db, user_id)}
    for item in orders:
        category = categories.get(item["id"])
        if category is not None:
            category.order = item["order"]
    await db.flush()
    return await get_user_categories(db, user_id)


async def initialize_default_categories(db: AsyncSession, user_id: uuid.UUID) -> list[Category]:
    for default in DEFAULT_CATEGORIES:
        db.add(Category(user_id=user_id, **default))
    await db.flush()
    return await get_user_categories(db, user_id)


def to_ref(category: Category) -> CategoryRef:
    return CategoryRef(
        id=str(category.id), name=category.name, color=category.color, icon=category.icon
    )


def resolve_ref(categories: list[Category], category_id: str | None) -> CategoryRef:
    """Find a category by id string, falling back to the "no category" sentinel."""
    for category in categories:
        if str(category.id) == category_id:
            return to_ref(category)
    return NO_CATEGORY
