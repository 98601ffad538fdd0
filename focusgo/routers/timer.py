import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from focusgo.database import get_db
from focusgo.dependencies import get_current_user, get_timer_registry
from focusgo.models.user import User
from focusgo.schemas.category import NO_CATEGORY
from focusgo.schemas.timer import (
    AutoStartUpdate,
    CategorySelect,
    DurationEdit,
    DurationEditResponse,
    Notice,
    TimerStatus,
)
from focusgo.services import category_service, timer_state_service
from focusgo.services.timer_registry import TimerRegistry, UserTimer

router = APIRouter(prefix="/timer", tags=["timer"])


async def _status(timer: UserTimer, db: AsyncSession, user: User) -> TimerStatus:
    await timer_state_service.save_state(db, user.id, timer.engine.snapshot())
    return TimerStatus(**timer.engine.status())


@router.get("", response_model=TimerStatus)
async def get_timer(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: TimerRegistry = Depends(get_timer_registry),
):
    timer = await registry.get(db, user.id)
    return TimerStatus(**timer.engine.status())


@router.post("/start", response_model=TimerStatus)
async def start_timer(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: TimerRegistry = Depends(get_timer_registry),
):
    timer = await registry.get(db, user.id)
    timer.engine.start()
    return await _status(timer, db, user)


@router.post("/pause", response_model=TimerStatus)
async def pause_timer(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: TimerRegistry = Depends(get_timer_registry),
):
    timer = await registry.get(db, user.id)
    timer.engine.pause()
    return await _status(timer, db, user)


@router.post("/toggle", response_model=TimerStatus)
async def toggle_timer(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: TimerRegistry = Depends(get_timer_registry),
):
    timer = await registry.get(db, user.id)
    timer.engine.toggle()
    return await _status(timer, db, user)


@router.post("/reset", response_model=TimerStatus)
async def reset_timer(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: TimerRegistry = Depends(get_timer_registry),
):
    timer = await registry.get(db, user.id)
    timer.engine.reset()
    return await _status(timer, db, user)


@router.post("/skip", response_model=TimerStatus)
async def skip_phase(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: TimerRegistry = Depends(get_timer_registry),
):
    timer = await registry.get(db, user.id)
    timer.engine.skip()
    return await _status(timer, db, user)


@router.put("/duration", response_model=DurationEditResponse)
async def edit_duration(
    data: DurationEdit,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: TimerRegistry = Depends(get_timer_registry),
):
    """Change the current phase length; rejected input leaves the timer unchanged."""
    timer = await registry.get(db, user.id)
    accepted = timer.engine.edit_duration(data.value)
    return DurationEditResponse(accepted=accepted, status=await _status(timer, db, user))


@router.put("/auto-start", response_model=TimerStatus)
async def set_auto_start(
    data: AutoStartUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: TimerRegistry = Depends(get_timer_registry),
):
    timer = await registry.get(db, user.id)
    timer.engine.set_auto_advance(data.enabled)
    await registry.preferences.set_auto_start(user.id, data.enabled)
    return TimerStatus(**timer.engine.status())


@router.put("/category", response_model=TimerStatus)
async def select_category(
    data: CategorySelect,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: TimerRegistry = Depends(get_timer_registry),
):
    """Select a category for the focus phase; selecting it again clears it."""
    timer = await registry.get(db, user.id)

    if data.category_id == NO_CATEGORY.id:
        category = NO_CATEGORY
    else:
        try:
            category_id = uuid.UUID(data.category_id)
        except ValueError:
            category_id = None
        found = await category_service.get_category(db, user.id, category_id) if category_id else None
        if found is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Category not found"
            )
        category = category_service.to_ref(found)

    selected = timer.engine.select_category(category)
    await registry.preferences.set_selected_category(user.id, selected.id)
    return await _status(timer, db, user)


@router.get("/notices", response_model=list[Notice])
async def get_notices(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    registry: TimerRegistry = Depends(get_timer_registry),
):
    """Notices raised since the last call (saves, failures, alarms)."""
    timer = await registry.get(db, user.id)
    return timer.notifications.drain()
