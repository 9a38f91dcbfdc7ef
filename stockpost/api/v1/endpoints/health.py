from fastapi import APIRouter, Depends

from stockpost.api.deps import get_context
from stockpost.core.context import RuntimeContext
from stockpost.core.errors import PersistenceError
from stockpost.schemas.health import HealthOut


router = APIRouter()


@router.get("/health", response_model=HealthOut)
async def health(ctx: RuntimeContext = Depends(get_context)):
    sched = ctx.scheduler
    feed = ctx.settings.feed_name

    status = "ok"
    try:
        fingerprint = await ctx.store.aload(feed)
    except PersistenceError:
        fingerprint = None
        status = "degraded"

    return HealthOut(
        status=status,
        feed=feed,
        scheduler_state=sched.state.value,
        schedule_mode=sched.mode,
        next_fire_at=sched.next_fire_at,
        cycles_run=sched.cycles_run,
        cycle_in_flight=sched.busy,
        last_fingerprint=fingerprint or None,
        last_cycle=sched.last_outcome.summary() if sched.last_outcome else None,
    )
