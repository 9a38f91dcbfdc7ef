from fastapi import APIRouter, Depends, HTTPException

from stockpost.api.deps import get_context
from stockpost.core.context import RuntimeContext
from stockpost.schemas.health import TriggerOut


router = APIRouter()


@router.post("/cycles:trigger", response_model=TriggerOut)
async def trigger_cycle(ctx: RuntimeContext = Depends(get_context)):
    if ctx.scheduler.busy:
        raise HTTPException(status_code=409, detail="A cycle is already in flight")

    outcome = await ctx.scheduler.trigger()
    if outcome is None:
        # lost the race to a scheduled fire, or the cycle crashed (logged)
        return TriggerOut(started=False)
    return TriggerOut(started=True, outcome=outcome.summary())
