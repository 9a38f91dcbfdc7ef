from fastapi import HTTPException, Request

from stockpost.core.context import RuntimeContext


def get_context(request: Request) -> RuntimeContext:
    ctx = getattr(request.app.state, "ctx", None)
    if ctx is None:
        raise HTTPException(status_code=503, detail="Poster not started")
    return ctx
