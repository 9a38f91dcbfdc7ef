import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, HTTPException
from fastapi.responses import FileResponse, RedirectResponse

from stockpost.api.v1.router import router as v1_router
from stockpost.core.config import Settings, settings as default_settings
from stockpost.core.context import RuntimeContext, build_context
from stockpost.core.telemetry import setup_telemetry


log = logging.getLogger(__name__)


def create_app(
    *,
    settings: Settings | None = None,
    context: RuntimeContext | None = None,
    start_scheduler: bool = True,
) -> FastAPI:
    settings = settings or (context.settings if context else default_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.ctx is None
        if owned:
            app.state.ctx = build_context(settings)
        if start_scheduler:
            app.state.ctx.scheduler.start()
        log.info("server: running on port %s", settings.port)
        try:
            yield
        finally:
            if owned:
                await app.state.ctx.aclose()
                app.state.ctx = None
            else:
                await app.state.ctx.scheduler.stop()

    app = FastAPI(title="Stock Poster", version="1.0.1", lifespan=lifespan)
    app.state.ctx = context

    setup_telemetry(settings, app)
    app.include_router(v1_router)

    docs_dir = Path(settings.docs_dir)

    @app.get("/", include_in_schema=False)
    async def root():
        return RedirectResponse(url="/doc")

    @app.get("/doc", include_in_schema=False)
    async def doc():
        page = docs_dir / "doc.html"
        if not page.is_file():
            raise HTTPException(status_code=404, detail="doc.html not found")
        return FileResponse(page)

    return app


app = create_app()
