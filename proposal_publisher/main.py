import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request

from proposal_publisher.config.settings import Settings
from proposal_publisher.data_models.schemas import RunSummary
from proposal_publisher.exceptions import SeenStoreError, SourceUnavailableError
from proposal_publisher.services.run_controller import create_controller, run_forever
from proposal_publisher.utils.logger import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = getattr(app.state, "settings", None) or Settings.from_env()
    app.state.settings = settings
    logger.info("Proposal publisher starting up...")

    async with create_controller(settings, transport=getattr(app.state, "transport", None)) as controller:
        app.state.controller = controller

        poller: Optional[asyncio.Task] = None
        stop_event = asyncio.Event()
        if settings.poll_on_startup:
            poller = asyncio.create_task(run_forever(controller, settings.poll_interval_seconds, stop_event))
            logger.info("✅ Background polling enabled")
        else:
            logger.info("⚠️  Background polling disabled (POLL_ON_STARTUP not set), use POST /check")

        try:
            yield
        finally:
            if poller:
                stop_event.set()
                await poller


app = FastAPI(title="Proposal Publisher", version="0.1.0", lifespan=lifespan)


def require_check_token(request: Request, authorization: Optional[str] = Header(None)) -> None:
    """Enforce CHECK_TOKEN as a bearer token when it is configured."""
    expected = request.app.state.settings.check_token
    if not expected:
        return
    if authorization != f"Bearer {expected}":
        raise HTTPException(status_code=401, detail="Invalid or missing check token")


@app.get("/healthz")
def healthz(request: Request) -> dict:
    controller = request.app.state.controller
    return {"status": "ok", "seen_store": controller.seen_store.backend}


@app.post("/check", response_model=RunSummary, dependencies=[Depends(require_check_token)])
async def check(request: Request) -> RunSummary:
    """Run one proposal check now."""
    try:
        return await request.app.state.controller.check()
    except (SourceUnavailableError, SeenStoreError) as e:
        raise HTTPException(status_code=e.code, detail=e.to_dict())
