import asyncio
import logging
import time
from typing import List

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse

from .dispatcher import ReportDispatcher
from .mqtt_handler import start_mqtt
from .registry import DeviceRegistry
from .schemas import DeviceOut, DeviceReport, ReportAccepted
from .settings import settings

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger(__name__)

app = FastAPI(title="HA Agent Hook", version="1.0.0")

@app.on_event("startup")
async def on_startup():
    app.state.registry = DeviceRegistry()
    try:
        app.state.publisher = start_mqtt(settings)
    except Exception as e:
        log.error("[MQTT] failed to start: %s", e)
        app.state.publisher = None
    app.state.dispatcher = (
        ReportDispatcher(app.state.registry, app.state.publisher, settings)
        if app.state.publisher is not None else None
    )
    app.state.sweeper = asyncio.create_task(liveness_sweeper())
    log.info("HA-Agent Hook ready, timeout=%ss discovery_interval=%ss",
             settings.liveness_timeout_seconds, settings.discovery_interval_seconds)

@app.on_event("shutdown")
async def on_shutdown():
    sweeper = getattr(app.state, "sweeper", None)
    if sweeper:
        sweeper.cancel()
        try:
            await sweeper
        except asyncio.CancelledError:
            pass
    publisher = getattr(app.state, "publisher", None)
    if publisher:
        publisher.stop()

async def liveness_sweeper():
    while True:
        await asyncio.sleep(settings.liveness_timeout_seconds)
        dispatcher = getattr(app.state, "dispatcher", None)
        if dispatcher is None:
            continue
        try:
            await asyncio.to_thread(dispatcher.sweep)
        except Exception:
            log.exception("liveness sweep failed")

@app.exception_handler(RequestValidationError)
async def invalid_report(request: Request, exc: RequestValidationError):
    log.warning("Invalid data received on %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=400,
        content={"detail": "invalid report, device_id missing or malformed JSON"},
    )

@app.get("/", response_class=PlainTextResponse)
def root():
    return "HA-Agent Hook is running."

@app.post("/ha-agent", response_model=ReportAccepted)
def post_report(report: DeviceReport, request: Request):
    dispatcher: ReportDispatcher | None = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        raise HTTPException(status_code=503, detail="MQTT not initialized")
    outcome = dispatcher.dispatch(report)
    log.info("Report from %s (%s) published: %s",
             outcome.device_id, outcome.kind.value, ",".join(outcome.published))
    return ReportAccepted(device_id=outcome.device_id, kind=outcome.kind.value,
                          published=outcome.published)

@app.get("/api/devices", response_model=List[DeviceOut])
def list_devices(request: Request):
    registry: DeviceRegistry = request.app.state.registry
    dispatcher = getattr(request.app.state, "dispatcher", None)
    clock = dispatcher.clock if dispatcher is not None else time.monotonic
    # registry times are monotonic; shift them onto the wall clock for display
    offset = time.time() - clock()
    rows = sorted(registry.snapshot(), key=lambda r: r.last_seen, reverse=True)
    return [
        DeviceOut(device_id=r.device_id, status=r.status.value, last_seen=r.last_seen + offset,
                  last_discovery=r.last_discovery + offset if r.announced else None)
        for r in rows
    ]

if __name__ == "__main__":  # pragma: no cover
    import uvicorn

    uvicorn.run(app, host=settings.http_host, port=settings.http_port)
