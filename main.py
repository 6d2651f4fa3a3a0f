import datetime
import logging

from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import AwareDatetime, BaseModel, constr
from redis.asyncio import Redis

from app.celery_app import celery_app
from app.errors import QueueUnavailableError
from app.metrics import export_registry
from app.services.delay_queue import CeleryDelayQueue
from app.services.scheduler import ReminderScheduler
from app.utils.logging import configure_logging
from config import settings

_LOGGER = logging.getLogger(__name__)

app = FastAPI()

# Redis client is created on startup and closed on shutdown

@app.on_event("startup")
async def startup_event():
    configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT, settings.SERVICE_NAME)
    app.state.redis = Redis.from_url(settings.REDIS_URL)

@app.on_event("shutdown")
async def shutdown_event():
    redis = getattr(app.state, "redis", None)
    if redis is not None:
        await redis.aclose()


def get_scheduler(request: Request) -> ReminderScheduler:
    queue = CeleryDelayQueue(
        celery_app,
        request.app.state.redis,
        grace_seconds=settings.REMINDER_DEDUP_GRACE_SECONDS,
    )
    return ReminderScheduler(queue, lead=datetime.timedelta(hours=settings.REMINDER_LEAD_HOURS))


NonBlank = constr(strip_whitespace=True, min_length=1)


class ScheduleReminderRequest(BaseModel):
    appointment_id: NonBlank
    appointment_date: AwareDatetime
    tenant_id: NonBlank

# --------------------------------------------
# Endpoints
# --------------------------------------------
@app.post("/v1/appointments/reminders", status_code=status.HTTP_202_ACCEPTED)
async def schedule_reminder(
    body: ScheduleReminderRequest,
    scheduler: ReminderScheduler = Depends(get_scheduler),
):
    try:
        result = await scheduler.schedule(body.appointment_id, body.appointment_date, body.tenant_id)
    except QueueUnavailableError as exc:
        _LOGGER.error("Reminder queue unavailable", extra={"appointment_id": body.appointment_id, "error": str(exc)})
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Reminder queue unavailable")
    return {
        "appointment_id": result.job.appointment_id,
        "tenant_id": result.job.tenant_id,
        "reminder_time": result.job.target_fire_time,
        "dedup_key": result.dedup_key,
        "job_id": result.job_id,
        "delay_seconds": result.delay_seconds,
        "queued": result.queued,
    }


@app.get("/metrics")
def metrics() -> Response:
    return Response(generate_latest(export_registry()), media_type=CONTENT_TYPE_LATEST)


@app.get("/healthz", response_class=PlainTextResponse)
def healthz():
    return PlainTextResponse("OK")
