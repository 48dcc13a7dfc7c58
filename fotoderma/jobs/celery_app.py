from __future__ import annotations

from celery import Celery

from fotoderma.core.config import settings

celery_app = Celery(
    "fotoderma",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["fotoderma.jobs.tasks"],
)

celery_app.conf.timezone = settings.timezone
celery_app.conf.broker_connection_retry_on_startup = True
