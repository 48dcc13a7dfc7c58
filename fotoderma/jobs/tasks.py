from __future__ import annotations

import logging
from typing import Any, Sequence

from celery.utils.log import get_task_logger
from kombu.exceptions import OperationalError

from fotoderma.jobs.celery_app import celery_app
from fotoderma.services.consultations import remove_photo_objects
from fotoderma.services.object_store import build_object_store

logger = get_task_logger(__name__)
_api_logger = logging.getLogger(__name__)


@celery_app.task(name="fotoderma.purge_photo_objects")
def purge_photo_objects(file_names: list[str]) -> dict[str, Any]:
    """Remove blobs left behind by a patient cascade delete."""

    removed = remove_photo_objects(build_object_store(), file_names)
    failed = len(file_names) - removed
    if failed:
        logger.warning("Purged %s photo objects, %s failed", removed, failed)
    else:
        logger.info("Purged %s photo objects", removed)
    return {"removed": removed, "failed": failed}


def schedule_photo_purge(file_names: Sequence[str]) -> bool:
    """Queue blob cleanup; a broker outage is logged, never raised."""

    if not file_names:
        return False
    try:
        purge_photo_objects.delay(list(file_names))
    except OperationalError:
        _api_logger.warning(
            "photo purge could not be queued", extra={"count": len(file_names)}, exc_info=True
        )
        return False
    return True
