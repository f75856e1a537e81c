from celery import Celery
from celery.signals import setup_logging

from videogen.config import settings
from videogen.logging_config import configure_logging


celery_app = Celery(
    "videogen",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["videogen.tasks"],
)

celery_app.conf.update(
    task_default_queue="default",
    task_track_started=True,
    timezone="UTC",
    enable_utc=True,
)


@setup_logging.connect
def _configure_worker_logging(**_kwargs) -> None:
    configure_logging(settings.log_level)
