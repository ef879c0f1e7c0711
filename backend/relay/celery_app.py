from relay.core.config import get_settings
from relay.core.logging import configure_logging, install_exception_hooks
from celery import Celery
from celery.signals import setup_logging

settings = get_settings()

celery = Celery(
    "relay",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

# Import tasks
celery.conf.imports = ["relay.tasks"]

# Set task routes
celery.conf.task_routes = {"relay.tasks.process_webhook": {"queue": "webhooks"}}

celery.conf.task_serializer = "json"
celery.conf.accept_content = ["json"]
celery.conf.task_ignore_result = True


@setup_logging.connect
def _configure_worker_logging(**kwargs):
    configure_logging(get_settings())
    install_exception_hooks()
