"""Celery application configuration"""

from celery import Celery
from kombu import Exchange, Queue
from storefront.core.config import settings

# Create Celery app
celery_app = Celery(
    "storefront",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "storefront.tasks.cleanup_tasks",
        "storefront.tasks.email_tasks",
    ]
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.CELERY_TIMEZONE,
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutes
    task_soft_time_limit=25 * 60,  # 25 minutes
    task_acks_late=True,
    worker_prefetch_multiplier=1,

    # Task routing
    task_routes={
        "expire_abandoned_orders": {"queue": "cleanup"},
        "send_order_email": {"queue": "emails"}
    },

    # Retry configuration
    task_default_retry_delay=60,  # 1 minute
    task_max_retries=3,

    result_expires=3600,  # 1 hour
)

# Define queues
celery_app.conf.task_queues = (
    Queue("default", Exchange("default"), routing_key="default"),
    Queue("cleanup", Exchange("cleanup"), routing_key="cleanup"),
    Queue("emails", Exchange("emails"), routing_key="emails"),
)

# Beat schedule for periodic tasks
celery_app.conf.beat_schedule = {
    "expire-abandoned-orders": {
        "task": "expire_abandoned_orders",
        "schedule": 60 * 60 * 24,  # Daily
        "options": {"queue": "cleanup"}
    },
}
