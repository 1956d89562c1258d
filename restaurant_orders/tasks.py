"""
Celery Tasks
Background report generation.
"""

import time
from datetime import datetime, timezone

from restaurant_orders.celery_worker import celery_app
from restaurant_orders.core.config import get_logger
from restaurant_orders.services import get_report_exporter

logger = get_logger(__name__)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(OSError,),
    retry_backoff=True
)
def export_orders_report(self, restaurant_id: int, orders: list[dict]) -> dict:
    """
    Write a restaurant's orders report.

    Args:
        restaurant_id: Restaurant the orders belong to
        orders: Order projections in JSON form

    Returns:
        dict: Export result plus task id and timing
    """
    task_id = self.request.id
    logger.info(f"Task {task_id}: exporting {len(orders)} orders of restaurant #{restaurant_id}")
    start_time = time.time()

    result = get_report_exporter().export_orders(restaurant_id, orders)

    elapsed = round(time.time() - start_time, 3)
    result['task_id'] = task_id
    result['processing_time_seconds'] = elapsed

    if result['success']:
        logger.info(f"Task {task_id}: report for restaurant #{restaurant_id} done in {elapsed}s")
    else:
        logger.warning(f"Task {task_id}: report for restaurant #{restaurant_id} failed - {result['message']}")

    return result


@celery_app.task
def health_check() -> dict:
    return {
        'status': 'healthy',
        'worker': 'celery',
        'timestamp': datetime.now(timezone.utc).isoformat()
    }
