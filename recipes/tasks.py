import logging

from celery import shared_task

from .services.hierarchy import recompute_all_recipe_counts

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=2, default_retry_delay=30)
def recount_category_recipes(self):
    """Réconciliation périodique des compteurs de recettes des catégories"""
    logger.info("[RecountCategoriesTask] Starting")
    try:
        updated = recompute_all_recipe_counts()
    except Exception as exc:
        logger.exception("[RecountCategoriesTask] Failed: %s", exc)
        raise self.retry(exc=exc)
    logger.info("[RecountCategoriesTask] Updated %d categories", updated)
    return updated
