import logging

from celery import shared_task
from django.contrib.auth import get_user_model

from .mailer import Mailer

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=2, default_retry_delay=30)
def send_welcome_email(self, user_id, verification_token):
    User = get_user_model()
    try:
        user = User.objects.get(pk=user_id)
    except User.DoesNotExist:
        logger.error("[WelcomeEmailTask] User %s not found", user_id)
        return

    try:
        Mailer().send_welcome(user, verification_token)
    except Exception as exc:
        logger.exception("[WelcomeEmailTask] Sending to user %s failed: %s", user_id, exc)
        raise self.retry(exc=exc)


@shared_task(bind=True, max_retries=2, default_retry_delay=30)
def send_verification_email(self, user_id, verification_token):
    User = get_user_model()
    try:
        user = User.objects.get(pk=user_id)
    except User.DoesNotExist:
        logger.error("[VerificationEmailTask] User %s not found", user_id)
        return

    try:
        Mailer().send_verification(user, verification_token)
    except Exception as exc:
        logger.exception("[VerificationEmailTask] Sending to user %s failed: %s", user_id, exc)
        raise self.retry(exc=exc)
