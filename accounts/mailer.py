import logging

from django.conf import settings
from django.core.mail import EmailMultiAlternatives, get_connection
from django.template.loader import render_to_string

logger = logging.getLogger(__name__)


class Mailer:
    """
    Envoi des emails transactionnels (bienvenue/vérification, réinitialisation du mot de passe).
    Instancié à la demande : l'appelant peut injecter une connexion ou une URL client.
    """

    def __init__(self, connection=None, from_email=None, client_url=None):
        self.connection = connection or get_connection()
        self.from_email = from_email or settings.DEFAULT_FROM_EMAIL
        self.client_url = (client_url or settings.CLIENT_URL).rstrip('/')

    def send(self, to, subject, template, context):
        context = {'client_url': self.client_url, **context}
        text_body = render_to_string(f'emails/{template}.txt', context)
        html_body = render_to_string(f'emails/{template}.html', context)
        message = EmailMultiAlternatives(
            subject=subject,
            body=text_body,
            from_email=self.from_email,
            to=[to],
            connection=self.connection,
        )
        message.attach_alternative(html_body, 'text/html')
        message.send()
        logger.info("[Mailer] Sent '%s' to %s", template, to)

    def send_welcome(self, user, verification_token):
        self.send(
            user.email,
            'Welcome to the Culinary Platform! Please verify your email',
            'welcome',
            {
                'name': user.first_name or user.username,
                'verification_url': f'{self.client_url}/verify-email/{verification_token}',
            },
        )

    def send_verification(self, user, verification_token):
        self.send(
            user.email,
            'Verify your email address',
            'verification',
            {
                'name': user.first_name or user.username,
                'verification_url': f'{self.client_url}/verify-email/{verification_token}',
            },
        )

    def send_password_reset(self, user, reset_token):
        self.send(
            user.email,
            'Your password reset token (valid for 10 minutes)',
            'password_reset',
            {
                'name': user.first_name or user.username,
                'reset_url': f'{self.client_url}/reset-password/{reset_token}',
            },
        )
