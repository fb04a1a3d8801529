"""
Chaîne d'authentification JWT.

Le jeton est lu dans l'en-tête ``Authorization: Bearer`` ou, à défaut, dans le cookie ``jwt``.
Chaque requête revérifie signature, expiration, existence de l'utilisateur, état du compte
et date de changement du mot de passe.
"""
import logging

import jwt
from django.conf import settings
from django.contrib.auth import get_user_model
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import AccessToken

from culinary_api.exceptions import AccountLocked, PermissionDeniedError

logger = logging.getLogger(__name__)

INVALID_TOKEN_MESSAGE = 'Invalid token. Please log in again!'
EXPIRED_TOKEN_MESSAGE = 'Your token has expired! Please log in again.'
LOGGED_OUT_COOKIE_VALUE = 'loggedout'


def issue_token(user) -> str:
    """Jeton d'accès signé ne portant que l'identifiant de l'utilisateur"""
    return str(AccessToken.for_user(user))


def set_token_cookie(response, token):
    response.set_cookie(
        settings.JWT_COOKIE_NAME,
        token,
        max_age=int(api_settings.ACCESS_TOKEN_LIFETIME.total_seconds()),
        httponly=True,
        samesite='Strict',
        secure=settings.IS_PRODUCTION,
    )
    return response


def clear_token_cookie(response):
    response.set_cookie(
        settings.JWT_COOKIE_NAME,
        LOGGED_OUT_COOKIE_VALUE,
        max_age=10,
        httponly=True,
        samesite='Strict',
        secure=settings.IS_PRODUCTION,
    )
    return response


def decode_token(raw_token) -> dict:
    try:
        payload = jwt.decode(
            raw_token,
            api_settings.SIGNING_KEY,
            algorithms=[api_settings.ALGORITHM],
            audience=api_settings.AUDIENCE,
            issuer=api_settings.ISSUER,
            leeway=api_settings.LEEWAY,
            options={'require': ['exp']},
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationFailed(EXPIRED_TOKEN_MESSAGE, code='token_expired')
    except jwt.InvalidTokenError:
        raise AuthenticationFailed(INVALID_TOKEN_MESSAGE, code='token_not_valid')

    token_type = payload.get(api_settings.TOKEN_TYPE_CLAIM)
    if token_type is not None and token_type != AccessToken.token_type:
        raise AuthenticationFailed(INVALID_TOKEN_MESSAGE, code='token_not_valid')
    return payload


class CookieJWTAuthentication(JWTAuthentication):
    """JWTAuthentication de simplejwt, étendu au cookie et aux contrôles de compte"""

    def authenticate(self, request):
        raw_token = None
        header = self.get_header(request)
        if header is not None:
            raw_token = self.get_raw_token(header)
        if raw_token is None:
            raw_token = request.COOKIES.get(settings.JWT_COOKIE_NAME)
            if not raw_token or raw_token == LOGGED_OUT_COOKIE_VALUE:
                return None

        payload = self.get_validated_token(raw_token)
        return self.get_user(payload), payload

    def get_validated_token(self, raw_token):
        return decode_token(raw_token)

    def get_user(self, validated_token):
        User = get_user_model()
        user_id = validated_token.get(api_settings.USER_ID_CLAIM)
        try:
            user = User.objects.get(**{api_settings.USER_ID_FIELD: user_id})
        except (User.DoesNotExist, ValueError, TypeError):
            raise AuthenticationFailed(
                'The user belonging to this token no longer exists.', code='user_not_found'
            )

        if user.account_status != User.STATUS_ACTIVE:
            logger.info("[Auth] Rejected token for user %s (status=%s)", user.id, user.account_status)
            raise PermissionDeniedError(
                'Your account is not active. Please contact support.', code='account_inactive'
            )
        if user.is_locked:
            raise AccountLocked()
        if user.changed_password_after(validated_token.get('iat')):
            raise AuthenticationFailed(
                'User recently changed password! Please log in again.', code='password_changed'
            )
        return user


class OptionalCookieJWTAuthentication(CookieJWTAuthentication):
    """Routes publiques : un jeton invalide, expiré ou refusé vaut un visiteur anonyme"""

    def authenticate(self, request):
        try:
            return super().authenticate(request)
        except (AuthenticationFailed, PermissionDeniedError, AccountLocked) as exc:
            logger.debug("[Auth] Ignoring rejected token on public route: %s", exc.detail)
            return None
