import re
import time
from smtplib import SMTPException
from unittest import mock

from django.contrib.auth import get_user_model
from django.core import mail
from django.core.cache import cache
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase
from rest_framework_simplejwt.tokens import AccessToken

from accounts.authentication import EXPIRED_TOKEN_MESSAGE, INVALID_TOKEN_MESSAGE
from accounts.models import hash_token

PASSWORD = 'Str0ng!Pass'


def create_active_user(username='cook', email='cook@example.com', **extra):
    extra.setdefault('account_status', 'active')
    extra.setdefault('is_email_verified', True)
    return get_user_model().objects.create_user(
        username=username,
        email=email,
        password=PASSWORD,
        **extra,
    )


class RegistrationFlowTestCase(APITestCase):
    def setUp(self):
        cache.clear()

    def test_register_verify_then_login_grants_access(self):
        response = self.client.post(reverse('register'), {
            'username': 'new_cook',
            'email': 'New.Cook@Example.com',
            'password': PASSWORD,
            'passwordConfirm': PASSWORD,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['data']['user']['email'], 'new.cook@example.com')
        self.assertEqual(response.data['data']['user']['accountStatus'], 'pending')
        self.assertEqual(len(mail.outbox), 1)
        raw_token = re.search(r'/verify-email/([0-9a-f]{64})', mail.outbox[0].body).group(1)

        credentials = {'email': 'new.cook@example.com', 'password': PASSWORD}
        response = self.client.post(reverse('login'), credentials, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(
            response.data['error']['message'],
            'Please verify your email address before logging in',
        )

        user = get_user_model().objects.get(username='new_cook')
        self.assertNotEqual(user.email_verification_token, raw_token)
        response = self.client.get(reverse('verify_email', kwargs={'token': user.email_verification_token}))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(reverse('verify_email', kwargs={'token': raw_token}))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['user']['accountStatus'], 'active')

        response = self.client.post(reverse('login'), credentials, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        token = response.data['token']
        self.assertIn('jwt', response.cookies)
        self.assertTrue(response.cookies['jwt']['httponly'])

        self.client.cookies.clear()
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        response = self.client.get(reverse('user_profile'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['data']['user']['username'], 'new_cook')

    def test_registration_succeeds_when_welcome_email_cannot_be_queued(self):
        with mock.patch('accounts.views.send_welcome_email') as welcome_task:
            welcome_task.delay.side_effect = RuntimeError('broker unavailable')
            response = self.client.post(reverse('register'), {
                'username': 'offline_cook',
                'email': 'offline@example.com',
                'password': PASSWORD,
            }, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(get_user_model().objects.filter(username='offline_cook').exists())
        self.assertEqual(len(mail.outbox), 0)

    def test_resent_verification_token_is_stored_hashed(self):
        user = create_active_user(is_email_verified=False, account_status='pending')

        response = self.client.post(reverse('resend_verification'), {'email': 'cook@example.com'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        raw_token = re.search(r'/verify-email/([0-9a-f]{64})', mail.outbox[0].body).group(1)
        user.refresh_from_db()
        self.assertEqual(user.email_verification_token, hash_token(raw_token))

        response = self.client.get(reverse('verify_email', kwargs={'token': raw_token}))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_duplicate_registration_is_a_conflict(self):
        create_active_user(username='taken', email='taken@example.com')

        response = self.client.post(reverse('register'), {
            'username': 'Taken',
            'email': 'other@example.com',
            'password': PASSWORD,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertFalse(response.data['success'])

    def test_weak_password_is_rejected(self):
        response = self.client.post(reverse('register'), {
            'username': 'weakling',
            'email': 'weak@example.com',
            'password': 'password',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'validation_error')

    def test_expired_verification_token_is_rejected(self):
        response = self.client.get(reverse('verify_email', kwargs={'token': 'not-a-real-token'}))

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(
            response.data['error']['message'],
            'Email verification token is invalid or has expired',
        )


class LoginTestCase(APITestCase):
    def setUp(self):
        cache.clear()
        self.user = create_active_user()

    def test_wrong_password_counts_as_failed_attempt(self):
        response = self.client.post(reverse('login'), {
            'email': 'cook@example.com',
            'password': 'Wr0ng!Pass',
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error']['message'], 'Invalid email or password')
        self.user.refresh_from_db()
        self.assertEqual(self.user.login_attempts, 1)

    def test_locked_account_is_refused(self):
        for _ in range(5):
            self.user.register_failed_login()
        self.assertTrue(self.user.is_locked)

        response = self.client.post(reverse('login'), {
            'email': 'cook@example.com',
            'password': PASSWORD,
        }, format='json')

        self.assertEqual(response.status_code, 423)

    def test_suspended_account_is_forbidden(self):
        self.user.account_status = 'suspended'
        self.user.save()

        response = self.client.post(reverse('login'), {
            'email': 'cook@example.com',
            'password': PASSWORD,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_successful_login_resets_attempts(self):
        self.user.login_attempts = 3
        self.user.save()

        response = self.client.post(reverse('login'), {
            'email': 'COOK@example.com',
            'password': PASSWORD,
        }, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.login_attempts, 0)
        self.assertIsNotNone(self.user.last_login)

    def test_cookie_authenticates_and_logout_clears_it(self):
        self.client.post(reverse('login'), {'email': 'cook@example.com', 'password': PASSWORD}, format='json')

        response = self.client.get(reverse('me'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.post(reverse('logout'))
        self.assertEqual(response.cookies['jwt'].value, 'loggedout')

        response = self.client.get(reverse('me'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_auth_routes_are_rate_limited(self):
        for _ in range(5):
            response = self.client.post(reverse('forgot_password'), {
                'email': 'nobody@example.com',
            }, format='json')
            self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        response = self.client.post(reverse('forgot_password'), {'email': 'nobody@example.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)
        self.assertEqual(response.data['error']['code'], 'rate_limited')


class TokenValidationTestCase(APITestCase):
    def setUp(self):
        cache.clear()
        self.user = create_active_user()

    def authenticate_with(self, token):
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

    def test_missing_token_is_unauthenticated(self):
        response = self.client.get(reverse('me'))

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(
            response.data['error']['message'],
            'You are not logged in! Please log in to get access.',
        )

    def test_invalid_and_expired_tokens_have_distinct_messages(self):
        self.authenticate_with('not.a.token')
        response = self.client.get(reverse('me'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error']['message'], INVALID_TOKEN_MESSAGE)

        token = AccessToken.for_user(self.user)
        token['exp'] = int(time.time()) - 60
        self.authenticate_with(str(token))
        response = self.client.get(reverse('me'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error']['message'], EXPIRED_TOKEN_MESSAGE)

    def test_token_issued_before_password_change_is_rejected(self):
        old_token = AccessToken.for_user(self.user)
        old_token['iat'] = int(time.time()) - 300
        self.user.set_new_password('N3w!Password')
        self.user.save()

        self.authenticate_with(str(old_token))
        response = self.client.get(reverse('me'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(
            response.data['error']['message'],
            'User recently changed password! Please log in again.',
        )

        self.authenticate_with(str(AccessToken.for_user(self.user)))
        response = self.client.get(reverse('me'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_token_of_deleted_user_is_rejected(self):
        token = str(AccessToken.for_user(self.user))
        self.user.delete()

        self.authenticate_with(token)
        response = self.client.get(reverse('me'))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_token_of_suspended_user_is_forbidden(self):
        token = str(AccessToken.for_user(self.user))
        self.user.account_status = 'suspended'
        self.user.save()

        self.authenticate_with(token)
        response = self.client.get(reverse('me'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_refresh_token_issues_a_new_token(self):
        self.authenticate_with(str(AccessToken.for_user(self.user)))

        response = self.client.post(reverse('refresh_token'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('token', response.data)
        self.assertIn('jwt', response.cookies)


class PasswordManagementTestCase(APITestCase):
    def setUp(self):
        cache.clear()
        self.user = create_active_user()

    def test_forgot_then_reset_password(self):
        response = self.client.post(reverse('forgot_password'), {'email': 'cook@example.com'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 1)
        raw_token = re.search(r'/reset-password/([0-9a-f]{64})', mail.outbox[0].body).group(1)

        self.user.refresh_from_db()
        self.assertNotEqual(self.user.password_reset_token, raw_token)

        response = self.client.patch(reverse('reset_password', kwargs={'token': raw_token}), {
            'password': 'N3w!Password',
            'passwordConfirm': 'N3w!Password',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('token', response.data)

        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('N3w!Password'))
        self.assertEqual(self.user.password_reset_token, '')

    def test_reset_token_is_cleared_when_email_fails(self):
        with mock.patch('accounts.views.Mailer.send_password_reset', side_effect=SMTPException('down')):
            response = self.client.post(reverse('forgot_password'), {'email': 'cook@example.com'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(
            response.data['error']['message'],
            'There was an error sending the email. Try again later!',
        )
        self.user.refresh_from_db()
        self.assertEqual(self.user.password_reset_token, '')
        self.assertIsNone(self.user.password_reset_expires)

    def test_update_password_requires_current_password(self):
        self.client.force_authenticate(self.user)

        response = self.client.patch(reverse('update_password'), {
            'passwordCurrent': 'Wr0ng!Pass',
            'password': 'N3w!Password',
            'passwordConfirm': 'N3w!Password',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error']['message'], 'Your current password is wrong')

        response = self.client.patch(reverse('update_password'), {
            'passwordCurrent': PASSWORD,
            'password': 'N3w!Password',
            'passwordConfirm': 'N3w!Password',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertIsNotNone(self.user.password_changed_at)
