from datetime import timedelta
from unittest.mock import patch

from django.core.cache import cache
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase
from rest_framework_simplejwt.tokens import AccessToken

from client_profile.models import ClientProfile
from common.choices import ActiveStatus
from users.models import User
from users.throttles import LoginRateThrottle


class AdminAuthTestCase(APITestCase):

    def setUp(self):
        cache.clear()
        self.admin = User.objects.create_user(
            username='boss',
            password='StrongPass123',
            full_name='Clinic Boss',
            is_staff=True,
        )

    # ================= Register =================
    def test_first_admin_can_register_without_authentication(self):
        User.objects.all().delete()
        response = self.client.post(
            reverse('admin-register'),
            {'username': 'founder', 'password': 'StrongPass123'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(User.objects.get(username='founder').is_staff)
        self.assertIn('access', response.data)

    def test_register_requires_staff_once_an_admin_exists(self):
        response = self.client.post(
            reverse('admin-register'),
            {'username': 'intruder', 'password': 'StrongPass123'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_register_duplicate_username(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            reverse('admin-register'),
            {'username': 'boss', 'password': 'StrongPass123'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('username', response.data)

    # ================= Login JWT =================
    def test_login_returns_one_hour_access_token(self):
        response = self.client.post(
            reverse('admin-login'),
            {'username': 'boss', 'password': 'StrongPass123'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        token = AccessToken(response.data['access'])
        self.assertEqual(token['role'], 'admin')
        self.assertAlmostEqual(token['exp'] - token['iat'], timedelta(hours=1).total_seconds(), delta=2)
        self.assertEqual(response.data['user']['username'], 'boss')

    def test_login_with_wrong_password(self):
        response = self.client.post(
            reverse('admin-login'),
            {'username': 'boss', 'password': 'wrong'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_non_staff_cannot_use_admin_login(self):
        User.objects.create_user(username='someone', password='StrongPass123')
        response = self.client.post(
            reverse('admin-login'),
            {'username': 'someone', 'password': 'StrongPass123'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    # ================= Profile =================
    def test_profile_update_and_password_change(self):
        self.client.force_authenticate(self.admin)
        response = self.client.put(
            reverse('admin-profile'),
            {
                'full_name': 'New Name',
                'current_password': 'StrongPass123',
                'new_password': 'NewStrongPass456',
            },
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.admin.refresh_from_db()
        self.assertEqual(self.admin.full_name, 'New Name')
        self.assertTrue(self.admin.check_password('NewStrongPass456'))

    def test_profile_wrong_current_password(self):
        self.client.force_authenticate(self.admin)
        response = self.client.put(
            reverse('admin-profile'),
            {'current_password': 'nope', 'new_password': 'NewStrongPass456'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('current_password', response.data)

    def test_profile_rejects_taken_username(self):
        User.objects.create_user(username='other', password='x' * 8, is_staff=True)
        self.client.force_authenticate(self.admin)
        response = self.client.put(reverse('admin-profile'), {'username': 'other'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_profile_empty_body(self):
        self.client.force_authenticate(self.admin)
        response = self.client.put(reverse('admin-profile'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ClientAuthTestCase(APITestCase):

    def setUp(self):
        cache.clear()

    def _register(self, email='jane@example.com'):
        return self.client.post(
            reverse('client-register'),
            {'email': email, 'full_name': 'Jane Doe', 'password': 'StrongPass123'},
            format='json',
        )

    def test_register_creates_user_and_profile(self):
        response = self._register()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        user = User.objects.get(email='jane@example.com')
        self.assertEqual(user.username, 'jane@example.com')
        self.assertFalse(user.is_staff)
        self.assertTrue(ClientProfile.objects.filter(user=user).exists())
        self.assertEqual(AccessToken(response.data['access'])['role'], 'client')

    def test_register_duplicate_email(self):
        self._register()
        response = self._register()
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_login_returns_24_hour_access_token(self):
        self._register()
        response = self.client.post(
            reverse('client-login'),
            {'email': 'jane@example.com', 'password': 'StrongPass123'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        token = AccessToken(response.data['access'])
        self.assertAlmostEqual(token['exp'] - token['iat'], timedelta(hours=24).total_seconds(), delta=2)
        self.assertEqual(response.data['user']['email'], 'jane@example.com')

    def test_login_invalid_credentials(self):
        self._register()
        response = self.client.post(
            reverse('client-login'),
            {'email': 'jane@example.com', 'password': 'bad-password'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_inactive_client_cannot_login(self):
        self._register()
        ClientProfile.objects.update(status=ActiveStatus.INACTIVE)
        response = self.client.post(
            reverse('client-login'),
            {'email': 'jane@example.com', 'password': 'StrongPass123'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_client_profile_update(self):
        self._register()
        user = User.objects.get(email='jane@example.com')
        self.client.force_authenticate(user)
        response = self.client.put(
            reverse('client-profile'),
            {'full_name': 'Jane Smith', 'phone': '0900000000', 'gender': 'female', 'birth_date': '1990-05-01'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertEqual(user.full_name, 'Jane Smith')
        self.assertEqual(user.phone_number, '0900000000')
        self.assertEqual(str(user.client_profile.birth_date), '1990-05-01')

    def test_client_password_change_requires_correct_current_password(self):
        self._register()
        user = User.objects.get(email='jane@example.com')
        self.client.force_authenticate(user)
        response = self.client.put(
            reverse('client-profile'),
            {'current_password': 'wrong', 'new_password': 'AnotherPass789'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.put(
            reverse('client-profile'),
            {'current_password': 'StrongPass123', 'new_password': 'AnotherPass789'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertTrue(user.check_password('AnotherPass789'))

    def test_admin_cannot_use_client_profile(self):
        admin = User.objects.create_user(username='boss', password='StrongPass123', is_staff=True)
        self.client.force_authenticate(admin)
        response = self.client.get(reverse('client-profile'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class LogoutTestCase(APITestCase):

    def setUp(self):
        cache.clear()
        self.user = User.objects.create_user(username='boss', password='StrongPass123', is_staff=True)

    def test_logout_blacklists_refresh_token(self):
        login = self.client.post(
            reverse('admin-login'),
            {'username': 'boss', 'password': 'StrongPass123'},
            format='json',
        )
        refresh = login.data['refresh']
        self.client.force_authenticate(self.user)

        response = self.client.post(reverse('logout'), {'refresh': refresh}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.client.force_authenticate(None)
        response = self.client.post(reverse('token-refresh'), {'refresh': refresh}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_logout_with_garbage_token(self):
        self.client.force_authenticate(self.user)
        response = self.client.post(reverse('logout'), {'refresh': 'not-a-token'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class LoginThrottleTestCase(APITestCase):

    def setUp(self):
        cache.clear()

    @patch.object(LoginRateThrottle, 'THROTTLE_RATES', {'login': '2/min'})
    def test_repeated_failed_logins_are_throttled(self):
        for _ in range(2):
            response = self.client.post(
                reverse('admin-login'),
                {'username': 'ghost', 'password': 'bad'},
                format='json',
            )
            self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

        response = self.client.post(
            reverse('admin-login'),
            {'username': 'ghost', 'password': 'bad'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_429_TOO_MANY_REQUESTS)

        # a different account from the same address is keyed separately
        response = self.client.post(
            reverse('admin-login'),
            {'username': 'someone-else', 'password': 'bad'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
