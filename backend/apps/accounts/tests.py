# apps/accounts/tests.py
from django.test import TestCase, RequestFactory
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser

from apps.accounts.permissions import IsDriver
from apps.drivers.models import DriverProfile

User = get_user_model()

class AccountManagerTestCase(TestCase):
    def test_create_user_manager(self):
        user = User.objects.create_user(phone=" +919999999999 ", password="password123")
        self.assertEqual(user.phone, "+919999999999")
        self.assertTrue(user.check_password("password123"))
        self.assertFalse(user.is_staff)

    def test_user_without_password_cannot_login(self):
        user = User.objects.create_user(phone="+919999999911")
        self.assertFalse(user.has_usable_password())

    def test_create_superuser(self):
        admin = User.objects.create_superuser(phone="+919999999900", password="adminpass")
        self.assertTrue(admin.is_staff)
        self.assertTrue(admin.is_superuser)

    def test_phone_required(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(phone=None, password="pass")


class IsDriverPermissionTestCase(TestCase):
    def setUp(self):
        self.factory = RequestFactory()

    def _check(self, user):
        request = self.factory.get("/")
        request.user = user
        return IsDriver().has_permission(request, None)

    def test_anonymous_rejected(self):
        self.assertFalse(self._check(AnonymousUser()))

    def test_customer_rejected(self):
        self.assertFalse(self._check(User.objects.create_user(phone="+911")))

    def test_driver_allowed(self):
        user = User.objects.create_user(phone="+912")
        DriverProfile.objects.create(user=user, uid="drv-2")
        self.assertTrue(self._check(user))
