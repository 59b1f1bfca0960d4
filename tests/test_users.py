import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from billing.services import AuthService
from tests.factories import DEFAULT_PASSWORD, CompanyFactory, InvoiceFactory, UserFactory

User = get_user_model()


@pytest.fixture
def staff_client(db):
    staff = UserFactory(is_staff=True)
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {AuthService.issue_tokens(staff)['token']}")
    return client


@pytest.mark.django_db
class TestUserAdministration:
    def test_staff_lists_users(self, staff_client, user):
        response = staff_client.get("/api/users", {"search": user.email})

        assert response.status_code == 200
        body = response.json()
        assert body["meta"]["pagination"]["total"] == 1
        assert body["data"][0]["email"] == user.email
        assert "password" not in body["data"][0]

    def test_regular_user_cannot_list(self, api_client):
        response = api_client.get("/api/users")

        assert response.status_code == 403
        assert response.json()["error"] == "PERMISSION_DENIED"

    def test_user_reads_own_account(self, api_client, user):
        response = api_client.get(f"/api/users/{user.pk}")

        assert response.status_code == 200
        assert response.json()["data"]["id"] == user.pk

    def test_user_cannot_read_other_account(self, api_client):
        other = UserFactory()
        assert api_client.get(f"/api/users/{other.pk}").status_code == 403

    def test_update_email_and_name(self, api_client, user):
        response = api_client.put(f"/api/users/{user.pk}", {"email": "New.Address@Example.com", "name": "Grace"})

        assert response.status_code == 200
        user.refresh_from_db()
        assert user.email == "new.address@example.com"
        assert user.username == "new.address@example.com"
        assert user.first_name == "Grace"

    def test_login_with_changed_email(self, api_client, anon_client, user):
        api_client.patch(f"/api/users/{user.pk}", {"email": "moved@example.com"})

        response = anon_client.post(
            "/api/auth/login", {"email": "moved@example.com", "password": DEFAULT_PASSWORD}
        )
        assert response.status_code == 200

    def test_email_taken(self, staff_client, user):
        other = UserFactory()
        response = staff_client.patch(f"/api/users/{user.pk}", {"email": other.email.upper()})

        assert response.status_code == 409
        assert response.json()["error"] == "USER_EXISTS"

    def test_short_name_rejected(self, api_client, user):
        response = api_client.patch(f"/api/users/{user.pk}", {"name": "X"})
        assert response.status_code == 400

    def test_staff_deletes_user(self, staff_client):
        doomed = UserFactory()
        CompanyFactory(user=doomed)

        response = staff_client.delete(f"/api/users/{doomed.pk}")

        assert response.status_code == 200
        assert not User.objects.filter(pk=doomed.pk).exists()

    def test_user_with_invoices_cannot_be_deleted(self, staff_client):
        owner = UserFactory()
        InvoiceFactory(company=CompanyFactory(user=owner))

        response = staff_client.delete(f"/api/users/{owner.pk}")

        assert response.status_code == 409
        assert response.json()["error"] == "RESOURCE_IN_USE"
        assert User.objects.filter(pk=owner.pk).exists()

    def test_unknown_user(self, staff_client):
        response = staff_client.get("/api/users/999999")
        assert response.status_code == 404
