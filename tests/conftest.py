from unittest.mock import patch

import pytest
from rest_framework.test import APIClient

from billing.services import AuthService, PDFService
from tests.factories import ClientFactory, CompanyFactory, UserFactory

FAKE_PDF = b"%PDF-1.4\n% test document\n"


@pytest.fixture(autouse=True)
def test_settings(settings):
    settings.EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
    settings.PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
    settings.DEFAULT_FROM_EMAIL = "billing@billingdesk.test"


@pytest.fixture
def user(db):
    return UserFactory()


@pytest.fixture
def anon_client():
    return APIClient()


@pytest.fixture
def api_client(user):
    client = APIClient()
    tokens = AuthService.issue_tokens(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {tokens['token']}")
    return client


@pytest.fixture
def company(user):
    return CompanyFactory(user=user, is_default=True)


@pytest.fixture
def billing_client(db):
    return ClientFactory(name="Acme Media", email="ap@acme.example.com", cc_emails=["cfo@acme.example.com"])


@pytest.fixture
def fake_pdf():
    """Skip WeasyPrint; invoice sends and downloads get a fixed PDF body."""
    with patch.object(PDFService, "generate_pdf_bytes", return_value=FAKE_PDF):
        yield FAKE_PDF
