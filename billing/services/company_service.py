import logging
from typing import Any, Dict

from django.db import transaction

from ..models import Company, PaymentMethod
from ..validation import ValidationError

logger = logging.getLogger(__name__)

COMPANY_FIELDS = (
    "name", "legal_name", "address", "city", "postal_code", "country", "email", "phone",
    "tax_code", "bank_name", "iban", "swift", "default_currency", "is_active",
)

REQUIRED_DETAILS = {
    PaymentMethod.Type.BANK_ACCOUNT: ("bank_name",),
    PaymentMethod.Type.CRYPTO_WALLET: ("address", "currency"),
    PaymentMethod.Type.OTHER: (),
}


class CompanyService:
    """Companies belong to one user; at most one of a user's companies is the default."""

    @staticmethod
    def _unset_other_defaults(company: Company) -> None:
        Company.objects.filter(user_id=company.user_id, is_default=True).exclude(pk=company.pk).update(
            is_default=False
        )

    @classmethod
    @transaction.atomic
    def create_company(cls, user, data: Dict[str, Any]) -> Company:
        # Lock the user's companies so concurrent creates agree on the default
        has_companies = Company.objects.select_for_update().filter(user=user).exists()
        company = Company(user=user, **{k: v for k, v in data.items() if k in COMPANY_FIELDS})
        company.is_default = bool(data.get("is_default")) or not has_companies
        company.save()
        if company.is_default:
            cls._unset_other_defaults(company)
        logger.info(f"Company {company.pk} created for user {user.pk} (default={company.is_default})")
        return company

    @classmethod
    @transaction.atomic
    def update_company(cls, company: Company, data: Dict[str, Any]) -> Company:
        company = Company.objects.select_for_update().get(pk=company.pk)
        for name in COMPANY_FIELDS:
            if name in data:
                setattr(company, name, data[name])

        if data.get("is_default"):
            company.is_default = True
        elif data.get("is_default") is False and company.is_default:
            raise ValidationError(
                "Choose another default company instead of unsetting this one",
                details={"is_default": ["A user must keep one default company."]},
            )
        if company.is_default and not company.is_active:
            raise ValidationError(
                "The default company cannot be deactivated",
                details={"is_active": ["Set another company as default first."]},
            )

        company.save()
        if company.is_default:
            cls._unset_other_defaults(company)
        logger.info(f"Company {company.pk} updated")
        return company

    @classmethod
    @transaction.atomic
    def set_default(cls, company: Company) -> Company:
        company = Company.objects.select_for_update().get(pk=company.pk)
        if not company.is_active:
            raise ValidationError("Inactive companies cannot be the default")
        company.is_default = True
        company.save(update_fields=["is_default", "updated_at"])
        cls._unset_other_defaults(company)
        logger.info(f"Company {company.pk} is now the default for user {company.user_id}")
        return company

    @staticmethod
    @transaction.atomic
    def delete_company(company: Company) -> None:
        user_id = company.user_id
        was_default = company.is_default
        company_id = company.pk
        company.delete()
        logger.info(f"Company {company_id} deleted")

        if was_default:
            successor = Company.objects.filter(user_id=user_id, is_active=True).order_by("created_at").first()
            if successor:
                successor.is_default = True
                successor.save(update_fields=["is_default", "updated_at"])
                logger.info(f"Company {successor.pk} promoted to default for user {user_id}")

    @staticmethod
    def validate_payment_details(method_type: str, details: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(details, dict):
            raise ValidationError("details must be an object", details={"details": ["Expected an object."]})

        missing = [key for key in REQUIRED_DETAILS.get(method_type, ()) if not details.get(key)]
        if method_type == PaymentMethod.Type.BANK_ACCOUNT and not (details.get("iban") or details.get("account_number")):
            missing.append("iban or account_number")
        if missing:
            raise ValidationError(
                f"Missing payment details for {method_type}: {', '.join(missing)}",
                details={"details": [f"Missing: {', '.join(missing)}"]},
            )
        return details

    @classmethod
    @transaction.atomic
    def add_payment_method(cls, company: Company, data: Dict[str, Any]) -> PaymentMethod:
        details = cls.validate_payment_details(data["type"], data.get("details") or {})
        method = PaymentMethod.objects.create(
            company=company,
            type=data["type"],
            name=data["name"],
            details=details,
            is_default=bool(data.get("is_default")),
        )
        if method.is_default:
            company.payment_methods.exclude(pk=method.pk).update(is_default=False)
        logger.info(f"Payment method {method.pk} ({method.type}) added to company {company.pk}")
        return method
