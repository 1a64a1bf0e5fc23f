"""Reference data for normalization.

Ranked synonym tables mapping each canonical field to the raw keys that older
writers used for it. Earlier entries win. When no ranked key carries a value,
``concept_tokens`` drive a case-insensitive substring scan over every raw key
(keys containing an ``exclude_tokens`` entry are skipped).

New synonyms are additions to these tables, never new branches in the
normalizer.
"""

from __future__ import annotations

from typing import NamedTuple, Tuple


class FieldRule(NamedTuple):
    synonyms: Tuple[str, ...]
    concept_tokens: Tuple[str, ...] = ()
    exclude_tokens: Tuple[str, ...] = ()


# Keys that carry a user's email on investment, request, and ownership records.
EMAIL_BEARING_KEYS: Tuple[str, ...] = (
    "userEmail",
    "user_email",
    "email",
    "Email",
    "USER_EMAIL",
    "useremail",
    "emailAddress",
    "email_address",
)

# Keys that carry a user id on investment, request, and ownership records.
USER_ID_BEARING_KEYS: Tuple[str, ...] = ("userId", "user_id", "UserId", "uid")

AREA_KEYS: Tuple[str, ...] = (
    "sqm_purchased",
    "sqm",
    "SQM",
    "Sqm",
    "sqmPurchased",
    "sqm_bought",
    "purchased_sqm",
    "area",
)

AMOUNT_KEYS: Tuple[str, ...] = (
    "amount_paid",
    "Amount_paid",
    "amountPaid",
    "totalAmount",
    "total_amount",
    "amount",
)

PRICE_KEYS: Tuple[str, ...] = ("price_per_sqm", "pricePerSqm", "price_per_unit", "pricePerUnit")

CREATED_AT_KEYS: Tuple[str, ...] = ("created_at", "createdAt", "dateCreated", "created")

USER_FIELDS = {
    "email": FieldRule(("email", "Email", "EMAIL", "emailAddress", "email_address", "userEmail", "user_email")),
    "display_name": FieldRule(
        ("full_name", "fullName", "displayName", "display_name", "name", "userName", "user_name")
    ),
    "phone": FieldRule(
        (
            "phone",
            "phone_number",
            "Phone",
            "phoneNumber",
            "PHONE",
            "telephone",
            "mobile",
            "mobile_number",
            "Mobile",
            "MOBILE",
            "contact_number",
            "contact",
            "Contact",
            "CONTACT",
            "tel",
            "telephone_number",
            "cell",
            "cellphone",
            "cell_phone",
        ),
        concept_tokens=("phone", "mobile", "contact", "tel"),
        exclude_tokens=("email",),
    ),
    "address": FieldRule(
        ("address", "Address", "home_address", "residential_address", "street_address"),
        concept_tokens=("address",),
        exclude_tokens=("email", "wallet"),
    ),
    "occupation": FieldRule(("occupation", "Occupation", "profession", "job_title", "jobTitle")),
    "bank_name": FieldRule(("bank_name", "bankName", "Bank_name", "bank")),
    "bank_account": FieldRule(
        ("bank_account", "bankAccount", "bank_account_number", "account_number", "accountNumber")
    ),
    "first_name": FieldRule(("firstName", "first_name", "FirstName")),
    "last_name": FieldRule(("lastName", "last_name", "LastName")),
    "status": FieldRule(("status", "Status", "account_status", "accountStatus")),
    "is_active": FieldRule(("isActive", "is_active", "active")),
    "created_at": FieldRule(CREATED_AT_KEYS + ("signup_date", "registered_at")),
    "last_login": FieldRule(("lastLogin", "last_login", "lastLoginAt", "last_login_at", "last_sign_in")),
}

INVESTMENT_FIELDS = {
    "user_id": FieldRule(USER_ID_BEARING_KEYS),
    "user_email": FieldRule(EMAIL_BEARING_KEYS),
    "plot_id": FieldRule(("plotId", "plot_id", "PlotId")),
    "project_id": FieldRule(("projectId", "project_id")),
    "area_units": FieldRule(AREA_KEYS),
    "amount_paid": FieldRule(AMOUNT_KEYS),
    "price_per_unit": FieldRule(PRICE_KEYS),
    "status": FieldRule(("status", "Status")),
    "payment_method": FieldRule(("payment_method", "paymentMethod")),
    "source": FieldRule(("source", "Source")),
    "created_at": FieldRule(CREATED_AT_KEYS),
    # A promoted request points at the ledger entry it became.
    "linked_investment_id": FieldRule(
        ("linkedInvestmentId", "linked_investment_id", "investmentId", "investment_id")
    ),
    "user_name": FieldRule(("userName", "user_name")),
    "plot_name": FieldRule(("plotName", "plot_name")),
    "project_name": FieldRule(("projectName", "project_name", "project_title")),
    "investment_type": FieldRule(("investment_type", "investmentType")),
    "original_request_id": FieldRule(("original_request_id", "originalRequestId")),
}

OWNERSHIP_FIELDS = {
    "user_id": FieldRule(USER_ID_BEARING_KEYS),
    "user_email": FieldRule(EMAIL_BEARING_KEYS),
    "plot_id": FieldRule(("plotId", "plot_id", "PlotId")),
    "project_id": FieldRule(("projectId", "project_id")),
    "investment_id": FieldRule(("investmentId", "investment_id")),
    "area_owned": FieldRule(("sqm_owned", "areaOwned", "area_owned") + AREA_KEYS),
    "amount_paid": FieldRule(AMOUNT_KEYS),
    "price_per_unit": FieldRule(PRICE_KEYS),
    "status": FieldRule(("status", "Status")),
    "source": FieldRule(("source", "Source")),
    "created_at": FieldRule(CREATED_AT_KEYS),
    "user_name": FieldRule(("userName", "user_name")),
    "plot_name": FieldRule(("plotName", "plot_name")),
    "project_name": FieldRule(("projectName", "project_name")),
}

INACTIVE_STATUS_VALUES = frozenset({"inactive", "disabled", "banned", "blocked"})

MANUAL_SOURCE_VALUES = frozenset({"manual_admin_entry", "admin_manual_entry", "manual"})
MIGRATION_SOURCE_VALUES = frozenset({"migration"})
