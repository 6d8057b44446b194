from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from django.db import DatabaseError

from commission.models import ClinicReferral, CommissionModel, ProfessionalProfile, ReferralRule
from commission.services.split_calculator import (
    DEFAULT_COMMISSION_RATE,
    DEFAULT_REFERRAL_PERCENT,
    ReferralContext,
    to_rate,
)
from customers.models import Clinic
from payments.exceptions import ResolutionError

logger = logging.getLogger(__name__)

_RULE_SCALE = Decimal("10000")


@dataclass(frozen=True, slots=True)
class CommissionTerms:
    model: str
    rate: Decimal
    rental_base_cents: int
    payout_destination: str
    source: str


def resolve_clinic(clinic_id: Any) -> Clinic:
    try:
        return Clinic.objects.get(id=clinic_id, is_active=True)
    except Clinic.DoesNotExist as exc:
        raise ResolutionError(f"Clinic {clinic_id} not found.") from exc


def resolve_commission(
    professional_id: Any,
    *,
    clinic_id: Any,
    requested_model: str | None = None,
    requested_rate: Any = None,
    requested_rental_base_cents: int | None = None,
    default_rate: Decimal = DEFAULT_COMMISSION_RATE,
) -> CommissionTerms:
    """Resolve the commission terms of a professional.

    Precedence per field: stored profile, then request, then platform default.
    If the profile store is unavailable the request values are used as-is; a
    professional that does not exist at the clinic is a hard failure.
    """

    fallback_model = requested_model or CommissionModel.COMMISSIONED
    fallback_rate = default_rate if requested_rate is None else to_rate(requested_rate, field="commission_rate")
    fallback_rental_base = int(requested_rental_base_cents or 0)

    try:
        profile = (
            ProfessionalProfile.all_objects.filter(
                clinic_id=clinic_id,
                id=professional_id,
                is_active=True,
            )
            .only(
                "id",
                "clinic_id",
                "payout_wallet_id",
                "commission_model",
                "commission_rate",
                "rental_base_cents",
            )
            .first()
        )
    except DatabaseError as exc:
        logger.warning(
            "commission.resolve.unavailable professional_id=%s clinic_id=%s error=%s",
            professional_id,
            clinic_id,
            exc.__class__.__name__,
        )
        return CommissionTerms(
            model=str(fallback_model),
            rate=fallback_rate,
            rental_base_cents=fallback_rental_base,
            payout_destination="",
            source="request",
        )

    if profile is None:
        raise ResolutionError(f"Professional {professional_id} not found at clinic {clinic_id}.")

    model = profile.commission_model or fallback_model
    rate = profile.commission_rate if profile.commission_rate is not None else fallback_rate
    rental_base = (
        profile.rental_base_cents if profile.rental_base_cents is not None else fallback_rental_base
    )

    return CommissionTerms(
        model=str(model),
        rate=Decimal(rate),
        rental_base_cents=int(rental_base),
        payout_destination=(profile.payout_wallet_id or "").strip(),
        source="profile",
    )


def _configured_referral_percent(default_percent: Decimal) -> Decimal:
    rule = (
        ReferralRule.objects.filter(is_active=True)
        .order_by("-updated_at", "-id")
        .only("platform_referral_percentage")
        .first()
    )
    if rule is None:
        return default_percent
    return Decimal(rule.platform_referral_percentage) / _RULE_SCALE


def resolve_referral(
    receiving_clinic_id: Any,
    *,
    default_percent: Decimal = DEFAULT_REFERRAL_PERCENT,
) -> ReferralContext:
    """Referral state of the clinic receiving the payment.

    A referral only counts when the referring clinic has a payout wallet;
    otherwise there is nobody to transfer the fee to and the platform keeps it.
    """

    try:
        referral = (
            ClinicReferral.objects.select_related("referring_clinic")
            .filter(referred_clinic_id=receiving_clinic_id, is_active=True)
            .first()
        )
        percent = _configured_referral_percent(default_percent)
    except DatabaseError as exc:
        logger.warning(
            "referral.resolve.unavailable clinic_id=%s error=%s",
            receiving_clinic_id,
            exc.__class__.__name__,
        )
        return ReferralContext.none(default_percent)

    if referral is None:
        return ReferralContext.none(percent)

    destination = (referral.referring_clinic.payout_wallet_id or "").strip()
    if not destination:
        logger.info(
            "referral.resolve.skipped clinic_id=%s referring_clinic_id=%s reason=no_payout_wallet",
            receiving_clinic_id,
            referral.referring_clinic_id,
        )
        return ReferralContext.none(percent)

    return ReferralContext(
        has_referral=True,
        referral_percent=percent,
        referral_destination=destination,
        referring_clinic_id=referral.referring_clinic_id,
    )
