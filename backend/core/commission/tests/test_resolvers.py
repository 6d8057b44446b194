from decimal import Decimal
from unittest import mock
from uuid import uuid4

from django.db import DatabaseError
from django.test import TestCase

from commission.models import ClinicReferral, ProfessionalProfile, ReferralRule
from commission.services import resolve_clinic, resolve_commission, resolve_referral
from customers.models import Clinic
from payments.exceptions import ResolutionError


class ResolveCommissionTests(TestCase):
    def setUp(self):
        self.clinic = Clinic.objects.create(name="Clinica Centro", payout_wallet_id="wallet-clinic")
        self.other_clinic = Clinic.objects.create(name="Clinica Sul")

    def _profile(self, **kwargs):
        defaults = {
            "clinic": self.clinic,
            "display_name": "Dra. Ana",
            "payout_wallet_id": "wallet-ana",
        }
        defaults.update(kwargs)
        return ProfessionalProfile.all_objects.create(**defaults)

    def test_stored_profile_wins_over_request(self):
        profile = self._profile(
            commission_model="rental",
            commission_rate=Decimal("0.2500"),
            rental_base_cents=150000,
        )

        terms = resolve_commission(
            profile.id,
            clinic_id=self.clinic.id,
            requested_model="commissioned",
            requested_rate=Decimal("0.9"),
            requested_rental_base_cents=1,
        )

        self.assertEqual(terms.model, "rental")
        self.assertEqual(terms.rate, Decimal("0.25"))
        self.assertEqual(terms.rental_base_cents, 150000)
        self.assertEqual(terms.payout_destination, "wallet-ana")
        self.assertEqual(terms.source, "profile")

    def test_unconfigured_profile_fields_fall_back_to_request(self):
        profile = self._profile()

        terms = resolve_commission(
            profile.id,
            clinic_id=self.clinic.id,
            requested_model="hybrid",
            requested_rate=Decimal("0.4"),
        )

        self.assertEqual(terms.model, "hybrid")
        self.assertEqual(terms.rate, Decimal("0.4"))

    def test_default_rate_applies_when_nothing_is_configured(self):
        profile = self._profile()

        terms = resolve_commission(profile.id, clinic_id=self.clinic.id)

        self.assertEqual(terms.model, "commissioned")
        self.assertEqual(terms.rate, Decimal("0.5"))

    def test_professional_of_another_clinic_is_not_resolved(self):
        profile = self._profile(clinic=self.other_clinic)

        with self.assertRaises(ResolutionError):
            resolve_commission(profile.id, clinic_id=self.clinic.id)

    def test_unknown_professional_is_a_hard_failure(self):
        with self.assertRaises(ResolutionError):
            resolve_commission(uuid4(), clinic_id=self.clinic.id)

    def test_store_outage_falls_back_to_request_values(self):
        with mock.patch.object(
            ProfessionalProfile.all_objects,
            "filter",
            side_effect=DatabaseError("connection lost"),
        ), self.assertLogs("commission.services.resolvers", level="WARNING") as logs:
            terms = resolve_commission(
                uuid4(),
                clinic_id=self.clinic.id,
                requested_model="commissioned",
                requested_rate=Decimal("0.3"),
            )

        self.assertEqual(terms.rate, Decimal("0.3"))
        self.assertEqual(terms.source, "request")
        self.assertEqual(terms.payout_destination, "")
        self.assertIn("commission.resolve.unavailable", logs.output[0])


class ResolveClinicTests(TestCase):
    def test_inactive_or_unknown_clinic_is_rejected(self):
        inactive = Clinic.objects.create(name="Fechada", is_active=False)

        with self.assertRaises(ResolutionError):
            resolve_clinic(inactive.id)
        with self.assertRaises(ResolutionError):
            resolve_clinic(uuid4())

    def test_active_clinic_is_returned(self):
        clinic = Clinic.objects.create(name="Aberta")
        self.assertEqual(resolve_clinic(clinic.id), clinic)


class ResolveReferralTests(TestCase):
    def setUp(self):
        self.referrer = Clinic.objects.create(name="Indicadora", payout_wallet_id="wallet-referrer")
        self.referred = Clinic.objects.create(name="Indicada", payout_wallet_id="wallet-referred")

    def test_no_referral(self):
        context = resolve_referral(self.referred.id)

        self.assertFalse(context.has_referral)
        self.assertEqual(context.referral_percent, Decimal("0.0233"))

    def test_active_referral_uses_default_percent_without_rule(self):
        ClinicReferral.objects.create(referring_clinic=self.referrer, referred_clinic=self.referred)

        context = resolve_referral(self.referred.id)

        self.assertTrue(context.has_referral)
        self.assertEqual(context.referral_destination, "wallet-referrer")
        self.assertEqual(context.referring_clinic_id, self.referrer.id)
        self.assertEqual(context.referral_percent, Decimal("0.0233"))

    def test_rule_is_stored_in_hundredths_of_percent(self):
        ClinicReferral.objects.create(referring_clinic=self.referrer, referred_clinic=self.referred)
        ReferralRule.objects.create(platform_referral_percentage=150)

        context = resolve_referral(self.referred.id)

        self.assertEqual(context.referral_percent, Decimal("0.015"))

    def test_referring_clinic_without_wallet_counts_as_no_referral(self):
        self.referrer.payout_wallet_id = ""
        self.referrer.save(update_fields=["payout_wallet_id", "updated_at"])
        ClinicReferral.objects.create(referring_clinic=self.referrer, referred_clinic=self.referred)

        context = resolve_referral(self.referred.id)

        self.assertFalse(context.has_referral)

    def test_inactive_referral_is_ignored(self):
        ClinicReferral.objects.create(
            referring_clinic=self.referrer,
            referred_clinic=self.referred,
            is_active=False,
        )
        self.assertFalse(resolve_referral(self.referred.id).has_referral)

    def test_referral_is_keyed_by_the_receiving_clinic(self):
        ClinicReferral.objects.create(referring_clinic=self.referrer, referred_clinic=self.referred)
        self.assertFalse(resolve_referral(self.referrer.id).has_referral)

    def test_store_outage_means_no_referral(self):
        with mock.patch.object(
            ClinicReferral.objects,
            "select_related",
            side_effect=DatabaseError("connection lost"),
        ), self.assertLogs("commission.services.resolvers", level="WARNING"):
            context = resolve_referral(self.referred.id)

        self.assertFalse(context.has_referral)
