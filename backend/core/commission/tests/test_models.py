from django.core.exceptions import ValidationError
from django.db import IntegrityError
from django.test import TestCase

from commission.models import ClinicReferral, ProfessionalProfile
from customers.models import Clinic
from tenancy.context import reset_current_clinic, set_current_clinic


class ProfessionalProfileIsolationTests(TestCase):
    def setUp(self):
        self.clinic_a = Clinic.objects.create(name="Clinica A")
        self.clinic_b = Clinic.objects.create(name="Clinica B")

    def test_manager_fails_closed_without_tenant_context(self):
        ProfessionalProfile.all_objects.create(clinic=self.clinic_a, display_name="Ana")
        self.assertEqual(ProfessionalProfile.objects.count(), 0)

    def test_manager_filters_by_current_clinic(self):
        ProfessionalProfile.all_objects.create(clinic=self.clinic_a, display_name="Ana")
        ProfessionalProfile.all_objects.create(clinic=self.clinic_b, display_name="Bia")

        token = set_current_clinic(self.clinic_a)
        try:
            self.assertEqual(ProfessionalProfile.objects.count(), 1)
            self.assertEqual(ProfessionalProfile.objects.first().display_name, "Ana")
        finally:
            reset_current_clinic(token)

        token = set_current_clinic(self.clinic_b)
        try:
            self.assertEqual(ProfessionalProfile.objects.count(), 1)
            self.assertEqual(ProfessionalProfile.objects.first().display_name, "Bia")
        finally:
            reset_current_clinic(token)

    def test_cross_tenant_write_is_blocked(self):
        token = set_current_clinic(self.clinic_a)
        try:
            with self.assertRaises(ValidationError):
                ProfessionalProfile.all_objects.create(clinic=self.clinic_b, display_name="Cross")
        finally:
            reset_current_clinic(token)

    def test_clinic_is_inherited_from_context(self):
        token = set_current_clinic(self.clinic_a)
        try:
            profile = ProfessionalProfile(display_name="Ana")
            profile.save()
        finally:
            reset_current_clinic(token)
        self.assertEqual(profile.clinic_id, self.clinic_a.id)

    def test_commission_rate_above_one_is_rejected_by_database(self):
        with self.assertRaises(IntegrityError):
            ProfessionalProfile.all_objects.create(
                clinic=self.clinic_a,
                display_name="Ana",
                commission_rate="1.5000",
            )


class ClinicReferralTests(TestCase):
    def test_clinic_cannot_refer_itself(self):
        clinic = Clinic.objects.create(name="Clinica A")
        referral = ClinicReferral(referring_clinic=clinic, referred_clinic=clinic)
        with self.assertRaises(ValidationError):
            referral.full_clean()
