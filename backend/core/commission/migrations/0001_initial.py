# Generated manually. Keep in sync with commission/models/.

from decimal import Decimal
import uuid

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("customers", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="ProfessionalProfile",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("display_name", models.CharField(max_length=255)),
                ("payout_wallet_id", models.CharField(blank=True, help_text="Gateway wallet that receives the professional share.", max_length=64)),
                ("commission_model", models.CharField(blank=True, choices=[("commissioned", "Commissioned"), ("rental", "Rental"), ("hybrid", "Hybrid")], default="", max_length=20)),
                ("commission_rate", models.DecimalField(blank=True, decimal_places=4, help_text="Clinic share of the amount left after the platform fee (0..1).", max_digits=5, null=True, validators=[django.core.validators.MinValueValidator(Decimal("0")), django.core.validators.MaxValueValidator(Decimal("1"))])),
                ("rental_base_cents", models.PositiveIntegerField(blank=True, help_text="Periodic rental fee; billed separately, never deducted per payment.", null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("clinic", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="commission_professionalprofile_set", to="customers.clinic")),
            ],
            options={
                "verbose_name": "Professional Profile",
                "verbose_name_plural": "Professional Profiles",
                "ordering": ("display_name", "id"),
            },
        ),
        migrations.CreateModel(
            name="ReferralRule",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("platform_referral_percentage", models.PositiveIntegerField(help_text="Hundredths of a percent of the payment amount (233 == 2.33%).")),
                ("is_active", models.BooleanField(default=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Referral Rule",
                "verbose_name_plural": "Referral Rules",
                "ordering": ("-updated_at", "-id"),
            },
        ),
        migrations.CreateModel(
            name="ClinicReferral",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("referred_clinic", models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name="referral", to="customers.clinic")),
                ("referring_clinic", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="referrals_made", to="customers.clinic")),
            ],
            options={
                "verbose_name": "Clinic Referral",
                "verbose_name_plural": "Clinic Referrals",
                "ordering": ("-created_at", "id"),
            },
        ),
        migrations.AddConstraint(
            model_name="professionalprofile",
            constraint=models.CheckConstraint(
                condition=models.Q(("commission_rate__isnull", True))
                | models.Q(("commission_rate__gte", 0), ("commission_rate__lte", 1)),
                name="ck_prof_commission_rate_range",
            ),
        ),
        migrations.AddIndex(
            model_name="professionalprofile",
            index=models.Index(fields=["clinic", "is_active"], name="idx_prof_clinic_active"),
        ),
        migrations.AddConstraint(
            model_name="referralrule",
            constraint=models.CheckConstraint(
                condition=models.Q(("platform_referral_percentage__lte", 10000)),
                name="ck_referral_rule_max_100pct",
            ),
        ),
        migrations.AddConstraint(
            model_name="clinicreferral",
            constraint=models.CheckConstraint(
                condition=models.Q(("referring_clinic", models.F("referred_clinic")), _negated=True),
                name="ck_referral_not_self",
            ),
        ),
    ]
