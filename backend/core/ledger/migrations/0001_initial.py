# Generated manually. Keep in sync with ledger/models.py.

import uuid

import django.core.serializers.json
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("customers", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="LedgerEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(choices=[("CREATE", "Create"), ("UPDATE", "Update"), ("SYSTEM", "System")], default="SYSTEM", max_length=20)),
                ("event_type", models.CharField(blank=True, max_length=120)),
                ("resource_label", models.CharField(max_length=200)),
                ("resource_pk", models.CharField(blank=True, max_length=64)),
                ("occurred_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("request_id", models.UUIDField(blank=True, null=True)),
                ("request_method", models.CharField(blank=True, max_length=12)),
                ("request_path", models.CharField(blank=True, max_length=255)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("chain_id", models.CharField(db_index=True, max_length=80)),
                ("prev_hash", models.CharField(blank=True, default="", max_length=64)),
                ("entry_hash", models.CharField(max_length=64, unique=True)),
                ("data_before", models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True)),
                ("data_after", models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True)),
                ("metadata", models.JSONField(blank=True, default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ("clinic", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="ledger_entries", to="customers.clinic")),
            ],
            options={
                "verbose_name": "Ledger Entry",
                "verbose_name_plural": "Ledger Entries",
                "ordering": ("-occurred_at", "-id"),
            },
        ),
        migrations.AddConstraint(
            model_name="ledgerentry",
            constraint=models.UniqueConstraint(fields=("chain_id", "prev_hash"), name="uq_ledger_prev_hash_per_chain"),
        ),
        migrations.AddIndex(
            model_name="ledgerentry",
            index=models.Index(fields=["chain_id", "occurred_at"], name="idx_ledger_chain_occurred"),
        ),
        migrations.CreateModel(
            name="FinancialTransaction",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("appointment_id", models.UUIDField(blank=True, db_index=True, null=True)),
                ("professional_id", models.UUIDField(db_index=True)),
                ("payment_method", models.CharField(blank=True, max_length=40)),
                ("commission_model", models.CharField(max_length=20)),
                ("commission_rate", models.DecimalField(decimal_places=6, max_digits=7)),
                ("rental_base_cents", models.PositiveBigIntegerField(default=0)),
                ("platform_fee_percent", models.DecimalField(decimal_places=6, max_digits=7)),
                ("amount_cents", models.PositiveBigIntegerField()),
                ("platform_fee_cents", models.PositiveBigIntegerField()),
                ("platform_fee_total_cents", models.PositiveBigIntegerField()),
                ("referral_fee_cents", models.PositiveBigIntegerField(default=0)),
                ("professional_share_cents", models.PositiveBigIntegerField()),
                ("clinic_share_cents", models.PositiveBigIntegerField()),
                ("referring_clinic_id", models.UUIDField(blank=True, null=True)),
                ("status", models.CharField(choices=[("not_attempted", "Not attempted"), ("pending", "Pending transfer"), ("simulated", "Simulated"), ("completed", "Completed"), ("failed", "Failed")], db_index=True, default="not_attempted", max_length=20)),
                ("settlement_status", models.CharField(choices=[("computed", "Computed"), ("settled", "Settled")], db_index=True, default="computed", max_length=20)),
                ("uniqueness_key", models.CharField(max_length=200, unique=True)),
                ("gateway_payment_id", models.CharField(blank=True, max_length=100, null=True, unique=True)),
                ("split_payload", models.JSONField(default=dict, encoder=django.core.serializers.json.DjangoJSONEncoder)),
                ("settled_at", models.DateTimeField(blank=True, null=True)),
                ("clinic", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="ledger_financialtransaction_set", to="customers.clinic")),
            ],
            options={
                "verbose_name": "Financial Transaction",
                "verbose_name_plural": "Financial Transactions",
                "ordering": ("-created_at", "id"),
            },
        ),
        migrations.AddConstraint(
            model_name="financialtransaction",
            constraint=models.CheckConstraint(
                condition=models.Q(("platform_fee_total_cents", models.F("platform_fee_cents") + models.F("referral_fee_cents"))),
                name="ck_fin_tx_platform_fee_split",
            ),
        ),
        migrations.AddConstraint(
            model_name="financialtransaction",
            constraint=models.CheckConstraint(
                condition=models.Q(
                    (
                        "amount_cents",
                        models.F("platform_fee_total_cents")
                        + models.F("professional_share_cents")
                        + models.F("clinic_share_cents"),
                    )
                ),
                name="ck_fin_tx_conservation",
            ),
        ),
        migrations.AddIndex(
            model_name="financialtransaction",
            index=models.Index(fields=["clinic", "created_at"], name="idx_fin_tx_clinic_created"),
        ),
        migrations.AddIndex(
            model_name="financialtransaction",
            index=models.Index(fields=["status", "created_at"], name="idx_fin_tx_status_created"),
        ),
        migrations.CreateModel(
            name="PlatformFeeCharge",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("amount_cents", models.PositiveBigIntegerField()),
                ("billing_ref", models.CharField(blank=True, db_index=True, max_length=120)),
                ("billed_at", models.DateTimeField(blank=True, null=True)),
                ("clinic", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="ledger_platformfeecharge_set", to="customers.clinic")),
                ("financial_transaction", models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name="fee_charge", to="ledger.financialtransaction")),
            ],
            options={
                "verbose_name": "Platform Fee Charge",
                "verbose_name_plural": "Platform Fee Charges",
                "ordering": ("created_at", "id"),
            },
        ),
    ]
