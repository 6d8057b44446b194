import http.client
import socket
from decimal import Decimal
from unittest import mock
from urllib.error import URLError
from uuid import uuid4

from django.test import TestCase

from commission.models import ClinicReferral, ProfessionalProfile
from customers.models import Clinic
from ledger.models import FinancialTransaction, LedgerEntry, PlatformFeeCharge
from ledger.services import accepted_transfers
from payments.config import PaymentConfig
from payments.exceptions import ResolutionError
from payments.gateway import (
    AsaasGatewayAdapter,
    GatewayAdapterBase,
    GatewayRejectionError,
    GatewayResult,
    GatewayTimeoutError,
    SimulatedGatewayAdapter,
)
from payments.services import PaymentRequest, derive_uniqueness_key, process_payment
from tenancy.context import get_current_clinic

from .test_gateway import _json_response

CONFIG = PaymentConfig(platform_wallet_id="wallet-platform")


class RaisingGateway(GatewayAdapterBase):
    def __init__(self, error):
        super().__init__()
        self.error = error
        self.calls = 0

    def execute_transfers(self, items, *, reference=""):
        self.calls += 1
        raise self.error


class CompletingGateway(GatewayAdapterBase):
    def execute_transfers(self, items, *, reference=""):
        return GatewayResult(
            status="completed",
            provider_payment_id="pay_777",
            transfers=[{**item, "transfer_id": f"tr_{index}"} for index, item in enumerate(items)],
        )


class ProcessPaymentTests(TestCase):
    def setUp(self):
        self.clinic = Clinic.objects.create(name="Clinica Centro", payout_wallet_id="wallet-clinic")
        self.profile = ProfessionalProfile.all_objects.create(
            clinic=self.clinic,
            display_name="Dra. Ana",
            payout_wallet_id="wallet-ana",
            commission_rate=Decimal("0.3000"),
        )
        self.gateway = SimulatedGatewayAdapter()

    def _payment(self, **kwargs):
        defaults = {
            "clinic_id": self.clinic.id,
            "professional_id": self.profile.id,
            "appointment_id": uuid4(),
            "amount_cents": 10000,
            "platform_fee_percent": Decimal("0.0599"),
            "payment_method": "pix",
        }
        defaults.update(kwargs)
        return PaymentRequest(**defaults)

    def test_commissioned_payment_is_split_transferred_and_recorded(self):
        outcome = process_payment(self._payment(), config=CONFIG, gateway=self.gateway)

        self.assertTrue(outcome.created)
        self.assertEqual(outcome.gateway_status, "simulated")
        self.assertEqual(outcome.split.platform_fee_total_cents, 599)
        self.assertEqual(outcome.split.clinic_share_cents, 2820)
        self.assertEqual(outcome.split.professional_share_cents, 6581)
        self.assertEqual(
            [(item["beneficiary"], item["amount_cents"]) for item in outcome.transfers],
            [("professional", 6581), ("clinic", 2820), ("platform", 599)],
        )

        record = FinancialTransaction.all_objects.get()
        self.assertEqual(record.status, "simulated")
        self.assertEqual(record.settlement_status, "computed")
        self.assertEqual(record.professional_id, self.profile.id)
        self.assertEqual(len(self.gateway.calls), 1)
        self.assertEqual(self.gateway.calls[0]["reference"], record.uniqueness_key)

    def test_referral_fee_is_paid_to_referring_clinic(self):
        referrer = Clinic.objects.create(name="Indicadora", payout_wallet_id="wallet-referrer")
        ClinicReferral.objects.create(referring_clinic=referrer, referred_clinic=self.clinic)

        outcome = process_payment(self._payment(), config=CONFIG, gateway=self.gateway)

        self.assertEqual(outcome.split.referral_fee_cents, 233)
        self.assertEqual(outcome.split.platform_fee_cents, 366)
        self.assertEqual(outcome.transaction.referring_clinic_id, referrer.id)
        referral_transfer = [item for item in outcome.transfers if item["beneficiary"] == "referral"]
        self.assertEqual(referral_transfer[0]["destination"], "wallet-referrer")

    def test_duplicate_request_returns_existing_row_without_gateway_call(self):
        payment = self._payment()

        first = process_payment(payment, config=CONFIG, gateway=self.gateway)
        second = process_payment(payment, config=CONFIG, gateway=self.gateway)

        self.assertTrue(first.created)
        self.assertTrue(second.duplicate)
        self.assertEqual(first.transaction.pk, second.transaction.pk)
        self.assertEqual(second.split, first.split)
        self.assertEqual(FinancialTransaction.all_objects.count(), 1)
        self.assertEqual(len(self.gateway.calls), 1)

    def test_retryable_gateway_error_leaves_transfer_pending(self):
        gateway = RaisingGateway(GatewayTimeoutError("timed out"))

        outcome = process_payment(self._payment(), config=CONFIG, gateway=gateway)

        self.assertEqual(outcome.gateway_status, "pending")
        self.assertEqual(FinancialTransaction.all_objects.get().status, "pending")
        entry = LedgerEntry.all_objects.get(event_type="payments.gateway.executed")
        self.assertEqual(entry.metadata["error"], "timed out")

    def test_gateway_rejection_marks_transfer_failed(self):
        gateway = RaisingGateway(GatewayRejectionError("invalid wallet", code="400"))

        outcome = process_payment(self._payment(), config=CONFIG, gateway=gateway)

        self.assertEqual(outcome.gateway_status, "failed")
        self.assertEqual(outcome.split.clinic_share_cents, 2820)
        self.assertEqual(FinancialTransaction.all_objects.get().status, "failed")

    def test_missing_gateway_records_pending(self):
        outcome = process_payment(self._payment(), config=CONFIG, gateway=None)
        self.assertEqual(outcome.gateway_status, "pending")

    def test_unexpected_adapter_error_keeps_the_row_pending(self):
        gateway = RaisingGateway(ConnectionResetError("connection reset by peer"))

        with self.assertLogs("payments.services", level="ERROR"):
            outcome = process_payment(self._payment(), config=CONFIG, gateway=gateway)

        self.assertEqual(outcome.gateway_status, "pending")
        record = FinancialTransaction.all_objects.get()
        self.assertEqual(record.status, "pending")
        entry = LedgerEntry.all_objects.get(event_type="payments.gateway.executed")
        self.assertIn("ConnectionResetError", entry.metadata["error"])

    @mock.patch("payments.gateway.asaas.urlopen")
    def test_dropped_connection_keeps_the_row_pending(self, urlopen):
        urlopen.side_effect = http.client.RemoteDisconnected("Remote end closed connection")
        gateway = AsaasGatewayAdapter(api_key="$aact_test")

        outcome = process_payment(self._payment(), config=CONFIG, gateway=gateway)

        self.assertEqual(outcome.gateway_status, "pending")
        self.assertEqual(FinancialTransaction.all_objects.get().status, "pending")

    @mock.patch("payments.gateway.asaas.urlopen")
    def test_batch_failing_partway_records_accepted_transfers(self, urlopen):
        urlopen.side_effect = [
            _json_response({"id": "tr_1", "status": "DONE"}),
            URLError(socket.timeout("timed out")),
        ]
        gateway = AsaasGatewayAdapter(api_key="$aact_test")

        outcome = process_payment(self._payment(), config=CONFIG, gateway=gateway)

        self.assertEqual(outcome.gateway_status, "pending")
        self.assertEqual(
            [(item["beneficiary"], item.get("transfer_id")) for item in outcome.transfers],
            [("professional", "tr_1"), ("clinic", None), ("platform", None)],
        )
        self.assertEqual(
            [item["transfer_id"] for item in accepted_transfers(outcome.transaction)],
            ["tr_1"],
        )

    def test_platform_transfer_is_skipped_without_platform_wallet(self):
        config = PaymentConfig(platform_wallet_id="")

        outcome = process_payment(self._payment(), config=config, gateway=self.gateway)

        self.assertEqual(outcome.split.platform_fee_total_cents, 599)
        self.assertEqual(
            [item["beneficiary"] for item in outcome.transfers],
            ["professional", "clinic"],
        )

    def test_completed_transfers_are_settled(self):
        outcome = process_payment(self._payment(), config=CONFIG, gateway=CompletingGateway())

        record = FinancialTransaction.all_objects.get()
        self.assertEqual(outcome.gateway_status, "completed")
        self.assertTrue(record.is_settled)
        self.assertEqual(record.gateway_payment_id, "pay_777")
        self.assertEqual(outcome.transfers[0]["transfer_id"], "tr_0")

    def test_cash_payment_skips_gateway_and_registers_platform_fee(self):
        outcome = process_payment(self._payment(payment_method="cash"), config=CONFIG, gateway=self.gateway)

        self.assertEqual(outcome.gateway_status, "not_attempted")
        self.assertEqual(outcome.transfers, [])
        self.assertEqual(self.gateway.calls, [])
        charge = PlatformFeeCharge.all_objects.get()
        self.assertEqual(charge.amount_cents, 599)
        self.assertEqual(charge.financial_transaction_id, outcome.transaction.id)

    def test_no_payout_wallets_means_nothing_to_transfer(self):
        self.clinic.payout_wallet_id = ""
        self.clinic.save(update_fields=["payout_wallet_id", "updated_at"])
        self.profile.payout_wallet_id = ""
        self.profile.save(update_fields=["payout_wallet_id", "updated_at"])

        outcome = process_payment(
            self._payment(),
            config=PaymentConfig(platform_wallet_id=""),
            gateway=self.gateway,
        )

        self.assertEqual(outcome.gateway_status, "not_attempted")
        self.assertEqual(self.gateway.calls, [])

    def test_rental_professional_keeps_the_net_amount(self):
        self.profile.commission_model = "rental"
        self.profile.save(update_fields=["commission_model", "updated_at"])

        outcome = process_payment(self._payment(amount_cents=5000), config=CONFIG, gateway=self.gateway)

        self.assertEqual(outcome.split.clinic_share_cents, 0)
        self.assertEqual(outcome.split.professional_share_cents, 4700)
        self.assertEqual(outcome.transaction.commission_model, "rental")

    def test_zero_amount_is_recorded_without_transfers(self):
        outcome = process_payment(self._payment(amount_cents=0), config=CONFIG, gateway=self.gateway)

        self.assertEqual(set(outcome.split.as_dict().values()), {0})
        self.assertEqual(outcome.gateway_status, "not_attempted")
        self.assertTrue(FinancialTransaction.all_objects.filter(amount_cents=0).exists())

    def test_unknown_professional_fails_without_writing(self):
        with self.assertRaises(ResolutionError):
            process_payment(self._payment(professional_id=uuid4()), config=CONFIG, gateway=self.gateway)

        self.assertFalse(FinancialTransaction.all_objects.exists())
        self.assertEqual(self.gateway.calls, [])

    def test_unknown_clinic_fails(self):
        with self.assertRaises(ResolutionError):
            process_payment(self._payment(clinic_id=uuid4()), config=CONFIG, gateway=self.gateway)

    def test_tenant_context_is_reset_afterwards(self):
        process_payment(self._payment(), config=CONFIG, gateway=self.gateway)
        self.assertIsNone(get_current_clinic())


class DeriveUniquenessKeyTests(TestCase):
    def setUp(self):
        self.clinic_id = uuid4()
        self.professional_id = uuid4()

    def test_gateway_id_takes_precedence(self):
        payment = PaymentRequest(
            clinic_id=self.clinic_id,
            professional_id=self.professional_id,
            amount_cents=1,
            appointment_id=uuid4(),
            gateway_payment_id="pay_1",
        )
        self.assertEqual(derive_uniqueness_key(payment), "gateway:pay_1")

    def test_appointment_and_method(self):
        appointment_id = uuid4()
        payment = PaymentRequest(
            clinic_id=self.clinic_id,
            professional_id=self.professional_id,
            amount_cents=1,
            appointment_id=appointment_id,
            payment_method="PIX",
        )
        self.assertEqual(derive_uniqueness_key(payment), f"appointment:{appointment_id}:pix")

    def test_caller_idempotency_key(self):
        payment = PaymentRequest(
            clinic_id=self.clinic_id,
            professional_id=self.professional_id,
            amount_cents=1,
            idempotency_key="retry-42",
        )
        self.assertEqual(derive_uniqueness_key(payment), f"request:{self.clinic_id}:retry-42")

    def test_anonymous_requests_never_collide(self):
        payment = PaymentRequest(clinic_id=self.clinic_id, professional_id=self.professional_id, amount_cents=1)
        first = derive_uniqueness_key(payment)
        self.assertTrue(first.startswith("adhoc:"))
        self.assertNotEqual(first, derive_uniqueness_key(payment))
