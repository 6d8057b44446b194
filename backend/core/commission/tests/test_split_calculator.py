from decimal import Decimal

from django.test import SimpleTestCase

from commission.services import (
    ReferralContext,
    SplitCalculationError,
    build_transfer_instructions,
    compute_split,
)

REFERRAL = ReferralContext(
    has_referral=True,
    referral_percent=Decimal("0.0233"),
    referral_destination="wallet-referrer",
)


class ComputeSplitScenarioTests(SimpleTestCase):
    def test_commissioned_without_referral(self):
        split = compute_split(10000, Decimal("0.0599"), "commissioned", Decimal("0.3"))

        self.assertEqual(split.platform_fee_total_cents, 599)
        self.assertEqual(split.platform_fee_cents, 599)
        self.assertEqual(split.referral_fee_cents, 0)
        self.assertEqual(split.clinic_share_cents, 2820)
        self.assertEqual(split.professional_share_cents, 6581)

    def test_referral_is_carved_out_of_platform_fee(self):
        split = compute_split(10000, Decimal("0.0599"), "commissioned", Decimal("0.3"), REFERRAL)

        self.assertEqual(split.platform_fee_total_cents, 599)
        self.assertEqual(split.referral_fee_cents, 233)
        self.assertEqual(split.platform_fee_cents, 366)
        self.assertEqual(split.clinic_share_cents, 2820)
        self.assertEqual(split.professional_share_cents, 6581)
        self.assertEqual(split.distributed_cents, 9401)

    def test_rental_sends_everything_to_professional(self):
        split = compute_split(5000, Decimal("0.0599"), "rental", Decimal("0.3"))

        self.assertEqual(split.platform_fee_total_cents, 300)
        self.assertEqual(split.clinic_share_cents, 0)
        self.assertEqual(split.professional_share_cents, 5000 - 300)

    def test_hybrid_divides_like_commissioned(self):
        hybrid = compute_split(12345, Decimal("0.0599"), "hybrid", Decimal("0.4"))
        commissioned = compute_split(12345, Decimal("0.0599"), "commissioned", Decimal("0.4"))
        self.assertEqual(hybrid, commissioned)


class ComputeSplitPropertyTests(SimpleTestCase):
    amounts = (0, 1, 2, 99, 100, 101, 1999, 10000, 12345, 999999, 10**9)
    fee_percents = ("0", "0.01", "0.0599", "0.5", "1")
    rates = ("0", "0.3", "0.5", "0.7777", "1")

    def test_conservation_and_non_negative_shares(self):
        for amount in self.amounts:
            for fee in self.fee_percents:
                for model in ("commissioned", "rental", "hybrid"):
                    for rate in self.rates:
                        for referral in (None, REFERRAL):
                            split = compute_split(amount, Decimal(fee), model, Decimal(rate), referral)
                            with self.subTest(amount=amount, fee=fee, model=model, rate=rate, referral=bool(referral)):
                                self.assertEqual(
                                    split.platform_fee_cents + split.referral_fee_cents,
                                    split.platform_fee_total_cents,
                                )
                                self.assertEqual(
                                    split.professional_share_cents + split.clinic_share_cents,
                                    amount - split.platform_fee_total_cents,
                                )
                                for value in split.as_dict().values():
                                    self.assertGreaterEqual(value, 0)

    def test_zero_amount_yields_all_zero(self):
        split = compute_split(0, Decimal("0.0599"), "commissioned", Decimal("0.5"), REFERRAL)
        self.assertEqual(set(split.as_dict().values()), {0})

    def test_is_deterministic(self):
        first = compute_split(777, Decimal("0.0599"), "commissioned", Decimal("0.35"), REFERRAL)
        second = compute_split(777, Decimal("0.0599"), "commissioned", Decimal("0.35"), REFERRAL)
        self.assertEqual(first, second)

    def test_rounds_half_up_to_whole_cents(self):
        # 50 * 0.01 = 0.5 -> 1
        split = compute_split(50, Decimal("0.01"), "commissioned", Decimal("0.5"))
        self.assertEqual(split.platform_fee_total_cents, 1)
        # remaining 49 * 0.5 = 24.5 -> 25 to the clinic
        self.assertEqual(split.clinic_share_cents, 25)
        self.assertEqual(split.professional_share_cents, 24)

    def test_referral_fee_is_capped_at_platform_fee_total(self):
        referral = ReferralContext(
            has_referral=True,
            referral_percent=Decimal("0.10"),
            referral_destination="wallet-referrer",
        )
        split = compute_split(10000, Decimal("0.0599"), "commissioned", Decimal("0.3"), referral)
        self.assertEqual(split.referral_fee_cents, 599)
        self.assertEqual(split.platform_fee_cents, 0)

    def test_missing_commission_rate_uses_default_half(self):
        split = compute_split(10000, Decimal("0"), "commissioned", None)
        self.assertEqual(split.clinic_share_cents, 5000)
        self.assertEqual(split.professional_share_cents, 5000)

    def test_inactive_referral_is_ignored(self):
        split = compute_split(10000, Decimal("0.0599"), "commissioned", Decimal("0.3"), ReferralContext.none())
        self.assertEqual(split.referral_fee_cents, 0)
        self.assertEqual(split.platform_fee_cents, 599)


class ComputeSplitValidationTests(SimpleTestCase):
    def test_rejects_negative_amount(self):
        with self.assertRaises(SplitCalculationError):
            compute_split(-1, Decimal("0.0599"), "commissioned", Decimal("0.3"))

    def test_rejects_non_integer_amount(self):
        for bad in (10.5, "100", True):
            with self.subTest(amount=bad), self.assertRaises(SplitCalculationError):
                compute_split(bad, Decimal("0.0599"), "commissioned", Decimal("0.3"))

    def test_rejects_out_of_range_rates(self):
        with self.assertRaises(SplitCalculationError):
            compute_split(100, Decimal("1.5"), "commissioned", Decimal("0.3"))
        with self.assertRaises(SplitCalculationError):
            compute_split(100, Decimal("0.05"), "commissioned", Decimal("-0.1"))
        with self.assertRaises(SplitCalculationError):
            compute_split(100, "NaN", "commissioned", Decimal("0.3"))

    def test_rejects_unknown_model(self):
        with self.assertRaises(SplitCalculationError):
            compute_split(100, Decimal("0.05"), "franchise", Decimal("0.3"))

    def test_split_error_is_a_value_error(self):
        self.assertTrue(issubclass(SplitCalculationError, ValueError))

    def test_referral_requires_destination(self):
        with self.assertRaises(SplitCalculationError):
            ReferralContext(has_referral=True, referral_percent=Decimal("0.0233"))


class TransferInstructionTests(SimpleTestCase):
    def test_builds_one_transfer_per_funded_beneficiary(self):
        split = compute_split(10000, Decimal("0.0599"), "commissioned", Decimal("0.3"), REFERRAL)
        items = build_transfer_instructions(
            split,
            professional_destination="wallet-pro",
            clinic_destination="wallet-clinic",
            platform_destination="wallet-platform",
            referral=REFERRAL,
        )

        self.assertEqual(
            [(item.beneficiary, item.destination, item.amount_cents) for item in items],
            [
                ("professional", "wallet-pro", 6581),
                ("clinic", "wallet-clinic", 2820),
                ("referral", "wallet-referrer", 233),
                ("platform", "wallet-platform", 366),
            ],
        )
        self.assertEqual(items[2].description, "Repasse B2B (2.33%)")

    def test_skips_zero_amounts_and_missing_wallets(self):
        split = compute_split(5000, Decimal("0.0599"), "rental", Decimal("0.3"))
        items = build_transfer_instructions(
            split,
            professional_destination="wallet-pro",
            clinic_destination="wallet-clinic",
            platform_destination="",
        )
        self.assertEqual([item.beneficiary for item in items], ["professional"])
