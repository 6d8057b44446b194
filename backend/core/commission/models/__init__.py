from commission.models.profile import CommissionModel, ProfessionalProfile
from commission.models.referral import ClinicReferral, ReferralRule

__all__ = [
    "CommissionModel",
    "ProfessionalProfile",
    "ClinicReferral",
    "ReferralRule",
]
