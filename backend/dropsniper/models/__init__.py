from dropsniper.models.acquisition_attempt import AcquisitionAttempt
from dropsniper.models.drop_pattern import ConfirmedDropPattern
from dropsniper.models.target import Target, TargetStatus
from dropsniper.models.transfer import Transfer, TransferMethod, TransferStatus

__all__ = [
    "AcquisitionAttempt",
    "ConfirmedDropPattern",
    "Target",
    "TargetStatus",
    "Transfer",
    "TransferMethod",
    "TransferStatus",
]
