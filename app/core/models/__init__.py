from app.core.models.academic_year import AcademicYear
from app.core.models.billing_period import BillingPeriod
from app.core.models.student import Student
from app.core.models.fee_record import FeeRecord
from app.core.models.other_payment import OtherPayment
from app.core.models.notification import Notification

__all__ = [
    "AcademicYear",
    "BillingPeriod",
    "Student",
    "FeeRecord",
    "OtherPayment",
    "Notification",
]
