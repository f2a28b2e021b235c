from enum import Enum


class ClassName(str, Enum):
    KG1 = "KG1"
    KG2 = "KG2"
    NURSERY = "Nursery"
    PRE_KG = "Pre-KG"


CLASS_OPTIONS = [c.value for c in ClassName]


class FeeStatus(str, Enum):
    pending = "pending"
    overdue = "overdue"
    paid = "paid"


class OtherPaymentStatus(str, Enum):
    pending = "pending"
    paid = "paid"


class NotificationType(str, Enum):
    fee_assigned = "fee_assigned"
    payment_reminder = "payment_reminder"
    payment_confirmed = "payment_confirmed"
    manual = "manual"


class NotificationStatus(str, Enum):
    pending = "pending"
    sent = "sent"
    failed = "failed"
    # Dropped before delivery: the fee it was about is paid or gone
    cancelled = "cancelled"


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    PARENT = "PARENT"
