from .user_model import Users
from .plan_model import Plan
from .addon_package_model import AddonPackage
from .subscription_model import Subscription
from .subscription_history_model import SubscriptionHistory
from .tenant_addon_model import TenantAddon
from .billing_profile_model import BillingProfile
from .resource_models import Employee, Visitor, Appointment, SpotPass

__all__ = [
    "Users",
    "Plan",
    "AddonPackage",
    "Subscription",
    "SubscriptionHistory",
    "TenantAddon",
    "BillingProfile",
    "Employee",
    "Visitor",
    "Appointment",
    "SpotPass",
]
