from chalkboard.models.pricing_package import PricingPackage, BillingMode
from chalkboard.models.table import Table, TableStatus
from chalkboard.models.staff import Staff
from chalkboard.models.payment import Payment, PaymentStatus, PAYMENT_TRANSITIONS
from chalkboard.models.table_session import TableSession, TableSessionStatus, SESSION_TRANSITIONS
from chalkboard.models.fnb_category import FnbCategory
from chalkboard.models.fnb_item import FnbItem
from chalkboard.models.fnb_order import FnbOrder, FnbOrderStatus, ORDER_TRANSITIONS
from chalkboard.models.fnb_order_item import FnbOrderItem
from chalkboard.models.system_setting import SystemSetting
