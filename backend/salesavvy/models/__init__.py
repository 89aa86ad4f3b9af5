from salesavvy.models.employee import Employee
from salesavvy.models.product import Product, PriceHistory
from salesavvy.models.customer import Customer
from salesavvy.models.sales import Sale, SaleDetail, Payment
from salesavvy.models.user import User, UserPermission
from salesavvy.models.security_event import SecurityEvent

__all__ = [
    "Employee",
    "Product",
    "PriceHistory",
    "Customer",
    "Sale",
    "SaleDetail",
    "Payment",
    "User",
    "UserPermission",
    "SecurityEvent",
]
