import uuid


def new_id() -> str:
    """Server-assigned canonical identity."""
    return str(uuid.uuid4())


from .orders import Order  # noqa: E402
from .customers import Customer  # noqa: E402
from .promotions import Discount  # noqa: E402
from .cashflow import CashFlow  # noqa: E402
from .auth import AppUser  # noqa: E402
from .branches import Branch  # noqa: E402
from .settings import StoreSettings  # noqa: E402
from .changes import ChangeEvent  # noqa: E402

# Table name -> model, for the collections exposed over /api
TABLE_MODELS = {
    "orders": Order,
    "customers": Customer,
    "discounts": Discount,
    "cash_flows": CashFlow,
    "app_users": AppUser,
    "branches": Branch,
    "store_settings": StoreSettings,
}

__all__ = [
    'Order', 'Customer', 'Discount', 'CashFlow', 'AppUser', 'Branch',
    'StoreSettings', 'ChangeEvent', 'TABLE_MODELS', 'new_id',
]
