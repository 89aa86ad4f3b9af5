from fastapi import Depends
from sqlalchemy.orm import Session

from salesavvy.database import get_db
from salesavvy.stores.customer_store import CustomerStore
from salesavvy.stores.employee_store import EmployeeStore
from salesavvy.stores.product_store import ProductStore
from salesavvy.stores.sales_store import SalesStore
from salesavvy.stores.user_store import UserStore


# ルートへ注入するための依存関係
def get_customer_store(db: Session = Depends(get_db)) -> CustomerStore:
    return CustomerStore(db)


def get_employee_store(db: Session = Depends(get_db)) -> EmployeeStore:
    return EmployeeStore(db)


def get_product_store(db: Session = Depends(get_db)) -> ProductStore:
    return ProductStore(db)


def get_sales_store(db: Session = Depends(get_db)) -> SalesStore:
    return SalesStore(db)


def get_user_store(db: Session = Depends(get_db)) -> UserStore:
    return UserStore(db)
