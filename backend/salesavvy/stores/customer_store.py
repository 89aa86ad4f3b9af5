from typing import List, Optional

from sqlalchemy.orm import Session

from salesavvy.errors import ConflictError, NotFoundError
from salesavvy.models.customer import Customer


class CustomerStore:
    def __init__(self, db: Session):
        self.db = db

    def list_customers(self) -> List[Customer]:
        return self.db.query(Customer).order_by(Customer.custname, Customer.custno).all()

    def find(self, custno: str) -> Optional[Customer]:
        return self.db.get(Customer, custno)

    def get(self, custno: str) -> Customer:
        customer = self.find(custno)
        if customer is None:
            raise NotFoundError(f"顧客 '{custno}' が見つかりません")
        return customer

    def add(self, custno: str, custname: str, address: Optional[str] = None, payterm: Optional[str] = None) -> Customer:
        if self.find(custno) is not None:
            raise ConflictError(f"顧客番号 '{custno}' は既に存在します")
        customer = Customer(custno=custno, custname=custname, address=address, payterm=payterm)
        self.db.add(customer)
        self.db.commit()
        self.db.refresh(customer)
        return customer
