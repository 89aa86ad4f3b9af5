from sqlalchemy import Column, String
from salesavvy.database import Base


class Customer(Base):
    __tablename__ = "customer"

    custno = Column(String, primary_key=True, index=True)
    custname = Column(String, nullable=True)
    address = Column(String, nullable=True)
    payterm = Column(String, nullable=True)  # 支払条件（COD, 30D など）

    def __repr__(self):
        return f"<Customer {self.custno}: {self.custname}>"
