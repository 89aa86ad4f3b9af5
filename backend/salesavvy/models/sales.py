from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Float, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from salesavvy.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class Sale(Base):
    """売上ヘッダー"""
    __tablename__ = "sales"
    # 再送判定キーは登録ユーザーごとに一意
    __table_args__ = (UniqueConstraint("created_by", "idempotency_key", name="uq_sales_creator_idempotency"),)

    transno = Column(String, primary_key=True, index=True)  # 取引番号（サーバー採番）
    custno = Column(String, ForeignKey("customer.custno"), nullable=True)
    empno = Column(String, ForeignKey("employee.empno"), nullable=True)
    salesdate = Column(Date, nullable=True)
    # 同一注文の再送を判定するためのクライアント生成キー
    idempotency_key = Column(String, nullable=True, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=_utcnow)

    customer = relationship("Customer")
    employee = relationship("Employee")
    details = relationship(
        "SaleDetail",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleDetail.line_no",
    )
    payments = relationship("Payment", back_populates="sale", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Sale {self.transno} cust={self.custno} emp={self.empno} date={self.salesdate}>"


class SaleDetail(Base):
    """売上明細。単価は保持せず、参照時に価格履歴から解決する"""
    __tablename__ = "salesdetail"

    transno = Column(String, ForeignKey("sales.transno"), primary_key=True)
    prodcode = Column(String, ForeignKey("product.prodcode"), primary_key=True)
    quantity = Column(Integer, nullable=True)
    line_no = Column(Integer, default=0)  # 表示順

    sale = relationship("Sale", back_populates="details")
    product = relationship("Product")


class Payment(Base):
    __tablename__ = "payment"

    orno = Column(String, primary_key=True)  # 領収書番号
    transno = Column(String, ForeignKey("sales.transno"), nullable=True)
    paydate = Column(Date, nullable=True)
    amount = Column(Float, nullable=True)

    sale = relationship("Sale", back_populates="payments")
