from sqlalchemy import Column, String, Float, Date, ForeignKey
from sqlalchemy.orm import relationship
from salesavvy.database import Base


class Product(Base):
    __tablename__ = "product"

    prodcode = Column(String, primary_key=True, index=True)
    description = Column(String, nullable=True)
    unit = Column(String, nullable=True)  # 単位（pc, box など）

    # 価格は商品ではなく価格履歴に持つ
    prices = relationship(
        "PriceHistory",
        back_populates="product",
        order_by="PriceHistory.effdate",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Product {self.prodcode}: {self.description}>"


class PriceHistory(Base):
    """価格履歴（追記のみ）。適用日以降その単価が有効"""
    __tablename__ = "pricehist"

    prodcode = Column(String, ForeignKey("product.prodcode"), primary_key=True)
    effdate = Column(Date, primary_key=True)
    unitprice = Column(Float, nullable=True)

    product = relationship("Product", back_populates="prices")

    def __repr__(self):
        return f"<PriceHistory {self.prodcode} {self.effdate}: {self.unitprice}>"
