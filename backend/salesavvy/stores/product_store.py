from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session, selectinload

from salesavvy.errors import ConflictError, NotFoundError, ValidationError
from salesavvy.models.product import Product, PriceHistory


def price_as_of(history: Iterable[PriceHistory], as_of: Optional[date] = None) -> Optional[float]:
    """
    適用日が as_of 以前で最も新しい価格履歴の単価を返す。
    as_of が None の場合は最新の単価。該当がなければ None。
    """
    best = None
    for entry in history:
        if as_of is not None and entry.effdate > as_of:
            continue
        if best is None or entry.effdate > best.effdate:
            best = entry
    return best.unitprice if best is not None else None


def original_price(history: Iterable[PriceHistory]) -> Optional[float]:
    """最も古い価格履歴の単価（当初単価）"""
    entries = sorted(history, key=lambda e: e.effdate)
    return entries[0].unitprice if entries else None


class ProductStore:
    """商品と価格履歴のリポジトリ"""

    def __init__(self, db: Session):
        self.db = db

    def list_products(self) -> List[Product]:
        return (
            self.db.query(Product)
            .options(selectinload(Product.prices))
            .order_by(Product.prodcode)
            .all()
        )

    def find(self, prodcode: str) -> Optional[Product]:
        return self.db.get(Product, prodcode)

    def get(self, prodcode: str) -> Product:
        product = self.find(prodcode)
        if product is None:
            raise NotFoundError(f"商品 '{prodcode}' が見つかりません")
        return product

    def price_history(self, prodcode: str) -> List[PriceHistory]:
        self.get(prodcode)
        return (
            self.db.query(PriceHistory)
            .filter(PriceHistory.prodcode == prodcode)
            .order_by(PriceHistory.effdate.asc())
            .all()
        )

    def current_price(self, prodcode: str, as_of: Optional[date] = None) -> Optional[float]:
        query = self.db.query(PriceHistory).filter(PriceHistory.prodcode == prodcode)
        if as_of is not None:
            query = query.filter(PriceHistory.effdate <= as_of)
        latest = query.order_by(PriceHistory.effdate.desc()).first()
        return latest.unitprice if latest else None

    def add_product(
        self,
        prodcode: str,
        description: Optional[str] = None,
        unit: Optional[str] = None,
        unitprice: Optional[float] = None,
        effdate: Optional[date] = None,
    ) -> Product:
        if self.find(prodcode) is not None:
            raise ConflictError(f"商品コード '{prodcode}' は既に存在します")
        product = Product(prodcode=prodcode, description=description, unit=unit)
        if unitprice is not None:
            product.prices.append(
                PriceHistory(effdate=effdate or date.today(), unitprice=unitprice)
            )
        self.db.add(product)
        self.db.commit()
        self.db.refresh(product)
        return product

    def add_price(self, prodcode: str, effdate: date, unitprice: float) -> PriceHistory:
        """価格履歴を追記する。同じ適用日の行は上書きしない"""
        self.get(prodcode)
        if unitprice is None or unitprice < 0:
            raise ValidationError("単価は0以上で指定してください")
        if self.db.get(PriceHistory, (prodcode, effdate)) is not None:
            raise ConflictError(f"{effdate.isoformat()} の価格は既に登録されています")
        entry = PriceHistory(prodcode=prodcode, effdate=effdate, unitprice=unitprice)
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry
