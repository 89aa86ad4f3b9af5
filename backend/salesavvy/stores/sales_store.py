import logging
import uuid
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import FlushError

from salesavvy.errors import ConflictError, NotFoundError, ValidationError
from salesavvy.models.customer import Customer
from salesavvy.models.employee import Employee
from salesavvy.models.product import Product
from salesavvy.models.sales import Sale, SaleDetail
from salesavvy.stores.product_store import price_as_of

logger = logging.getLogger("salesavvy.sales")


def new_transno() -> str:
    return f"TR{uuid.uuid4().hex[:12].upper()}"


def priced_lines(sale: Sale) -> List[Dict[str, Any]]:
    """明細ごとに売上日時点の単価を解決して金額を計算する"""
    lines = []
    for detail in sale.details:
        product = detail.product
        unit_price = price_as_of(product.prices, sale.salesdate) if product else None
        quantity = detail.quantity or 0
        amount = round(unit_price * quantity, 2) if unit_price is not None else 0.0
        lines.append({
            "prodcode": detail.prodcode,
            "description": product.description if product else None,
            "unit": product.unit if product else None,
            "quantity": quantity,
            "unit_price": unit_price,
            "amount": amount,
        })
    return lines


def sale_total(sale: Sale) -> float:
    return round(sum(line["amount"] for line in priced_lines(sale)), 2)


def sale_rows(sale: Sale) -> List[Dict[str, Any]]:
    """一覧表示用の行（登録済みの明細から作る）。明細ごとに重複しないIDを振る"""
    return [
        {
            "id": f"{sale.transno}-{n}",
            "transno": sale.transno,
            "salesdate": sale.salesdate.isoformat() if sale.salesdate else None,
            "custno": sale.custno,
            "customer_name": sale.customer.custname if sale.customer else None,
            "empno": sale.empno,
            "employee_name": sale.employee.full_name if sale.employee else None,
            **line,
        }
        for n, line in enumerate(priced_lines(sale), start=1)
    ]


class SalesStore:
    """売上ヘッダー・明細のリポジトリ"""

    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(Sale).options(
            selectinload(Sale.customer),
            selectinload(Sale.employee),
            selectinload(Sale.details).selectinload(SaleDetail.product).selectinload(Product.prices),
            selectinload(Sale.payments),
        )

    def list_sales(self) -> List[Sale]:
        return self._query().order_by(Sale.salesdate.desc(), Sale.transno).all()

    def find(self, transno: str) -> Optional[Sale]:
        return self._query().filter(Sale.transno == transno).first()

    def get(self, transno: str) -> Sale:
        sale = self.find(transno)
        if sale is None:
            raise NotFoundError(f"売上 '{transno}' が見つかりません")
        return sale

    def find_by_idempotency_key(self, key: str, created_by: Optional[int] = None) -> Optional[Sale]:
        # created_by が None なら IS NULL で比較される
        return (
            self._query()
            .filter(Sale.idempotency_key == key, Sale.created_by == created_by)
            .first()
        )

    def _resubmitted(
        self,
        key: str,
        created_by: Optional[int],
        custno: str,
        empno: str,
        salesdate: date,
        lines: Sequence[Tuple[str, int]],
    ) -> Optional[Sale]:
        """同じキーで登録済みの売上を返す。内容が異なる再送は ConflictError"""
        existing = self.find_by_idempotency_key(key, created_by)
        if existing is None:
            return None
        same_lines = sorted((d.prodcode, d.quantity) for d in existing.details) == sorted(lines)
        if (existing.custno, existing.empno, existing.salesdate) != (custno, empno, salesdate) or not same_lines:
            logger.warning("idempotency key reused with different order: key=%s transno=%s", key, existing.transno)
            raise ConflictError(f"キー '{key}' は別の内容の売上 {existing.transno} で使用済みです")
        logger.info("order resubmitted: key=%s transno=%s", key, existing.transno)
        return existing

    def _issue_transno(self) -> str:
        for _ in range(5):
            candidate = new_transno()
            if self.db.get(Sale, candidate) is None:
                return candidate
        raise ConflictError("取引番号を採番できませんでした。再度お試しください")

    def _require_refs(self, custno: Optional[str], empno: Optional[str]) -> None:
        if custno is not None and self.db.get(Customer, custno) is None:
            raise NotFoundError(f"顧客 '{custno}' が見つかりません")
        if empno is not None and self.db.get(Employee, empno) is None:
            raise NotFoundError(f"社員 '{empno}' が見つかりません")

    def _require_product(self, prodcode: str) -> None:
        if self.db.get(Product, prodcode) is None:
            raise NotFoundError(f"商品 '{prodcode}' が見つかりません")

    def create_order(
        self,
        custno: str,
        empno: str,
        salesdate: date,
        lines: Sequence[Tuple[str, int]],
        idempotency_key: Optional[str] = None,
        created_by: Optional[int] = None,
    ) -> Tuple[Sale, bool]:
        """
        ヘッダーと全明細を1トランザクションで登録する。
        同じユーザーが同じ idempotency_key・同じ内容で登録済みなら既存の売上を返す（created=False）。
        """
        lines = [(prodcode, quantity) for prodcode, quantity in lines]
        if idempotency_key:
            existing = self._resubmitted(idempotency_key, created_by, custno, empno, salesdate, lines)
            if existing is not None:
                return existing, False

        if not lines:
            raise ValidationError("明細が1件以上必要です")
        self._require_refs(custno, empno)
        for prodcode, _ in lines:
            self._require_product(prodcode)

        sale = Sale(
            transno=self._issue_transno(),
            custno=custno,
            empno=empno,
            salesdate=salesdate,
            idempotency_key=idempotency_key,
            created_by=created_by,
        )
        for line_no, (prodcode, quantity) in enumerate(lines, start=1):
            sale.details.append(SaleDetail(prodcode=prodcode, quantity=quantity, line_no=line_no))
        self.db.add(sale)

        try:
            self.db.commit()
        except (IntegrityError, FlushError) as e:
            self.db.rollback()
            if idempotency_key:
                # 同時送信で先に登録された側があればそれを返す
                existing = self._resubmitted(idempotency_key, created_by, custno, empno, salesdate, lines)
                if existing is not None:
                    return existing, False
            logger.warning("order rejected by constraint: %s", getattr(e, "orig", e))
            raise ConflictError("売上の登録に失敗しました（明細の重複または参照エラー）")
        except Exception:
            self.db.rollback()
            logger.exception("order insert failed: cust=%s emp=%s", custno, empno)
            raise

        logger.info("order created: transno=%s lines=%d", sale.transno, len(lines))
        return self.get(sale.transno), True

    def update_header(self, transno: str, changes: Dict[str, Any]) -> Sale:
        sale = self.get(transno)
        self._require_refs(changes.get("custno"), changes.get("empno"))
        for key in ("custno", "empno", "salesdate"):
            if key in changes and changes[key] is not None:
                setattr(sale, key, changes[key])
        self.db.commit()
        return self.get(transno)

    def delete(self, transno: str) -> None:
        sale = self.get(transno)
        self.db.delete(sale)
        self.db.commit()
        logger.info("sale deleted: transno=%s", transno)

    def _detail(self, sale: Sale, prodcode: str) -> SaleDetail:
        for detail in sale.details:
            if detail.prodcode == prodcode:
                return detail
        raise NotFoundError(f"売上 '{sale.transno}' に商品 '{prodcode}' の明細はありません")

    def add_line(self, transno: str, prodcode: str, quantity: int) -> Sale:
        sale = self.get(transno)
        self._require_product(prodcode)
        if any(d.prodcode == prodcode for d in sale.details):
            raise ConflictError(f"商品 '{prodcode}' は既に明細にあります")
        next_no = max((d.line_no or 0 for d in sale.details), default=0) + 1
        sale.details.append(SaleDetail(prodcode=prodcode, quantity=quantity, line_no=next_no))
        self.db.commit()
        return self.get(transno)

    def update_line(self, transno: str, prodcode: str, quantity: int) -> Sale:
        sale = self.get(transno)
        self._detail(sale, prodcode).quantity = quantity
        self.db.commit()
        return self.get(transno)

    def delete_line(self, transno: str, prodcode: str) -> Sale:
        sale = self.get(transno)
        sale.details.remove(self._detail(sale, prodcode))
        self.db.commit()
        return self.get(transno)
