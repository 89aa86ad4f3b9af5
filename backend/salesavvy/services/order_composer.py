"""
売上伝票の作成フロー（顧客・担当者・明細を組み立ててから一括登録する）

明細エディタは追加と編集で共用し、editing_index が None なら追加、
整数ならその位置の明細を編集中であることを表す。
"""

import threading
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from salesavvy.errors import ValidationError
from salesavvy.stores.product_store import ProductStore, original_price, price_as_of
from salesavvy.stores.sales_store import SalesStore


def _money(value: float) -> float:
    return round(value, 2)


@dataclass
class DraftLine:
    prodcode: str
    description: Optional[str]
    original_price: Optional[float]
    current_price: float
    quantity: int
    amount: float

    def as_dict(self) -> Dict[str, Any]:
        return {
            "prodcode": self.prodcode,
            "description": self.description,
            "original_price": self.original_price,
            "current_price": self.current_price,
            "quantity": self.quantity,
            "amount": self.amount,
        }


@dataclass
class ItemEditor:
    prodcode: Optional[str] = None
    description: Optional[str] = None
    original_price: Optional[float] = None
    current_price: Optional[float] = None
    quantity: int = 1
    amount: float = 0.0
    editing_index: Optional[int] = None

    @property
    def has_product(self) -> bool:
        return self.prodcode is not None and self.current_price is not None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "prodcode": self.prodcode,
            "description": self.description,
            "original_price": self.original_price,
            "current_price": self.current_price,
            "quantity": self.quantity,
            "amount": self.amount,
            "editing_index": self.editing_index,
            "mode": "add" if self.editing_index is None else "edit",
        }


@dataclass
class OrderComposer:
    custno: Optional[str] = None
    empno: Optional[str] = None
    salesdate: Optional[date] = field(default_factory=date.today)
    lines: List[DraftLine] = field(default_factory=list)
    total: float = 0.0
    editor: ItemEditor = field(default_factory=ItemEditor)

    # ヘッダー

    def set_header(
        self,
        custno: Optional[str] = None,
        empno: Optional[str] = None,
        salesdate: Optional[date] = None,
        products: Optional[ProductStore] = None,
    ) -> None:
        """売上日が変わった場合は明細とエディタの単価を新しい日付で引き直す"""
        if salesdate is not None and salesdate != self.salesdate:
            if self.lines or self.editor.has_product:
                if products is None:
                    raise ValueError("売上日の変更には ProductStore が必要です")
                self._reprice(products, salesdate)
            self.salesdate = salesdate
        if custno is not None:
            self.custno = custno or None
        if empno is not None:
            self.empno = empno or None

    def _reprice(self, products: ProductStore, as_of: date) -> None:
        codes = {line.prodcode for line in self.lines}
        if self.editor.has_product:
            codes.add(self.editor.prodcode)

        # 全商品の単価が解決できてから書き換える
        prices = {}
        for prodcode in sorted(codes):
            price = price_as_of(products.price_history(prodcode), as_of)
            if price is None:
                raise ValidationError(f"商品 '{prodcode}' には {as_of.isoformat()} 時点の単価がありません")
            prices[prodcode] = price

        for line in self.lines:
            line.current_price = prices[line.prodcode]
            line.amount = _money(line.current_price * line.quantity)
        if self.editor.has_product:
            self.editor.current_price = prices[self.editor.prodcode]
            self.editor.amount = _money(self.editor.current_price * self.editor.quantity)
        self._recompute_total()

    # 明細エディタ

    def select_product(self, products: ProductStore, prodcode: str) -> ItemEditor:
        """商品を選ぶと価格履歴から当初単価と現在単価を引き、数量1で初期化する"""
        product = products.get(prodcode)
        history = products.price_history(prodcode)
        current = price_as_of(history, self.salesdate)
        if current is None:
            raise ValidationError(f"商品 '{prodcode}' には有効な単価がありません")

        editing_index = self.editor.editing_index
        self.editor = ItemEditor(
            prodcode=product.prodcode,
            description=product.description,
            original_price=original_price(history),
            current_price=current,
            quantity=1,
            amount=_money(current),
            editing_index=editing_index,
        )
        return self.editor

    def change_quantity(self, quantity: int) -> ItemEditor:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError("数量は1以上の整数で指定してください")
        self.editor.quantity = quantity
        if self.editor.current_price is not None:
            self.editor.amount = _money(self.editor.current_price * quantity)
        return self.editor

    def begin_edit(self, index: int) -> ItemEditor:
        line = self._line_at(index)
        self.editor = ItemEditor(
            prodcode=line.prodcode,
            description=line.description,
            original_price=line.original_price,
            current_price=line.current_price,
            quantity=line.quantity,
            amount=line.amount,
            editing_index=index,
        )
        return self.editor

    def cancel_edit(self) -> None:
        self.editor = ItemEditor()

    def commit_line(self) -> DraftLine:
        """エディタの内容を明細に確定する（追加または編集中の明細を置換）"""
        editor = self.editor
        if not editor.has_product:
            raise ValidationError("商品を選択してください")

        for i, existing in enumerate(self.lines):
            if existing.prodcode == editor.prodcode and i != editor.editing_index:
                raise ValidationError(f"商品 '{editor.prodcode}' は既に明細にあります。既存の明細を編集してください")

        line = DraftLine(
            prodcode=editor.prodcode,
            description=editor.description,
            original_price=editor.original_price,
            current_price=editor.current_price,
            quantity=editor.quantity,
            amount=_money(editor.current_price * editor.quantity),
        )
        if editor.editing_index is None:
            self.lines.append(line)
        else:
            self._line_at(editor.editing_index)
            self.lines[editor.editing_index] = line

        self._recompute_total()
        self.editor = ItemEditor()
        return line

    def remove_line(self, index: int) -> DraftLine:
        removed = self._line_at(index)
        del self.lines[index]

        editing = self.editor.editing_index
        if editing is not None:
            if editing == index:
                self.editor = ItemEditor()
            elif editing > index:
                self.editor.editing_index = editing - 1

        self._recompute_total()
        return removed

    # 登録

    def missing_fields(self) -> List[str]:
        missing = []
        if not self.custno:
            missing.append("customer")
        if not self.empno:
            missing.append("employee")
        if not self.lines:
            missing.append("line items")
        return missing

    def submit(self, sales: SalesStore, idempotency_key: Optional[str] = None, created_by: Optional[int] = None):
        """
        顧客・担当者・明細1件以上が揃っていなければ何も書き込まずに ValidationError。
        揃っていればヘッダーと明細を1トランザクションで登録し、(sale, created) を返す。
        """
        missing = self.missing_fields()
        if missing:
            raise ValidationError("入力が不足しています: " + ", ".join(missing))

        sale, created = sales.create_order(
            custno=self.custno,
            empno=self.empno,
            salesdate=self.salesdate or date.today(),
            lines=[(line.prodcode, line.quantity) for line in self.lines],
            idempotency_key=idempotency_key,
            created_by=created_by,
        )
        return sale, created

    def reset(self) -> None:
        self.custno = None
        self.empno = None
        self.salesdate = date.today()
        self.lines = []
        self.total = 0.0
        self.editor = ItemEditor()

    def as_dict(self) -> Dict[str, Any]:
        return {
            "custno": self.custno,
            "empno": self.empno,
            "salesdate": self.salesdate.isoformat() if self.salesdate else None,
            "lines": [line.as_dict() for line in self.lines],
            "total": self.total,
            "editor": self.editor.as_dict(),
        }

    def _line_at(self, index: int) -> DraftLine:
        if index < 0 or index >= len(self.lines):
            raise ValidationError(f"明細 {index} は存在しません")
        return self.lines[index]

    def _recompute_total(self) -> None:
        self.total = _money(sum(line.amount for line in self.lines))


class DraftRegistry:
    """ユーザーごとの作成中伝票（プロセス内のみ保持）"""

    def __init__(self):
        self._drafts: Dict[int, OrderComposer] = {}
        self._user_locks: Dict[int, threading.RLock] = {}
        # 辞書の出し入れだけを守る。伝票の操作は lock_for() のユーザー単位ロックで行う
        self.lock = threading.Lock()

    def lock_for(self, user_id: int) -> threading.RLock:
        with self.lock:
            user_lock = self._user_locks.get(user_id)
            if user_lock is None:
                user_lock = threading.RLock()
                self._user_locks[user_id] = user_lock
            return user_lock

    def get(self, user_id: int) -> OrderComposer:
        with self.lock:
            draft = self._drafts.get(user_id)
            if draft is None:
                draft = OrderComposer()
                self._drafts[user_id] = draft
            return draft

    def discard(self, user_id: int) -> None:
        with self.lock:
            self._drafts.pop(user_id, None)

    def clear(self) -> None:
        with self.lock:
            self._drafts.clear()
            self._user_locks.clear()


draft_registry = DraftRegistry()
