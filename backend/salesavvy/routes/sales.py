from datetime import date
from fastapi import APIRouter, Depends
from salesavvy.permissions import Permission
from salesavvy.schemas import (
    OrderCreate,
    SaleHeaderUpdate,
    SaleLineCreate,
    SaleLineUpdate,
    DraftHeaderUpdate,
    DraftProductSelect,
    DraftQuantityUpdate,
    DraftSubmit,
)
from salesavvy.services.order_composer import OrderComposer, draft_registry
from salesavvy.stores import get_product_store, get_sales_store
from salesavvy.stores.product_store import ProductStore
from salesavvy.stores.sales_store import SalesStore, priced_lines, sale_rows
from salesavvy.utils.jwt_auth import get_current_user, require_permission

router = APIRouter(prefix="/api/sales", tags=["sales"])


def _name(obj, attr):
    return getattr(obj, attr) if obj is not None else None


def sale_summary(sale) -> dict:
    lines = priced_lines(sale)
    return {
        "transno": sale.transno,
        "salesdate": sale.salesdate.isoformat() if sale.salesdate else None,
        "custno": sale.custno,
        "customer_name": _name(sale.customer, "custname"),
        "empno": sale.empno,
        "employee_name": _name(sale.employee, "full_name"),
        "line_count": len(lines),
        "total": round(sum(line["amount"] for line in lines), 2),
    }


def sale_detail(sale) -> dict:
    lines = priced_lines(sale)
    subtotal = round(sum(line["amount"] for line in lines), 2)
    payments = [
        {
            "orno": p.orno,
            "paydate": p.paydate.isoformat() if p.paydate else None,
            "amount": p.amount,
        }
        for p in sale.payments
    ]
    paid = round(sum(p.amount or 0 for p in sale.payments), 2)
    return {
        **sale_summary(sale),
        "lines": lines,
        "subtotal": subtotal,
        "payments": payments,
        "paid": paid,
        "balance": round(subtotal - paid, 2),
    }


def _submitted(sale, created: bool) -> dict:
    return {
        "success": True,
        "created": created,
        "message": f"売上 {sale.transno} を登録しました" if created else f"売上 {sale.transno} は登録済みです",
        "sale": sale_detail(sale),
        "rows": sale_rows(sale),
    }


@router.get("")
def list_sales(current_user=Depends(get_current_user), sales: SalesStore = Depends(get_sales_store)):
    """売上一覧（合計は売上日時点の単価で計算）"""
    rows = [sale_summary(s) for s in sales.list_sales()]
    return {"data": rows, "count": len(rows)}


@router.post("/orders", status_code=201)
def create_order(
    data: OrderCreate,
    current_user=Depends(require_permission(Permission.ADD_SALES, Permission.ADD_SALES_DETAIL)),
    sales: SalesStore = Depends(get_sales_store),
    products: ProductStore = Depends(get_product_store),
):
    """伝票を一括登録する（作成フローと同じ検証を通す）"""
    composer = OrderComposer(salesdate=data.salesdate or date.today())
    composer.set_header(custno=data.custno, empno=data.empno)
    for line in data.lines:
        composer.select_product(products, line.prodcode)
        composer.change_quantity(line.quantity)
        composer.commit_line()

    sale, created = composer.submit(sales, idempotency_key=data.idempotency_key, created_by=current_user.id)
    return _submitted(sale, created)


# 作成中伝票（ユーザーごと）

@router.get("/draft")
def get_draft(current_user=Depends(get_current_user)):
    with draft_registry.lock_for(current_user.id):
        return draft_registry.get(current_user.id).as_dict()


@router.put("/draft/header")
def update_draft_header(
    data: DraftHeaderUpdate,
    current_user=Depends(get_current_user),
    products: ProductStore = Depends(get_product_store),
):
    """ヘッダーを更新する。売上日を変えると入力済みの明細は新しい日付の単価で計算し直す"""
    with draft_registry.lock_for(current_user.id):
        draft = draft_registry.get(current_user.id)
        draft.set_header(custno=data.custno, empno=data.empno, salesdate=data.salesdate, products=products)
        return draft.as_dict()


@router.post("/draft/editor/product")
def select_draft_product(
    data: DraftProductSelect,
    current_user=Depends(get_current_user),
    products: ProductStore = Depends(get_product_store),
):
    with draft_registry.lock_for(current_user.id):
        draft = draft_registry.get(current_user.id)
        draft.select_product(products, data.prodcode)
        return draft.as_dict()


@router.put("/draft/editor/quantity")
def change_draft_quantity(data: DraftQuantityUpdate, current_user=Depends(get_current_user)):
    with draft_registry.lock_for(current_user.id):
        draft = draft_registry.get(current_user.id)
        draft.change_quantity(data.quantity)
        return draft.as_dict()


@router.post("/draft/editor/commit")
def commit_draft_line(current_user=Depends(get_current_user)):
    with draft_registry.lock_for(current_user.id):
        draft = draft_registry.get(current_user.id)
        draft.commit_line()
        return draft.as_dict()


@router.delete("/draft/editor")
def cancel_draft_edit(current_user=Depends(get_current_user)):
    with draft_registry.lock_for(current_user.id):
        draft = draft_registry.get(current_user.id)
        draft.cancel_edit()
        return draft.as_dict()


@router.post("/draft/lines/{index}/edit")
def edit_draft_line(index: int, current_user=Depends(get_current_user)):
    with draft_registry.lock_for(current_user.id):
        draft = draft_registry.get(current_user.id)
        draft.begin_edit(index)
        return draft.as_dict()


@router.delete("/draft/lines/{index}")
def remove_draft_line(index: int, current_user=Depends(get_current_user)):
    with draft_registry.lock_for(current_user.id):
        draft = draft_registry.get(current_user.id)
        draft.remove_line(index)
        return draft.as_dict()


@router.post("/draft/submit", status_code=201)
def submit_draft(
    data: DraftSubmit,
    current_user=Depends(require_permission(Permission.ADD_SALES, Permission.ADD_SALES_DETAIL)),
    sales: SalesStore = Depends(get_sales_store),
):
    with draft_registry.lock_for(current_user.id):
        draft = draft_registry.get(current_user.id)
        sale, created = draft.submit(sales, idempotency_key=data.idempotency_key, created_by=current_user.id)
        result = _submitted(sale, created)
        draft.reset()
        return result


@router.delete("/draft")
def discard_draft(current_user=Depends(get_current_user)):
    draft_registry.discard(current_user.id)
    return {"success": True, "message": "作成中の伝票を破棄しました"}


# 登録済み売上

@router.get("/{transno}")
def get_sale(transno: str, current_user=Depends(get_current_user), sales: SalesStore = Depends(get_sales_store)):
    """売上詳細（明細ごとの単価・金額、入金、残高）"""
    return sale_detail(sales.get(transno))


@router.put("/{transno}")
def update_sale(
    transno: str,
    data: SaleHeaderUpdate,
    current_user=Depends(require_permission(Permission.EDIT_SALES)),
    sales: SalesStore = Depends(get_sales_store),
):
    sale = sales.update_header(transno, data.model_dump(exclude_unset=True))
    return {"success": True, "sale": sale_detail(sale)}


@router.delete("/{transno}")
def delete_sale(
    transno: str,
    current_user=Depends(require_permission(Permission.DELETE_SALES)),
    sales: SalesStore = Depends(get_sales_store),
):
    sales.delete(transno)
    return {"success": True, "message": f"売上 {transno} を削除しました"}


@router.post("/{transno}/lines", status_code=201)
def add_sale_line(
    transno: str,
    data: SaleLineCreate,
    current_user=Depends(require_permission(Permission.ADD_SALES_DETAIL)),
    sales: SalesStore = Depends(get_sales_store),
):
    sale = sales.add_line(transno, data.prodcode, data.quantity)
    return {"success": True, "sale": sale_detail(sale)}


@router.put("/{transno}/lines/{prodcode}")
def update_sale_line(
    transno: str,
    prodcode: str,
    data: SaleLineUpdate,
    current_user=Depends(require_permission(Permission.EDIT_SALES_DETAIL)),
    sales: SalesStore = Depends(get_sales_store),
):
    sale = sales.update_line(transno, prodcode, data.quantity)
    return {"success": True, "sale": sale_detail(sale)}


@router.delete("/{transno}/lines/{prodcode}")
def delete_sale_line(
    transno: str,
    prodcode: str,
    current_user=Depends(require_permission(Permission.DELETE_SALES_DETAIL)),
    sales: SalesStore = Depends(get_sales_store),
):
    sale = sales.delete_line(transno, prodcode)
    return {"success": True, "sale": sale_detail(sale)}
