from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query
from salesavvy.schemas import ProductCreate, PriceCreate
from salesavvy.stores import get_product_store
from salesavvy.stores.product_store import ProductStore, original_price, price_as_of
from salesavvy.utils.jwt_auth import get_current_user, require_admin

router = APIRouter(prefix="/api/products", tags=["products"])


def product_row(product, as_of: Optional[date] = None) -> dict:
    return {
        "prodcode": product.prodcode,
        "description": product.description,
        "unit": product.unit,
        "current_price": price_as_of(product.prices, as_of),
    }


@router.get("")
def list_products(
    as_of: Optional[date] = Query(None),
    current_user=Depends(get_current_user),
    products: ProductStore = Depends(get_product_store),
):
    """商品一覧（as_of 指定時はその日時点の単価）"""
    rows = [product_row(p, as_of) for p in products.list_products()]
    return {"data": rows, "count": len(rows)}


@router.get("/{prodcode}")
def get_product(
    prodcode: str,
    as_of: Optional[date] = Query(None),
    current_user=Depends(get_current_user),
    products: ProductStore = Depends(get_product_store),
):
    """商品詳細と価格履歴"""
    product = products.get(prodcode)
    history = products.price_history(prodcode)
    return {
        **product_row(product, as_of),
        "original_price": original_price(history),
        "price_history": [
            {"effdate": h.effdate.isoformat(), "unitprice": h.unitprice}
            for h in history
        ],
    }


@router.post("", status_code=201)
def create_product(data: ProductCreate, current_user=Depends(require_admin), products: ProductStore = Depends(get_product_store)):
    product = products.add_product(
        data.prodcode,
        description=data.description,
        unit=data.unit,
        unitprice=data.unitprice,
        effdate=data.effdate,
    )
    return {"success": True, "product": product_row(product)}


@router.post("/{prodcode}/prices", status_code=201)
def add_price(
    prodcode: str,
    data: PriceCreate,
    current_user=Depends(require_admin),
    products: ProductStore = Depends(get_product_store),
):
    """価格履歴を追記する"""
    entry = products.add_price(prodcode, data.effdate, data.unitprice)
    return {
        "success": True,
        "price": {"prodcode": entry.prodcode, "effdate": entry.effdate.isoformat(), "unitprice": entry.unitprice},
    }
