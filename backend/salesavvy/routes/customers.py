from fastapi import APIRouter, Depends
from salesavvy.schemas import CustomerCreate
from salesavvy.stores import get_customer_store
from salesavvy.stores.customer_store import CustomerStore
from salesavvy.utils.jwt_auth import get_current_user, require_admin

router = APIRouter(prefix="/api/customers", tags=["customers"])


def customer_row(c) -> dict:
    return {
        "custno": c.custno,
        "custname": c.custname,
        "address": c.address,
        "payterm": c.payterm,
    }


@router.get("")
def list_customers(current_user=Depends(get_current_user), customers: CustomerStore = Depends(get_customer_store)):
    rows = [customer_row(c) for c in customers.list_customers()]
    return {"data": rows, "count": len(rows)}


@router.post("", status_code=201)
def create_customer(data: CustomerCreate, current_user=Depends(require_admin), customers: CustomerStore = Depends(get_customer_store)):
    customer = customers.add(data.custno, data.custname, address=data.address, payterm=data.payterm)
    return {"success": True, "customer": customer_row(customer)}
