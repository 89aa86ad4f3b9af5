from fastapi import APIRouter, Depends
from salesavvy.schemas import EmployeeCreate, EmployeeUpdate
from salesavvy.stores import get_employee_store
from salesavvy.stores.employee_store import EmployeeStore
from salesavvy.utils.jwt_auth import get_current_user, require_admin

router = APIRouter(prefix="/api/employees", tags=["employees"])

# 役職・部署は保存しない表示用の既定値
DEFAULT_POSITION = "Sales Representative"
DEFAULT_DEPARTMENT = "Sales"


def employee_row(e) -> dict:
    return {
        "empno": e.empno,
        "name": e.full_name,
        "firstname": e.firstname,
        "lastname": e.lastname,
        "gender": e.gender,
        "birthdate": e.birthdate.isoformat() if e.birthdate else None,
        "hiredate": e.hiredate.isoformat() if e.hiredate else None,
        "sepdate": e.sepdate.isoformat() if e.sepdate else None,
        "position": DEFAULT_POSITION,
        "department": DEFAULT_DEPARTMENT,
        "status": "Separated" if e.sepdate else "Active",
    }


@router.get("")
def list_employees(current_user=Depends(get_current_user), employees: EmployeeStore = Depends(get_employee_store)):
    """社員一覧"""
    rows = [employee_row(e) for e in employees.list_employees()]
    return {"data": rows, "count": len(rows)}


@router.get("/{empno}")
def get_employee(empno: str, current_user=Depends(get_current_user), employees: EmployeeStore = Depends(get_employee_store)):
    return employee_row(employees.get(empno))


@router.post("", status_code=201)
def create_employee(data: EmployeeCreate, current_user=Depends(require_admin), employees: EmployeeStore = Depends(get_employee_store)):
    """社員を追加（社員番号省略時は自動採番）"""
    fields = data.model_dump(exclude={"empno", "hiredate"})
    employee = employees.add(empno=data.empno, hiredate=data.hiredate, **fields)
    return {"success": True, "message": f"社員 '{employee.full_name}' を追加しました", "employee": employee_row(employee)}


@router.put("/{empno}")
def update_employee(
    empno: str,
    data: EmployeeUpdate,
    current_user=Depends(require_admin),
    employees: EmployeeStore = Depends(get_employee_store),
):
    employee = employees.update(empno, data.model_dump(exclude_unset=True))
    return {"success": True, "employee": employee_row(employee)}


@router.delete("/{empno}")
def delete_employee(empno: str, current_user=Depends(require_admin), employees: EmployeeStore = Depends(get_employee_store)):
    employees.delete(empno)
    return {"success": True, "message": f"社員 '{empno}' を削除しました"}
