import secrets
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from salesavvy.errors import ConflictError, NotFoundError
from salesavvy.models.employee import Employee
from salesavvy.models.sales import Sale

_EDITABLE_FIELDS = ("firstname", "lastname", "gender", "birthdate", "hiredate", "sepdate")


class EmployeeStore:
    def __init__(self, db: Session):
        self.db = db

    def list_employees(self) -> List[Employee]:
        return self.db.query(Employee).order_by(Employee.empno).all()

    def find(self, empno: str) -> Optional[Employee]:
        return self.db.get(Employee, empno)

    def get(self, empno: str) -> Employee:
        employee = self.find(empno)
        if employee is None:
            raise NotFoundError(f"社員 '{empno}' が見つかりません")
        return employee

    def _new_empno(self) -> str:
        # EMP + 4桁。空き番号が見つかるまで振り直す
        for _ in range(100):
            candidate = f"EMP{1000 + secrets.randbelow(9000)}"
            if self.find(candidate) is None:
                return candidate
        raise ConflictError("社員番号を採番できませんでした")

    def add(self, empno: Optional[str] = None, hiredate: Optional[date] = None, **fields: Any) -> Employee:
        if empno and self.find(empno) is not None:
            raise ConflictError(f"社員番号 '{empno}' は既に存在します")
        employee = Employee(
            empno=empno or self._new_empno(),
            hiredate=hiredate or date.today(),
            **{k: v for k, v in fields.items() if k in _EDITABLE_FIELDS},
        )
        self.db.add(employee)
        self.db.commit()
        self.db.refresh(employee)
        return employee

    def update(self, empno: str, changes: Dict[str, Any]) -> Employee:
        employee = self.get(empno)
        for key, value in changes.items():
            if key in _EDITABLE_FIELDS:
                setattr(employee, key, value)
        self.db.commit()
        self.db.refresh(employee)
        return employee

    def delete(self, empno: str) -> None:
        employee = self.get(empno)
        in_use = self.db.query(Sale).filter(Sale.empno == empno).count()
        if in_use:
            raise ConflictError(f"社員 '{empno}' は {in_use} 件の売上で担当者になっているため削除できません")
        self.db.delete(employee)
        self.db.commit()
