from collections import defaultdict
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from salesavvy.models.employee import Employee
from salesavvy.stores.sales_store import SalesStore, sale_total

MONTH_LABELS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


class DashboardService:
    """ダッシュボード集計（単価は売上日時点で都度解決するため集計はPython側で行う）"""

    @staticmethod
    def get_summary(db: Session, year: Optional[int] = None):
        year = year or date.today().year
        sales = SalesStore(db).list_sales()

        monthly = defaultdict(float)
        by_employee = {}
        total_revenue = 0.0
        sales_in_year = 0

        for sale in sales:
            amount = sale_total(sale)
            total_revenue += amount

            if sale.salesdate and sale.salesdate.year == year:
                sales_in_year += 1
                monthly[sale.salesdate.month] += amount

            if sale.empno:
                entry = by_employee.setdefault(sale.empno, {
                    "empno": sale.empno,
                    "name": sale.employee.full_name if sale.employee else sale.empno,
                    "sales": 0.0,
                    "transaction_count": 0,
                })
                entry["sales"] += amount
                entry["transaction_count"] += 1

        active_employees = db.query(Employee).filter(Employee.sepdate.is_(None)).count()

        employee_performance = sorted(by_employee.values(), key=lambda e: e["sales"], reverse=True)
        for entry in employee_performance:
            entry["sales"] = round(entry["sales"], 2)

        return {
            "year": year,
            "total_revenue": round(total_revenue, 2),
            "sales_count": len(sales),
            "sales_count_in_year": sales_in_year,
            "active_employees": active_employees,
            "monthly_sales": [
                {"month": label, "sales": round(monthly.get(i, 0.0), 2)}
                for i, label in enumerate(MONTH_LABELS, start=1)
            ],
            "employee_performance": employee_performance,
        }
