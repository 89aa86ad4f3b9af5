from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from salesavvy.database import get_db
from salesavvy.services.dashboard_service import DashboardService
from salesavvy.utils.jwt_auth import get_current_user

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/summary")
def get_dashboard_summary(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    current_user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """売上合計・件数・在籍社員数・月別推移・担当者別実績"""
    return DashboardService.get_summary(db, year)
