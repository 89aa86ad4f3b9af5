from sqlalchemy import Column, String, Date
from salesavvy.database import Base


class Employee(Base):
    __tablename__ = "employee"

    empno = Column(String, primary_key=True, index=True)  # 社員番号
    firstname = Column(String, nullable=True)
    lastname = Column(String, nullable=True)
    gender = Column(String, nullable=True)
    birthdate = Column(Date, nullable=True)
    hiredate = Column(Date, nullable=True)
    sepdate = Column(Date, nullable=True)  # 退職日

    @property
    def full_name(self) -> str:
        parts = [p for p in (self.firstname, self.lastname) if p]
        return " ".join(parts) if parts else self.empno

    def __repr__(self):
        return f"<Employee {self.empno}: {self.full_name}>"
