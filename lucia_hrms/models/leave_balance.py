from sqlalchemy import Column, Integer, Float, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import relationship
from lucia_hrms.database import Base
from lucia_hrms.models.leave_request import LeaveType


class LeaveBalance(Base):
    __tablename__ = "leave_balances"
    __table_args__ = (
        UniqueConstraint("employee_id", "year", "leave_type", name="uq_leave_balance_employee_year_type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type = Column(Enum(LeaveType), nullable=False, index=True)
    year = Column(Integer, nullable=False)
    total_allowed = Column(Float, default=0.0, nullable=False)
    carried_forward = Column(Float, default=0.0, nullable=False)
    used = Column(Float, default=0.0, nullable=False)
    pending = Column(Float, default=0.0, nullable=False)

    employee = relationship("Employee", back_populates="leave_balances")

    @hybrid_property
    def available(self):
        # Works both on instances and as a SQL expression for conditional updates
        return self.total_allowed + self.carried_forward - self.used - self.pending
