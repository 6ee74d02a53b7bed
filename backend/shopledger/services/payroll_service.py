# Overview: Monthly salary run: settles every employee balance and books one salary expense.

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..extensions import db
from ..models import Employee, Expense
from ..time_utils import utcnow
from .concurrency import atomic
from .settings_service import get_currency_settings
from .balance_book import settle


logger = logging.getLogger(__name__)

EXPENSE_CATEGORY_SALARY = "salary"


@dataclass
class PayrollResult:
    payouts: list[dict] = field(default_factory=list)
    expense: Expense | None = None

    @property
    def total_paid(self) -> float:
        return sum(p["net_payout"] for p in self.payouts)

    def to_dict(self) -> dict:
        return {
            "payouts": self.payouts,
            "total_paid": self.total_paid,
            "expense": self.expense.to_dict() if self.expense else None,
        }


def pay_salaries() -> PayrollResult:
    """
    Pay each employee monthly_salary - balance and zero the balance.

    Advances already taken are part of the balance, so they are netted out of
    the payout. One salary_payment transaction per employee, one salary
    expense for the whole run (gross salaries, base currency).
    """
    def _op():
        settings = get_currency_settings()
        result = PayrollResult()
        period = utcnow().strftime("%Y-%m")
        gross = 0.0

        for employee in db.session.query(Employee).order_by(Employee.name.asc()).all():
            salary = employee.monthly_salary or 0.0
            advances = employee.balance or 0.0
            if salary == 0 and employee.has_zero_balance() and advances == 0:
                continue
            net = salary - advances
            settle(
                employee,
                type="salary_payment",
                base_currency=settings.base_currency,
                description=f"Salary {period}: {salary:.2f} less advances {advances:.2f}, paid {net:.2f}",
            )
            gross += salary
            result.payouts.append({
                "employee_id": employee.id,
                "name": employee.name,
                "monthly_salary": salary,
                "advances": advances,
                "net_payout": net,
            })

        if result.payouts:
            result.expense = Expense(
                category=EXPENSE_CATEGORY_SALARY,
                description=f"Salaries {period}",
                amount=gross,
                date=utcnow(),
            )
            db.session.add(result.expense)
        logger.info("Payroll %s paid %s employees, %.2f net", period, len(result.payouts), result.total_paid)
        return result

    return atomic(_op)
