from __future__ import annotations

import itertools
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from models import DEFAULT_CATEGORY_COLOR, Category, Expense, User
from periods import to_utc


@dataclass(frozen=True)
class ExpenseRecord:
    id: int
    user_id: int
    amount: Decimal
    category_id: Optional[int]
    date: datetime
    created_at: datetime
    description: Optional[str] = None


@dataclass(frozen=True)
class CategoryRecord:
    id: int
    user_id: int
    name: str
    color: str
    order: int = 0


class ExpenseStore(Protocol):
    def expenses_for_user(
        self, user_id: int, category_id: Optional[int] = None
    ) -> list[ExpenseRecord]: ...

    def categories_for_user(self, user_id: int) -> list[CategoryRecord]: ...

    def user_timezone(self, user_id: int) -> Optional[str]: ...


def expense_record(expense: Expense) -> ExpenseRecord:
    return ExpenseRecord(
        id=int(expense.id),
        user_id=int(expense.user_id),
        amount=Decimal(expense.amount),
        category_id=(
            int(expense.category_id) if expense.category_id is not None else None
        ),
        date=to_utc(expense.date),
        created_at=to_utc(expense.created_at),
        description=expense.description,
    )


def category_record(category: Category) -> CategoryRecord:
    return CategoryRecord(
        id=int(category.id),
        user_id=int(category.user_id),
        name=category.name,
        color=category.color or DEFAULT_CATEGORY_COLOR,
        order=category.order or 0,
    )


class SQLExpenseStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def expenses_for_user(
        self, user_id: int, category_id: Optional[int] = None
    ) -> list[ExpenseRecord]:
        stmt = (
            select(Expense)
            .where(Expense.user_id == user_id)
            .order_by(Expense.date.desc(), Expense.id.desc())
        )
        if category_id is not None:
            stmt = stmt.where(Expense.category_id == category_id)
        return [expense_record(e) for e in self.session.scalars(stmt).all()]

    def categories_for_user(self, user_id: int) -> list[CategoryRecord]:
        stmt = (
            select(Category)
            .where(Category.user_id == user_id)
            .order_by(Category.order, Category.name)
        )
        return [category_record(c) for c in self.session.scalars(stmt).all()]

    def user_timezone(self, user_id: int) -> Optional[str]:
        return self.session.scalar(select(User.timezone).where(User.id == user_id))


class MemoryExpenseStore:
    """Document-style store keeping plain dicts in process memory."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._expenses: list[dict] = []
        self._categories: list[dict] = []
        self._timezones: dict[int, str] = {}

    def set_timezone(self, user_id: int, tz_name: str) -> None:
        self._timezones[user_id] = tz_name

    def add_category(
        self,
        user_id: int,
        name: str,
        color: str = DEFAULT_CATEGORY_COLOR,
        order: int = 0,
    ) -> CategoryRecord:
        doc = {
            "id": next(self._ids),
            "userId": user_id,
            "name": name,
            "color": color,
            "order": order,
        }
        self._categories.append(doc)
        return self._category_from_doc(doc)

    def add_expense(
        self,
        user_id: int,
        amount: Decimal | int | float | str,
        date: datetime,
        category_id: Optional[int] = None,
        description: Optional[str] = None,
    ) -> ExpenseRecord:
        amount = Decimal(str(amount))
        if amount <= 0:
            raise ValueError("Amount must be positive")
        doc = {
            "id": next(self._ids),
            "userId": user_id,
            "amount": amount,
            "categoryId": category_id,
            "description": description,
            "date": to_utc(date),
            "createdAt": datetime.now(timezone.utc),
        }
        self._expenses.append(doc)
        return self._expense_from_doc(doc)

    def expenses_for_user(
        self, user_id: int, category_id: Optional[int] = None
    ) -> list[ExpenseRecord]:
        docs = [d for d in self._expenses if d["userId"] == user_id]
        if category_id is not None:
            docs = [d for d in docs if d["categoryId"] == category_id]
        return [self._expense_from_doc(d) for d in docs]

    def categories_for_user(self, user_id: int) -> list[CategoryRecord]:
        docs = [d for d in self._categories if d["userId"] == user_id]
        docs.sort(key=lambda d: (d["order"], d["name"]))
        return [self._category_from_doc(d) for d in docs]

    def user_timezone(self, user_id: int) -> Optional[str]:
        return self._timezones.get(user_id)

    @staticmethod
    def _expense_from_doc(doc: dict) -> ExpenseRecord:
        return ExpenseRecord(
            id=doc["id"],
            user_id=doc["userId"],
            amount=doc["amount"],
            category_id=doc["categoryId"],
            date=doc["date"],
            created_at=doc["createdAt"],
            description=doc["description"],
        )

    @staticmethod
    def _category_from_doc(doc: dict) -> CategoryRecord:
        return CategoryRecord(
            id=doc["id"],
            user_id=doc["userId"],
            name=doc["name"],
            color=doc["color"],
            order=doc["order"],
        )
