from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from aggregator import DEFAULT_PAGE_SIZE, DEFAULT_PERIOD, aggregate
from auth import hash_password, verify_password
from currencies import currency_symbol
from models import Category, Expense, User
from periods import parse_expense_date
from schemas import (
    CategoryIn,
    CategoryOrderIn,
    ExpenseIn,
    RegisterIn,
    UserSettingsIn,
)
from storage import ExpenseStore


logger = logging.getLogger(__name__)


CATEGORY_PALETTE = [
    "#FF6B6B",
    "#4ECDC4",
    "#45B7D1",
    "#96CEB4",
    "#FFEAA7",
    "#DDA0DD",
    "#FFB347",
    "#87CEEB",
    "#98D8C8",
    "#F7DC6F",
    "#BB8FCE",
    "#85C1E9",
    "#F8C471",
    "#82E0AA",
    "#F1948A",
]


class NotFoundError(ValueError):
    pass


class AuthenticationError(ValueError):
    pass


def resolve_timezone(name: Optional[str], fallback: str) -> ZoneInfo:
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"timezone_invalid: name={name} fallback={fallback}")
    return ZoneInfo(fallback)


class UserService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: int) -> User:
        user = self.session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def register(self, data: RegisterIn) -> User:
        existing = self.session.scalar(
            select(User).where(func.lower(User.email) == data.email.lower())
        )
        if existing:
            raise ValueError("User already exists")
        user = User(
            email=data.email,
            password_hash=hash_password(data.password),
            first_name=data.first_name.strip(),
            last_name=data.last_name.strip(),
            country=data.country.strip(),
            currency=data.currency,
            currency_symbol=currency_symbol(data.currency),
            timezone=data.timezone,
        )
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        logger.info(f"user_registered: user_id={user.id} timezone={user.timezone}")
        return user

    def authenticate(self, email: str, password: str) -> User:
        user = self.session.scalar(
            select(User).where(func.lower(User.email) == email.strip().lower())
        )
        if not user or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid credentials")
        return user

    def update_settings(self, user_id: int, data: UserSettingsIn) -> User:
        user = self.get(user_id)
        user.first_name = data.first_name.strip()
        user.last_name = data.last_name.strip()
        user.currency = data.currency.upper()
        user.currency_symbol = data.currency_symbol
        user.timezone = data.timezone
        user.country = data.country.strip()
        self.session.commit()
        return user


class CategoryService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list_all(self) -> list[Category]:
        stmt = (
            select(Category)
            .where(Category.user_id == self.user_id)
            .order_by(Category.order, Category.name)
        )
        return self.session.scalars(stmt).all()

    def get(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise NotFoundError("Category not found")
        return category

    def create(self, data: CategoryIn) -> Category:
        existing = self.session.scalar(
            select(Category).where(
                Category.user_id == self.user_id,
                func.lower(Category.name) == data.name.lower(),
            )
        )
        if existing:
            raise ValueError("Category already exists")
        count, max_order = self.session.execute(
            select(func.count(Category.id), func.max(Category.order)).where(
                Category.user_id == self.user_id
            )
        ).one()
        category = Category(
            user_id=self.user_id,
            name=data.name,
            color=data.color or CATEGORY_PALETTE[count % len(CATEGORY_PALETTE)],
            order=0 if max_order is None else max_order + 1,
        )
        self.session.add(category)
        try:
            self.session.commit()
        except IntegrityError as exc:
            # Lost a race with a concurrent create of the same name.
            self.session.rollback()
            logger.info(f"category_conflict: user_id={self.user_id} name={data.name}")
            raise ValueError("Category already exists") from exc
        self.session.refresh(category)
        return category

    def delete(self, category_id: int) -> int:
        """Delete a category and its expenses in a single transaction."""
        category = self.get(category_id)
        result = self.session.execute(
            delete(Expense).where(
                Expense.user_id == self.user_id, Expense.category_id == category.id
            )
        )
        self.session.delete(category)
        self.session.commit()
        removed = result.rowcount or 0
        logger.info(
            f"category_deleted: user_id={self.user_id} category_id={category_id} "
            f"expenses_removed={removed}"
        )
        return removed

    def reorder(self, orders: list[CategoryOrderIn]) -> int:
        # Last writer wins when two reorders for the same user interleave.
        wanted = {item.category_id: item.order for item in orders}
        if not wanted:
            return 0
        categories = self.session.scalars(
            select(Category).where(
                Category.user_id == self.user_id, Category.id.in_(list(wanted))
            )
        ).all()
        for category in categories:
            category.order = wanted[category.id]
        self.session.commit()
        return len(categories)

    def reset_colors(self) -> list[Category]:
        categories = self.list_all()
        for index, category in enumerate(categories):
            category.color = CATEGORY_PALETTE[index % len(CATEGORY_PALETTE)]
        self.session.commit()
        return categories

    def normalize_order(self) -> int:
        """Renumber display order to 0..n-1, keeping current order then age."""
        categories = self.session.scalars(
            select(Category)
            .where(Category.user_id == self.user_id)
            .order_by(Category.order, Category.created_at, Category.id)
        ).all()
        changed = 0
        for index, category in enumerate(categories):
            if category.order != index:
                category.order = index
                changed += 1
        self.session.commit()
        return changed


class ExpenseService:
    def __init__(
        self, session: Session, user_id: int, default_timezone: str = "UTC"
    ) -> None:
        self.session = session
        self.user_id = user_id
        self.default_timezone = default_timezone

    def _timezone(self) -> ZoneInfo:
        name = self.session.scalar(select(User.timezone).where(User.id == self.user_id))
        return resolve_timezone(name, self.default_timezone)

    def list(self, category_id: Optional[int] = None) -> list[Expense]:
        stmt = (
            select(Expense)
            .options(joinedload(Expense.category))
            .where(Expense.user_id == self.user_id)
            .order_by(Expense.date.desc(), Expense.id.desc())
        )
        if category_id is not None:
            stmt = stmt.where(Expense.category_id == category_id)
        return self.session.scalars(stmt).all()

    def get(self, expense_id: int) -> Expense:
        expense = self.session.get(Expense, expense_id)
        if not expense or expense.user_id != self.user_id:
            raise NotFoundError("Expense not found")
        return expense

    def create(self, data: ExpenseIn, *, now: Optional[datetime] = None) -> Expense:
        category: Optional[Category] = None
        if data.category_id is not None:
            category = self.session.get(Category, data.category_id)
            if not category or category.user_id != self.user_id:
                raise NotFoundError("Category not found")
        when = parse_expense_date(data.date, self._timezone(), now)
        description = (data.description or "").strip()
        if not description:
            description = f"{category.name} expense" if category else "Expense"
        expense = Expense(
            user_id=self.user_id,
            amount=data.amount,
            description=description,
            category_id=category.id if category else None,
            date=when.replace(tzinfo=None),
        )
        self.session.add(expense)
        self.session.commit()
        self.session.refresh(expense)
        return expense

    def delete(self, expense_id: int) -> None:
        expense = self.get(expense_id)
        self.session.delete(expense)
        self.session.commit()


class StatsService:
    def __init__(
        self, store: ExpenseStore, user_id: int, default_timezone: str = "UTC"
    ) -> None:
        self.store = store
        self.user_id = user_id
        self.default_timezone = default_timezone

    def summary(
        self,
        *,
        period: Optional[str] = DEFAULT_PERIOD,
        reference_date: Optional[str] = None,
        category_id: Optional[int] = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        now: Optional[datetime] = None,
    ) -> dict[str, object]:
        tz = resolve_timezone(
            self.store.user_timezone(self.user_id), self.default_timezone
        )
        expenses = self.store.expenses_for_user(self.user_id)
        categories = self.store.categories_for_user(self.user_id)
        logger.debug(
            f"stats_fetch: user_id={self.user_id} period={period} "
            f"date={reference_date} category={category_id} page={page}"
        )
        return aggregate(
            expenses,
            categories,
            timezone_name=tz.key,
            period=period,
            reference_date=reference_date,
            now=now,
            category_id=category_id,
            page=page,
            page_size=page_size,
        )
