from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import Base
from models import Category, Expense, User
from schemas import CategoryIn, CategoryOrderIn, ExpenseIn
from services import (
    CATEGORY_PALETTE,
    CategoryService,
    ExpenseService,
    NotFoundError,
)


def _user(session: Session, email: str = "ada@example.com") -> User:
    user = User(
        email=email,
        password_hash="x",
        first_name="Ada",
        last_name="Lovelace",
        country="GB",
        currency="GBP",
        currency_symbol="£",
        timezone="Europe/London",
    )
    session.add(user)
    session.commit()
    return user


def test_create_assigns_palette_color_and_appends_order() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = _user(session)
        service = CategoryService(session, user.id)
        food = service.create(CategoryIn(name="Food"))
        travel = service.create(CategoryIn(name="Travel", color="#123456"))
        rent = service.create(CategoryIn(name="Rent"))

        assert food.color == CATEGORY_PALETTE[0]
        assert travel.color == "#123456"
        assert rent.color == CATEGORY_PALETTE[2]
        assert [c.order for c in (food, travel, rent)] == [0, 1, 2]
        assert [c.name for c in service.list_all()] == ["Food", "Travel", "Rent"]


def test_duplicate_names_are_rejected_case_insensitive() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = _user(session)
        service = CategoryService(session, user.id)
        service.create(CategoryIn(name="Food"))

        with pytest.raises(ValueError, match="Category already exists"):
            service.create(CategoryIn(name=" food "))


def test_names_differing_only_in_case_conflict_in_the_database() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = _user(session)
        session.add(Category(user_id=user.id, name="Food", order=0))
        session.commit()

        session.add(Category(user_id=user.id, name="FOOD", order=1))
        with pytest.raises(IntegrityError):
            session.commit()


@pytest.mark.parametrize("name", ["Food", "food"])
def test_create_that_loses_a_race_reports_duplicate(monkeypatch, name) -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = _user(session)
        user_id = user.id
        service = CategoryService(session, user_id)
        service.create(CategoryIn(name="Food"))

        # Another request inserted the same name after the existence check ran.
        monkeypatch.setattr(session, "scalar", lambda *args, **kwargs: None)
        with pytest.raises(ValueError, match="Category already exists"):
            service.create(CategoryIn(name=name))
        monkeypatch.undo()

        service.create(CategoryIn(name="Travel"))
        names = session.scalars(
            select(Category.name).where(Category.user_id == user_id)
        ).all()
        assert sorted(names) == ["Food", "Travel"]


def test_same_name_allowed_for_different_users() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        first = _user(session)
        second = _user(session, "grace@example.com")
        CategoryService(session, first.id).create(CategoryIn(name="Food"))
        other = CategoryService(session, second.id).create(CategoryIn(name="Food"))

        assert other.user_id == second.id
        assert other.order == 0


def test_delete_cascades_to_expenses_of_that_category_only() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = _user(session)
        categories = CategoryService(session, user.id)
        food = categories.create(CategoryIn(name="Food"))
        fun = categories.create(CategoryIn(name="Fun"))
        expenses = ExpenseService(session, user.id)
        for amount in ("4.50", "12.00"):
            expenses.create(
                ExpenseIn(
                    amount=Decimal(amount), category_id=food.id, date="2024-06-01"
                )
            )
        kept = expenses.create(
            ExpenseIn(amount=Decimal("9.99"), category_id=fun.id, date="2024-06-02")
        )

        removed = categories.delete(food.id)

        assert removed == 2
        assert session.get(Category, food.id) is None
        remaining = session.scalars(select(Expense.id)).all()
        assert remaining == [kept.id]


def test_delete_of_foreign_category_is_not_found() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        owner = _user(session)
        intruder = _user(session, "mallory@example.com")
        food = CategoryService(session, owner.id).create(CategoryIn(name="Food"))

        with pytest.raises(NotFoundError, match="Category not found"):
            CategoryService(session, intruder.id).delete(food.id)
        assert session.get(Category, food.id) is not None


def test_reorder_updates_owned_categories_and_skips_others() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        owner = _user(session)
        other = _user(session, "grace@example.com")
        service = CategoryService(session, owner.id)
        a = service.create(CategoryIn(name="A"))
        b = service.create(CategoryIn(name="B"))
        foreign = CategoryService(session, other.id).create(CategoryIn(name="X"))

        updated = service.reorder(
            [
                CategoryOrderIn(category_id=a.id, order=1),
                CategoryOrderIn(category_id=b.id, order=0),
                CategoryOrderIn(category_id=foreign.id, order=5),
            ]
        )

        assert updated == 2
        assert [c.name for c in service.list_all()] == ["B", "A"]
        assert session.get(Category, foreign.id).order == 0


def test_reset_colors_follows_display_order() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = _user(session)
        service = CategoryService(session, user.id)
        for name in ("A", "B", "C"):
            service.create(CategoryIn(name=name, color="#000000"))

        categories = service.reset_colors()

        assert [c.color for c in categories] == CATEGORY_PALETTE[:3]


def test_normalize_order_closes_gaps() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = _user(session)
        for name, order in (("A", 4), ("B", 9), ("C", 4)):
            session.add(
                Category(
                    user_id=user.id,
                    name=name,
                    color="#000000",
                    order=order,
                    created_at=datetime(2024, 1, ord(name) - 64),
                )
            )
        session.commit()

        changed = CategoryService(session, user.id).normalize_order()

        ordered = CategoryService(session, user.id).list_all()
        assert [(c.name, c.order) for c in ordered] == [("A", 0), ("C", 1), ("B", 2)]
        assert changed == 3
