import pytest
from pydantic import ValidationError
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from auth import issue_session_token, read_session_token, verify_password
from database import Base
from schemas import RegisterIn, UserSettingsIn
from services import AuthenticationError, NotFoundError, UserService


def _register_payload(**overrides) -> RegisterIn:
    data = {
        "firstName": "Ada",
        "lastName": "Lovelace",
        "email": "Ada@Example.com",
        "password": "analytical",
        "country": "GB",
        "currency": "eur",
        "timezone": "Europe/London",
    }
    data.update(overrides)
    return RegisterIn(**data)


def test_register_hashes_password_and_resolves_currency_symbol() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = UserService(session).register(_register_payload())

        assert user.email == "ada@example.com"
        assert user.currency == "EUR"
        assert user.currency_symbol == "€"
        assert user.password_hash != "analytical"
        assert verify_password("analytical", user.password_hash)


def test_unknown_currency_falls_back_to_dollar_sign() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        user = UserService(session).register(_register_payload(currency="XYZ"))
        assert user.currency_symbol == "$"


def test_register_rejects_duplicate_email() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        service = UserService(session)
        service.register(_register_payload())

        with pytest.raises(ValueError, match="User already exists"):
            service.register(_register_payload(email="ADA@example.com"))


def test_register_rejects_unknown_timezone() -> None:
    with pytest.raises(ValidationError, match="Unknown timezone"):
        _register_payload(timezone="Mars/Olympus_Mons")


def test_authenticate_checks_password() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        service = UserService(session)
        registered = service.register(_register_payload())

        assert service.authenticate("ADA@example.com", "analytical").id == registered.id
        with pytest.raises(AuthenticationError, match="Invalid credentials"):
            service.authenticate("ada@example.com", "difference-engine")
        with pytest.raises(AuthenticationError):
            service.authenticate("nobody@example.com", "analytical")


def test_update_settings_changes_timezone() -> None:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        service = UserService(session)
        user = service.register(_register_payload())

        updated = service.update_settings(
            user.id,
            UserSettingsIn(
                first_name="Augusta",
                last_name="King",
                currency="usd",
                currency_symbol="$",
                timezone="America/Chicago",
                country="US",
            ),
        )

        assert updated.full_name == "Augusta King"
        assert updated.currency == "USD"
        assert updated.timezone == "America/Chicago"
        with pytest.raises(NotFoundError):
            service.update_settings(
                9999,
                UserSettingsIn(
                    first_name="A",
                    last_name="B",
                    currency="USD",
                    currency_symbol="$",
                    timezone="UTC",
                    country="US",
                ),
            )


def test_session_token_round_trip_and_tampering() -> None:
    token = issue_session_token(42, "ada@example.com")

    assert read_session_token(token) == {"user_id": 42, "email": "ada@example.com"}
    assert read_session_token(token + "x") is None
    assert read_session_token(None) is None
