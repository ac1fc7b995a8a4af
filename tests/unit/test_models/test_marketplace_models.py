"""Tests for marketplace entity models."""

import pytest
from decimal import Decimal

from src.models.application import Application, ApplicationStatus
from src.models.property import Property
from src.models.saved_search import SearchFilters
from src.models.session import Role, Session, user_from_provider
from tests.utils.factories import create_property
from tests.utils.helpers import create_provider_user


@pytest.mark.unit
@pytest.mark.parametrize("metadata,expected", [
    ("owner", Role.LANDLORD),
    ("Landlord", Role.LANDLORD),
    ("admin", Role.ADMIN),
    ("tenant", Role.TENANT),
    (None, Role.TENANT),
])
def test_role_from_metadata(metadata, expected):
    assert Role.from_metadata(metadata) is expected


@pytest.mark.unit
def test_session_owner_roles():
    assert Session(user_id="u", token="t", role=Role.LANDLORD).is_owner
    assert Session(user_id="u", token="t", role=Role.ADMIN).is_owner
    assert not Session(user_id="u", token="t", role=Role.TENANT).is_owner


@pytest.mark.unit
def test_user_from_provider():
    user = user_from_provider(create_provider_user(user_id="u-1", name="Ada", role="owner"))

    assert user.id == "u-1"
    assert user.name == "Ada"
    assert user.role is Role.LANDLORD
    assert user.email_confirmed


@pytest.mark.unit
def test_property_accepts_snake_and_camel_case():
    """API rows are camelCase, Supabase rows snake_case."""
    camel = Property.model_validate({
        "id": "p1", "ownerId": "o1", "title": "Loft", "address": "1 Main St",
        "city": "Austin", "state": "TX", "price": "1500", "squareFeet": 700,
    })
    snake = Property.model_validate({
        "id": "p1", "owner_id": "o1", "title": "Loft", "address": "1 Main St",
        "city": "Austin", "state": "TX", "price": "1500", "square_feet": 700,
    })

    assert camel == snake
    assert camel.price == Decimal("1500")


@pytest.mark.unit
def test_to_json_dict_uses_camel_case_and_drops_none():
    prop = create_property(owner_id="o1", description=None)

    data = prop.to_json_dict()

    assert data["ownerId"] == "o1"
    assert "description" not in data
    assert isinstance(data["price"], str)
    assert Property.model_validate(data) == prop


@pytest.mark.unit
def test_application_open_state():
    app = Application(id="a1", property_id="p1", user_id="u1")
    assert app.is_open

    assert not app.model_copy(update={"submitted_at": "2024-12-09T12:00:00Z"}).is_open
    assert not app.model_copy(update={"status": ApplicationStatus.APPROVED}).is_open
    assert ApplicationStatus.REJECTED.is_terminal
    assert not ApplicationStatus.PENDING.is_terminal


@pytest.mark.unit
def test_search_filters_bounds():
    filters = SearchFilters(min_price=Decimal("1000"), bedrooms=2, property_type="Apartment")

    assert filters.matches(create_property(price="1200", bedrooms=2, propertyType="apartment"))
    assert not filters.matches(create_property(price="900", bedrooms=2, propertyType="apartment"))
    assert not filters.matches(create_property(price="1200", bedrooms=1, propertyType="apartment"))
    assert not filters.matches(create_property(price="1200", bedrooms=3, propertyType="house"))
