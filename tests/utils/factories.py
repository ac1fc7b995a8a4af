"""Test data factories using Faker."""

from faker import Faker
from typing import Any, Optional

from src.models.application import Application
from src.models.property import Property
from src.models.saved_search import SavedSearch
from src.models.upload import UploadCredential, UploadFile

fake = Faker()


def create_property_data(**overrides: Any) -> dict:
    """Landlord-supplied listing fields, camelCase like the form posts them."""
    data = {
        "title": fake.sentence(nb_words=4).rstrip("."),
        "description": fake.text(max_nb_chars=120),
        "address": fake.street_address(),
        "city": fake.city(),
        "state": fake.state_abbr(),
        "zipCode": fake.postcode(),
        "price": str(fake.random_int(min=800, max=4000)),
        "bedrooms": fake.random_int(min=0, max=5),
        "bathrooms": "1.5",
        "propertyType": "apartment",
    }
    data.update(overrides)
    return data


def create_property(owner_id: str = "user-123", **overrides: Any) -> Property:
    """Stored listing as the API returns it."""
    data = {
        "id": f"prop_{fake.uuid4()}",
        "ownerId": owner_id,
        "createdAt": "2024-12-01T00:00:00+00:00",
        **create_property_data(),
    }
    data.update(overrides)
    return Property.model_validate(data)


def create_application(
    property_id: Optional[str] = None,
    user_id: str = "user-123",
    **overrides: Any,
) -> Application:
    """Stored application as the API returns it."""
    data = {
        "id": f"app_{fake.uuid4()}",
        "propertyId": property_id or f"prop_{fake.uuid4()}",
        "userId": user_id,
        "step": 1,
        "status": "pending",
        "userEmail": fake.email(),
        "userName": fake.name(),
    }
    data.update(overrides)
    return Application.model_validate(data)


def create_saved_search(user_id: str = "user-123", **overrides: Any) -> SavedSearch:
    data = {
        "id": f"search_{fake.uuid4()}",
        "userId": user_id,
        "name": f"{fake.city()} rentals",
        "filters": {"minPrice": "1000", "maxPrice": "2500"},
    }
    data.update(overrides)
    return SavedSearch.model_validate(data)


def create_upload_credential(**overrides: Any) -> UploadCredential:
    data = {
        "token": fake.uuid4(),
        "signature": fake.sha1(),
        "expire": 1733749200,
        "publicKey": "public_test_key",
        "urlEndpoint": "https://upload.imagekit.test",
    }
    data.update(overrides)
    return UploadCredential.model_validate(data)


def create_upload_file(size: int = 2048, content_type: str = "image/png", filename: str = "front.png") -> UploadFile:
    return UploadFile(filename=filename, content_type=content_type, data=b"\x89" * size)


def create_upload_result_data(**overrides: Any) -> dict:
    """CDN response body for a stored image."""
    data = {
        "fileId": fake.uuid4(),
        "name": "front.png",
        "size": 2048,
        "filePath": "/properties/front.png",
        "url": "https://ik.imagekit.test/choice/properties/front.png",
        "thumbnailUrl": "https://ik.imagekit.test/choice/tr:n-thumb/properties/front.png",
        "height": 800,
        "width": 1200,
        "fileType": "image",
    }
    data.update(overrides)
    return data
