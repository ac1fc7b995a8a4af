"""Property reviews."""

from typing import Optional

from src.models.review import Review, ReviewSummary
from src.services.api_client import RemoteAccessor
from src.services.session_context import SessionContext
from src.services.sync_state import LoggingNotifier, Notifier, failure, success
from src.utils.errors import AuthError, RemoteError, ValidationError
from src.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)


def summarize_reviews(reviews: list[Review]) -> ReviewSummary:
    """Average rating rounded to one decimal, plus the count."""
    if not reviews:
        return ReviewSummary()
    average = sum(review.rating for review in reviews) / len(reviews)
    return ReviewSummary(
        average_rating=round(average, 1),
        total_reviews=len(reviews),
        reviews=reviews,
    )


class ReviewsService:
    """Read and write reviews for a listing."""

    def __init__(
        self,
        session: SessionContext,
        remote: RemoteAccessor,
        notifier: Optional[Notifier] = None,
    ):
        self.session = session
        self.remote = remote
        self.notifier: Notifier = notifier or LoggingNotifier()

    async def load(self, property_id: str) -> ReviewSummary:
        return summarize_reviews(await self.remote.list_property_reviews(property_id))

    async def create_review(self, property_id: str, rating: int, comment: Optional[str] = None) -> Review:
        """Post a review as the signed-in user."""
        session = self.session.session
        if session is None:
            raise AuthError("Sign in to leave a review")
        if not 1 <= rating <= 5:
            raise ValidationError("Rating must be between 1 and 5", field="rating")

        user = self.session.user
        payload = {
            "propertyId": property_id,
            "userId": session.user_id,
            "name": user.name if user and user.name else None,
            "rating": rating,
            "comment": comment.strip() if comment else None,
        }
        try:
            review = await self.remote.create_review({k: v for k, v in payload.items() if v is not None})
        except RemoteError as e:
            self.notifier.notify(failure(e.message or "Could not post review"))
            raise
        self.notifier.notify(success("Review posted"))
        return review
