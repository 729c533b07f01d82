import uuid

import pytest
from sqlalchemy import func, select

from appduka.errors import AuthenticationError, NotFoundError, PermissionDeniedError, ValidationError
from appduka.models.catalog import AppStatus
from appduka.models.review import Review
from appduka.services.access import ANONYMOUS, Actor
from appduka.services.catalog_service import CatalogService
from appduka.services.review_service import UNKNOWN_REVIEWER, ReviewService, validate_rating
from tests.conftest import actor_for


def _review_count(db_session) -> int:
    return db_session.scalar(select(func.count(Review.id)))


@pytest.mark.parametrize("rating", [0, 6, -1, 2.5, "4", True, None])
def test_out_of_range_rating_rejected_before_persistence(db_session, user, make_app, rating):
    app = make_app("Kalenda")
    with pytest.raises(ValidationError):
        ReviewService(db_session, actor_for(user)).submit_review(app.id, rating)
    assert _review_count(db_session) == 0


def test_validate_rating_accepts_bounds():
    assert validate_rating(1) == 1
    assert validate_rating(5) == 5


def test_two_users_average_four(db_session, make_profile, make_app):
    app = make_app("X")
    first, second = make_profile(), make_profile()
    ReviewService(db_session, actor_for(first)).submit_review(app.id, 5, "Nzuri")
    ReviewService(db_session, actor_for(second)).submit_review(app.id, 3)
    db_session.commit()
    entry = CatalogService(db_session, ANONYMOUS).get_catalog_entry(app.id)
    assert entry.average_rating == 4.0
    assert entry.review_count == 2


def test_second_review_from_same_user_replaces_first(db_session, user, make_app):
    app = make_app("Kalenda")
    service = ReviewService(db_session, actor_for(user))
    original = service.submit_review(app.id, 2, "Mbaya")
    replaced = service.submit_review(app.id, 4, "Bora sasa")
    db_session.commit()
    assert replaced.id == original.id
    assert _review_count(db_session) == 1
    entry = CatalogService(db_session, ANONYMOUS).get_catalog_entry(app.id)
    assert entry.average_rating == 4.0
    assert entry.review_count == 1


def test_visitor_cannot_review(db_session, make_app):
    app = make_app("Kalenda")
    with pytest.raises(AuthenticationError):
        ReviewService(db_session, ANONYMOUS).submit_review(app.id, 5)


def test_review_requires_profile(db_session, make_app):
    app = make_app("Kalenda")
    actor = Actor(identity_id=uuid.uuid4(), email="noprofile@example.com")
    with pytest.raises(NotFoundError):
        ReviewService(db_session, actor).submit_review(app.id, 5)


def test_cannot_review_hidden_entry(db_session, user, make_app):
    app = make_app("Siri", AppStatus.pending)
    with pytest.raises(NotFoundError):
        ReviewService(db_session, actor_for(user)).submit_review(app.id, 5)


def test_entry_reviews_are_newest_first_with_email(db_session, make_profile, make_app, make_review):
    app = make_app("Kalenda")
    older_author = make_profile(email="wa.kwanza@example.com")
    newer_author = make_profile(email="wa.pili@example.com")
    make_review(app, older_author, 4)
    make_review(app, newer_author, 2)
    listed = ReviewService(db_session, ANONYMOUS).list_reviews_for_entry(app.id)
    assert [r["user_email"] for r in listed] == ["wa.pili@example.com", "wa.kwanza@example.com"]


def test_unknown_reviewer_placeholder():
    assert UNKNOWN_REVIEWER == "Mtumiaji asiyejulikana"


def test_user_reviews_include_app_summary(db_session, user, make_app, make_review):
    app = make_app("Kalenda", icon_url="https://x/icon.png")
    make_review(app, user, 5)
    listed = ReviewService(db_session, actor_for(user)).list_reviews_for_user(user.id)
    assert listed[0]["app"] == {"id": str(app.id), "name": "Kalenda", "icon_url": "https://x/icon.png"}


def test_user_cannot_list_someone_elses_reviews(db_session, make_profile):
    me, other = make_profile(), make_profile()
    with pytest.raises(PermissionDeniedError):
        ReviewService(db_session, actor_for(me)).list_reviews_for_user(other.id)


def test_entry_deletion_cascades_out_of_both_listings(db_session, user, developer, make_app, make_review):
    app = make_app("Kalenda")
    make_review(app, user, 5)
    CatalogService(db_session, actor_for(developer)).delete_catalog_entry(app.id)
    db_session.commit()
    assert ReviewService(db_session, actor_for(developer)).list_reviews_for_entry(app.id) == []
    assert ReviewService(db_session, actor_for(user)).list_reviews_for_user(user.id) == []
    assert _review_count(db_session) == 0


def test_user_reviews_hide_entries_that_left_the_catalog(db_session, user, admin, make_app, make_review):
    app = make_app("Siri")
    make_review(app, user, 4)
    CatalogService(db_session, actor_for(admin)).set_catalog_entry_status(app.id, "rejected")
    db_session.commit()
    assert CatalogService(db_session, actor_for(user)).get_catalog_entry(app.id) is None
    assert ReviewService(db_session, actor_for(user)).list_reviews_for_user(user.id) == []


def test_admin_still_sees_reviews_of_hidden_entries(db_session, user, admin, make_app, make_review):
    app = make_app("Siri", AppStatus.pending)
    make_review(app, user, 4)
    listed = ReviewService(db_session, actor_for(admin)).list_reviews_for_user(user.id)
    assert [r["app"]["name"] for r in listed] == ["Siri"]


def test_concurrent_first_review_falls_back_to_replace(db_session, user, make_app, make_review, monkeypatch):
    app = make_app("Kalenda")
    earlier = make_review(app, user, 2, "Mbaya")
    earlier_id = earlier.id
    service = ReviewService(db_session, actor_for(user))
    real_find = service._find_review
    calls = []

    def find_after_race(app_id, user_id):
        calls.append(app_id)
        if len(calls) == 1:
            return None
        return real_find(app_id, user_id)

    monkeypatch.setattr(service, "_find_review", find_after_race)
    review = service.submit_review(app.id, 5, "Bora sasa")
    db_session.commit()

    assert review.id == earlier_id
    assert review.rating == 5
    assert _review_count(db_session) == 1
