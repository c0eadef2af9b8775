"""Client reviews: one per milestone, one per project"""

import uuid

import pytest
from sqlalchemy.exc import IntegrityError

from workspan.models import Review

from .conftest import MilestoneFactory, ProjectFactory, auth_headers

pytestmark = pytest.mark.api


def post_review(client, project, user, **overrides):
    payload = {"review": "Great communication throughout", "rating": 5}
    payload.update(overrides)
    return client.post(f"/projects/{project.id}/reviews", json=payload, headers=auth_headers(user))


class TestSubmitReview:
    def test_project_level_review(self, client, db_session, project, client_user, publisher):
        response = post_review(client, project, client_user)

        assert response.status_code == 200
        review = db_session.query(Review).one()
        assert review.stars == 5
        assert review.milestone_id is None
        assert publisher.types == ["review_submitted"]

    def test_second_project_level_review_is_refused(self, client, db_session, project, client_user):
        assert post_review(client, project, client_user).status_code == 200

        response = post_review(client, project, client_user, rating=1)

        assert response.status_code == 409
        assert response.json()["code"] == "duplicate_review"
        assert db_session.query(Review).count() == 1

    def test_one_review_per_milestone(self, client, db_session, project, client_user):
        first = MilestoneFactory(project=project)
        second = MilestoneFactory(project=project)

        assert post_review(client, project, client_user, milestoneId=first.id).status_code == 200
        assert post_review(client, project, client_user, milestoneId=second.id).status_code == 200
        assert post_review(client, project, client_user).status_code == 200
        assert post_review(client, project, client_user, milestoneId=first.id).status_code == 409
        assert db_session.query(Review).count() == 3

    def test_database_constraint_backs_up_the_check(self, db_session, project):
        milestone = MilestoneFactory(project=project)
        db_session.add(Review(project_id=project.id, milestone_id=milestone.id, stars=4, review="Nice work"))
        db_session.commit()

        db_session.add(Review(project_id=project.id, milestone_id=milestone.id, stars=2, review="Changed mind"))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_milestone_must_belong_to_project(self, client, project, client_user):
        foreign = MilestoneFactory()
        response = post_review(client, project, client_user, milestoneId=foreign.id)
        assert response.status_code == 404

    def test_only_the_client_may_review(self, client, project, agency):
        assert post_review(client, project, agency).status_code == 403

    @pytest.mark.parametrize("overrides", [{"rating": 0}, {"rating": 6}, {"review": "Too short"}])
    def test_bounds(self, client, project, client_user, overrides):
        assert post_review(client, project, client_user, **overrides).status_code == 422

    def test_unknown_project(self, client, client_user):
        response = client.post(
            f"/projects/{uuid.uuid4()}/reviews",
            json={"review": "Great communication", "rating": 4},
            headers=auth_headers(client_user),
        )
        assert response.status_code == 404


def test_agency_review_listing(client, db_session, project, agency, client_user):
    milestone = MilestoneFactory(project=project, title="Design")
    post_review(client, project, client_user, rating=4)
    post_review(client, project, client_user, rating=5, milestoneId=milestone.id)
    other = ProjectFactory()
    db_session.add(Review(project_id=other.id, stars=1, review="Not this agency"))
    db_session.commit()

    response = client.get("/reviews", headers=auth_headers(agency))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total"] == 2
    assert data["averageRating"] == 4.5
    assert {r["milestone_title"] for r in data["reviews"]} == {"Design", None}

    filtered = client.get("/reviews", params={"rating": 5}, headers=auth_headers(agency)).json()["data"]
    assert [r["stars"] for r in filtered["reviews"]] == [5]
    assert filtered["pagination"]["total_reviews"] == 1
