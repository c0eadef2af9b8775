"""Project creation, dashboard listing, detail and deletion"""

import pytest

from workspan.domain.projects.repository import ProjectRepository
from workspan.domain.projects.service import ProjectService
from workspan.models import MediaAttachment, Milestone, Project, Review

from .conftest import MediaAttachmentFactory, MilestoneFactory, ProjectFactory, auth_headers

pytestmark = pytest.mark.api


def project_payload(**overrides):
    payload = {
        "name": "Acme Storefront",
        "type": "E-commerce",
        "description": "New storefront with checkout",
        "project_budget": 1000,
        "estimated_days": 30,
        "client_name": "Dana O'Neil",
        "client_email": "Dana@Client.Example.com",
        "milestones": [
            {"name": "Design", "duration_days": 10, "milestone_price": 400, "free_revisions": 2, "revision_rate": 10},
            {"name": "Build", "duration_days": 20, "milestone_price": 600},
        ],
    }
    payload.update(overrides)
    return payload


class TestCreateProject:
    def test_creates_project_and_ordered_milestones(self, client, db_session, agency, publisher):
        response = client.post("/projects", json=project_payload(), headers=auth_headers(agency))

        assert response.status_code == 200
        project_id = response.json()["data"]["project_id"]
        project = db_session.get(Project, project_id)
        assert project.agency_id == agency.id
        assert project.status == "pending"
        assert project.project_price == 1000
        assert project.client_email == "dana@client.example.com"
        assert [(m.title, m.priority, m.status) for m in project.milestones] == [
            ("Design", 1, "not_started"),
            ("Build", 2, "not_started"),
        ]
        assert project.milestones[0].free_revisions == 2
        assert project.milestones[1].revision_rate == 0
        assert publisher.types == ["project_created"]

    def test_milestones_may_not_exceed_budget(self, client, db_session, agency):
        payload = project_payload(project_budget=900)
        response = client.post("/projects", json=payload, headers=auth_headers(agency))
        assert response.status_code == 422
        assert response.json()["code"] == "budget_exceeded"
        assert db_session.query(Project).count() == 0

    def test_milestones_may_not_exceed_timeline(self, client, agency):
        response = client.post("/projects", json=project_payload(estimated_days=25), headers=auth_headers(agency))
        assert response.status_code == 422
        assert response.json()["code"] == "duration_exceeded"

    def test_milestone_total_minimum(self, client, agency):
        payload = project_payload(
            milestones=[{"name": "Audit", "duration_days": 3, "milestone_price": 60}]
        )
        response = client.post("/projects", json=payload, headers=auth_headers(agency))
        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"name": "No <script>"},
            {"type": "Plumbing"},
            {"description": "short"},
            {"project_budget": 50},
            {"estimated_days": 400},
            {"client_name": "R2D2"},
            {"client_email": "not-an-email"},
            {"milestones": []},
        ],
    )
    def test_invalid_payloads(self, client, agency, overrides):
        response = client.post("/projects", json=project_payload(**overrides), headers=auth_headers(agency))
        assert response.status_code == 422
        assert response.json()["success"] is False


class TestReadProjects:
    def test_dashboard_counts_milestones_by_status(self, client, project, agency):
        MilestoneFactory(project=project, status="approved")
        MilestoneFactory(project=project, status="submitted")
        MilestoneFactory(project=project, status="not_started")
        ProjectFactory()  # someone else's

        response = client.get("/projects", headers=auth_headers(agency))

        assert response.status_code == 200
        (row,) = response.json()
        assert row["id"] == project.id
        assert row["milestones"]["total"] == 3
        assert row["milestones"]["approved"] == 1
        assert row["milestones"]["submitted"] == 1
        assert row["total_reviews"] == 0
        assert row["average_rating"] is None

    def test_client_can_read_detail(self, client, project, client_user):
        milestone = MilestoneFactory(project=project, status="submitted", priority=1)
        MediaAttachmentFactory(milestone=milestone)

        response = client.get(f"/projects/{project.id}", headers=auth_headers(client_user))

        assert response.status_code == 200
        body = response.json()
        assert body["milestones"][0]["id"] == milestone.id
        assert body["milestones"][0]["media_attachments"][0]["file_name"] == "design.pdf"

    def test_outsider_cannot_read_detail(self, client, project, outsider):
        response = client.get(f"/projects/{project.id}", headers=auth_headers(outsider))
        assert response.status_code == 403


class TestDeleteProject:
    def test_owner_delete_cascades(self, client, db_session, project, agency):
        milestone = MilestoneFactory(project=project)
        MediaAttachmentFactory(milestone=milestone)
        db_session.add(Review(project_id=project.id, stars=5, review="Lovely work overall"))
        db_session.commit()

        response = client.delete(f"/projects/{project.id}", headers=auth_headers(agency))

        assert response.status_code == 200
        assert db_session.query(Project).count() == 0
        assert db_session.query(Milestone).count() == 0
        assert db_session.query(MediaAttachment).count() == 0
        assert db_session.query(Review).count() == 0

    def test_client_cannot_delete(self, client, db_session, project, client_user):
        response = client.delete(f"/projects/{project.id}", headers=auth_headers(client_user))
        assert response.status_code == 403
        assert db_session.query(Project).count() == 1


def test_project_delete_locks_milestones_before_the_project(db_session, project, agency, monkeypatch):
    MilestoneFactory(project=project)
    calls = []
    lock_milestones = ProjectRepository.lock_project_milestones
    lock_project = ProjectRepository.get_project_for_update

    def record_milestones(db, project_id):
        calls.append("milestones")
        return lock_milestones(db, project_id)

    def record_project(db, project_id):
        calls.append("project")
        return lock_project(db, project_id)

    monkeypatch.setattr(ProjectRepository, "lock_project_milestones", staticmethod(record_milestones))
    monkeypatch.setattr(ProjectRepository, "get_project_for_update", staticmethod(record_project))

    ProjectService(db_session).delete_project(project.id, agency)

    assert calls == ["milestones", "project"]
    assert db_session.query(Milestone).count() == 0
