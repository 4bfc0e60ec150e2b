"""
Tests for the staff-only submissions API.

Tests cover:
- Anonymous and non-staff access is refused
- Listing with completed/passed filters and search
- Retrieve, delete and stats
- Signature lookup for a submission
- JWT authentication
"""

import json

from django.contrib.auth import get_user_model
import pytest
from rest_framework.test import APIClient

from suitability_app.quiz.models import SignatureRecord, Submission

User = get_user_model()
TEST_PASSWORD = "test-pass"


@pytest.fixture
def staff_user():
    return User.objects.create_user(
        username="staff", password=TEST_PASSWORD, is_staff=True
    )


@pytest.fixture
def regular_user():
    return User.objects.create_user(username="regular", password=TEST_PASSWORD)


@pytest.fixture
def api(staff_user):
    client = APIClient()
    client.force_authenticate(user=staff_user)
    return client


@pytest.fixture
def submissions():
    return {
        "passed": Submission.objects.create(
            first_name="Dana",
            email="dana@example.com",
            completed=True,
            passed=True,
            score=30,
            band=Submission.Band.PASS,
        ),
        "failed": Submission.objects.create(
            first_name="Avi",
            email="avi@example.com",
            completed=True,
            passed=False,
            score=12,
            band=Submission.Band.FAIL,
        ),
        "open": Submission.objects.create(first_name="Noa", phone="0521112222"),
    }


def results(response):
    return response.json()["results"]


@pytest.mark.django_db
class TestAccess:
    def test_anonymous_blocked(self):
        response = APIClient().get("/api/submissions/")
        assert response.status_code in (401, 403)

    def test_non_staff_forbidden(self, regular_user):
        client = APIClient()
        client.force_authenticate(user=regular_user)
        assert client.get("/api/submissions/").status_code == 403
        assert client.get("/api/submissions/stats/").status_code == 403

    def test_jwt_token(self, client, staff_user, submissions):
        resp = client.post(
            "/api/token",
            data=json.dumps({"username": "staff", "password": TEST_PASSWORD}),
            content_type="application/json",
        )
        assert resp.status_code == 200, resp.content
        hdrs = {"HTTP_AUTHORIZATION": f"Bearer {resp.json()['access']}"}
        response = client.get("/api/submissions/", **hdrs)
        assert response.status_code == 200
        assert response.json()["count"] == 3


@pytest.mark.django_db
class TestSubmissionList:
    def test_list(self, api, submissions):
        response = api.get("/api/submissions/")
        assert response.status_code == 200
        assert {row["first_name"] for row in results(response)} == {"Dana", "Avi", "Noa"}

    def test_filter_completed(self, api, submissions):
        response = api.get("/api/submissions/", {"completed": "true"})
        assert {row["first_name"] for row in results(response)} == {"Dana", "Avi"}

        response = api.get("/api/submissions/", {"completed": "false"})
        assert [row["first_name"] for row in results(response)] == ["Noa"]

    def test_filter_passed(self, api, submissions):
        response = api.get("/api/submissions/", {"completed": "1", "passed": "1"})
        assert [row["first_name"] for row in results(response)] == ["Dana"]

    def test_search(self, api, submissions):
        response = api.get("/api/submissions/", {"search": "avi@"})
        assert [row["first_name"] for row in results(response)] == ["Avi"]

    def test_derived_fields(self, api, submissions):
        response = api.get(f"/api/submissions/{submissions['passed'].pk}/")
        data = response.json()
        assert data["score_percentage"] == 75
        assert data["full_name"] == "Dana"
        assert data["has_signature"] is False
        assert data["answered_count"] == 0
        assert "signature_data" not in data


@pytest.mark.django_db
class TestSubmissionDetail:
    def test_retrieve_missing(self, api):
        assert api.get("/api/submissions/999999/").status_code == 404

    def test_delete(self, api, submissions):
        pk = submissions["open"].pk
        response = api.delete(f"/api/submissions/{pk}/")
        assert response.status_code == 204
        assert not Submission.objects.filter(pk=pk).exists()

    def test_api_is_read_only_otherwise(self, api, submissions):
        pk = submissions["open"].pk
        response = api.patch(f"/api/submissions/{pk}/", {"first_name": "X"})
        assert response.status_code == 405
        response = api.post("/api/submissions/", {"first_name": "X"})
        assert response.status_code == 405

    def test_stats(self, api, submissions):
        response = api.get("/api/submissions/stats/")
        assert response.status_code == 200
        assert response.json() == {"total": 3, "completed": 2, "passed": 1, "failed": 1}


@pytest.mark.django_db
class TestSignatureLookup:
    def test_signature_for_submission(self, api, submissions):
        submission = submissions["passed"]
        SignatureRecord.objects.create(
            submission=submission, email=submission.email, signature_data="old"
        )
        SignatureRecord.objects.create(
            submission=submission, email=submission.email, signature_data="new"
        )
        response = api.get(f"/api/submissions/{submission.pk}/signature/")
        assert response.status_code == 200
        assert response.json()["signature_data"] == "new"

    def test_signature_falls_back_to_email(self, api, submissions):
        submission = submissions["failed"]
        SignatureRecord.objects.create(email="AVI@example.com", signature_data="sig")
        response = api.get(f"/api/submissions/{submission.pk}/signature/")
        assert response.status_code == 200
        assert response.json()["signature_data"] == "sig"

    def test_no_signature(self, api, submissions):
        response = api.get(f"/api/submissions/{submissions['open'].pk}/signature/")
        assert response.status_code == 404
