"""
Tests for submission storage and identity resolution.

Tests cover:
- Insert and update, including the forward-only step rule
- Answer overlay under the row lock
- Wrapping of database failures
- Listing, filtering and stats for the reporting API
- Resolving a step to its submission by token or email
"""

from datetime import timedelta
from unittest import mock

from django.db import DatabaseError
from django.utils import timezone
import pytest

from suitability_app.quiz.exceptions import IdentityNotFoundError, PersistenceError
from suitability_app.quiz.models import Submission, SubmissionLock
from suitability_app.quiz.services import IdentityResolver, SubmissionStore


@pytest.fixture
def store():
    return SubmissionStore()


@pytest.fixture
def resolver(store):
    return IdentityResolver(store)


# ============================================================================
# Writes
# ============================================================================


@pytest.mark.django_db
class TestWrites:
    def test_insert_creates_record(self, store):
        submission, created = store.insert(
            {"first_name": "Dana", "email": " Dana@Example.COM ", "current_step": 1}
        )
        assert created is True
        assert submission.pk is not None
        assert submission.email == "dana@example.com"
        assert submission.token
        assert submission.completed is False
        assert submission.answers == [None] * 10

    def test_insert_with_email_takes_lock(self, store):
        store.insert({"email": "dana@example.com"})
        assert SubmissionLock.objects.filter(email="dana@example.com").exists()

    def test_insert_without_email_skips_hooks(self):
        hook = mock.Mock(return_value=None)
        store = SubmissionStore(pre_insert_hooks=[hook])
        store.insert({"first_name": "Dana"})
        hook.assert_not_called()

    def test_hook_can_absorb_insert(self):
        existing = Submission.objects.create(email="dana@example.com")
        store = SubmissionStore(pre_insert_hooks=[lambda fields: existing])
        submission, created = store.insert({"email": "dana@example.com"})
        assert created is False
        assert submission.pk == existing.pk
        assert Submission.objects.count() == 1

    def test_unknown_field_rejected(self, store):
        with pytest.raises(ValueError):
            store.insert({"token": "forged"})

    def test_update_overwrites_fields(self, store):
        submission, _ = store.insert({"first_name": "Dana"})
        updated = store.update(submission.pk, {"first_name": "Dina", "phone": "050"})
        assert updated.first_name == "Dina"
        assert updated.phone == "050"

    def test_update_step_never_decreases(self, store):
        submission, _ = store.insert({"current_step": 3})
        updated = store.update(submission.pk, {"current_step": 2, "gender": "f"})
        assert updated.current_step == 3
        assert updated.gender == "f"
        updated = store.update(submission.pk, {"current_step": 4})
        assert updated.current_step == 4

    def test_update_refreshes_submission_time(self, store):
        submission, _ = store.insert({"first_name": "Dana"})
        old = timezone.now() - timedelta(hours=1)
        Submission.objects.filter(pk=submission.pk).update(submission_time=old)
        updated = store.update(submission.pk, {"phone": "050"})
        assert updated.submission_time > old

    def test_update_overlays_answers(self, store):
        submission, _ = store.insert({"current_step": 3})
        store.update(submission.pk, {}, answers={0: 4, 1: 3})
        updated = store.update(submission.pk, {}, answers={1: 2, 9: 1})
        assert updated.answers == [4, 2, None, None, None, None, None, None, None, 1]

    def test_update_missing_record(self, store):
        with pytest.raises(IdentityNotFoundError):
            store.update(999999, {"phone": "050"})

    def test_insert_database_error_is_wrapped(self, store):
        with mock.patch.object(Submission, "save", side_effect=DatabaseError("boom")):
            with pytest.raises(PersistenceError) as exc:
                store.insert({"first_name": "Dana"})
        assert exc.value.code == "persistence_error"
        assert Submission.objects.count() == 0

    def test_update_database_error_is_wrapped(self, store):
        submission, _ = store.insert({"first_name": "Dana"})
        with mock.patch.object(Submission, "save", side_effect=DatabaseError("boom")):
            with pytest.raises(PersistenceError):
                store.update(submission.pk, {"first_name": "Dina"})
        submission.refresh_from_db()
        assert submission.first_name == "Dana"

    def test_delete(self, store):
        submission, _ = store.insert({"first_name": "Dana"})
        assert store.delete(submission.pk) is True
        assert store.delete(submission.pk) is False
        assert store.get(submission.pk) is None


# ============================================================================
# Reads
# ============================================================================


@pytest.mark.django_db
class TestReads:
    def test_get_by_token(self, store):
        submission, _ = store.insert({"first_name": "Dana"})
        assert store.get_by_token(submission.token).pk == submission.pk
        assert store.get_by_token("") is None
        assert store.get_by_token("unknown") is None

    def test_latest_for_email_is_case_insensitive(self, store):
        submission = Submission.objects.create(email="dana@example.com")
        assert store.latest_for_email("DANA@example.com").pk == submission.pk
        assert store.latest_for_email("") is None
        assert store.latest_for_email(None) is None

    def test_latest_for_email_prefers_newest_then_highest_id(self, store):
        created = timezone.now()
        first = Submission.objects.create(email="dana@example.com")
        second = Submission.objects.create(email="dana@example.com")
        Submission.objects.filter(pk__in=[first.pk, second.pk]).update(
            created_at=created
        )
        assert store.latest_for_email("dana@example.com").pk == second.pk

        Submission.objects.filter(pk=first.pk).update(
            created_at=created + timedelta(seconds=1)
        )
        assert store.latest_for_email("dana@example.com").pk == first.pk

    def test_list_filters(self, store):
        Submission.objects.create(first_name="Dana", completed=True, passed=True)
        Submission.objects.create(first_name="Avi", completed=True, passed=False)
        Submission.objects.create(first_name="Noa", phone="0521112222")

        assert store.list().count() == 3
        assert store.list(completed=True).count() == 2
        assert store.list(completed=True, passed=True).get().first_name == "Dana"
        assert store.list(passed=False, completed=True).get().first_name == "Avi"
        assert store.list(search="0521").get().first_name == "Noa"
        assert store.list(search="dan").get().first_name == "Dana"

    def test_stats(self, store):
        Submission.objects.create(completed=True, passed=True)
        Submission.objects.create(completed=True, passed=False)
        Submission.objects.create(completed=True, passed=False)
        Submission.objects.create()
        assert store.stats() == {"total": 4, "completed": 3, "passed": 1, "failed": 2}

    def test_stats_empty(self, store):
        assert store.stats() == {"total": 0, "completed": 0, "passed": 0, "failed": 0}


# ============================================================================
# Identity resolution
# ============================================================================


@pytest.mark.django_db
class TestIdentityResolver:
    def test_token_wins_over_email(self, resolver):
        by_token = Submission.objects.create(email="first@example.com")
        Submission.objects.create(email="second@example.com")
        assert resolver.resolve(by_token.token, "second@example.com") == by_token.pk

    def test_unknown_token_falls_back_to_email(self, resolver):
        submission = Submission.objects.create(email="dana@example.com")
        assert resolver.resolve("stale-token", "Dana@example.com") == submission.pk

    def test_nothing_matches(self, resolver):
        Submission.objects.create(email="dana@example.com")
        assert resolver.resolve(None, "") is None
        assert resolver.resolve("", "other@example.com") is None

    def test_empty_email_never_matches_blank_records(self, resolver):
        Submission.objects.create(email="")
        assert resolver.resolve(None, "") is None

    def test_require(self, resolver):
        with pytest.raises(IdentityNotFoundError):
            resolver.require(None, "nobody@example.com")
        submission = Submission.objects.create(email="dana@example.com")
        assert resolver.require(None, "dana@example.com") == submission.pk
