"""
SubmissionStore - Durable storage for funnel submissions.

Every write is a single transaction. Inserts that carry an email run
under a per-email lock row so that pre-insert hooks (the duplicate
intercept) see a consistent view of earlier records for that address.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import Callable, Optional

from django.db import DatabaseError, transaction
from django.db.models import Count, Q, QuerySet
from django.db.models.functions import Lower
from django.utils import timezone

from ..exceptions import IdentityNotFoundError, PersistenceError
from ..models import QUESTION_COUNT, Submission, SubmissionLock
from ..utils import normalize_email

logger = logging.getLogger(__name__)

# A hook receives the insert fields and returns the record that absorbed
# the write, or None to let the insert go ahead.
PreInsertHook = Callable[[dict], Optional[Submission]]

WRITABLE_FIELDS = frozenset(Submission.MERGEABLE_FIELDS)


class SubmissionStore:
    """Read and write access to Submission rows for the funnel services."""

    def __init__(self, pre_insert_hooks: Optional[list[PreInsertHook]] = None):
        self._pre_insert_hooks: list[PreInsertHook] = list(pre_insert_hooks or [])

    def add_pre_insert_hook(self, hook: PreInsertHook) -> None:
        self._pre_insert_hooks.append(hook)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, submission_id) -> Optional[Submission]:
        if submission_id is None:
            return None
        return Submission.objects.filter(pk=submission_id).first()

    def get_by_token(self, token: Optional[str]) -> Optional[Submission]:
        if not token:
            return None
        return Submission.objects.filter(token=token).first()

    def latest_for_email(self, email: Optional[str]) -> Optional[Submission]:
        """Most recently created record for the email, ties broken by highest id."""
        email = normalize_email(email)
        if not email:
            return None
        return (
            Submission.objects.filter(email__iexact=email)
            .order_by("-created_at", "-id")
            .first()
        )

    def list(
        self,
        completed: Optional[bool] = None,
        passed: Optional[bool] = None,
        search: str = "",
    ) -> QuerySet[Submission]:
        queryset = Submission.objects.all()
        if completed is not None:
            queryset = queryset.filter(completed=completed)
        if passed is not None:
            queryset = queryset.filter(passed=passed)
        search = (search or "").strip()
        if search:
            queryset = queryset.filter(
                Q(first_name__icontains=search)
                | Q(last_name__icontains=search)
                | Q(email__icontains=search)
                | Q(phone__icontains=search)
            )
        return queryset.order_by("-created_at", "-id")

    def stats(self) -> dict:
        """Headline counts for the reporting API."""
        # Aggregate aliases must not shadow the model fields used in the filters
        totals = Submission.objects.aggregate(
            total_count=Count("id"),
            completed_count=Count("id", filter=Q(completed=True)),
            passed_count=Count("id", filter=Q(completed=True, passed=True)),
            failed_count=Count("id", filter=Q(completed=True, passed=False)),
        )
        return {
            key: totals[f"{key}_count"] or 0
            for key in ("total", "completed", "passed", "failed")
        }

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @contextmanager
    def lock_email(self, email: str):
        """
        Hold the lock row for ``email`` until the surrounding transaction ends.

        Must be used inside ``transaction.atomic``. On SQLite the database
        write lock already serialises writers and ``select_for_update`` is
        a no-op.
        """
        key = normalize_email(email)
        SubmissionLock.objects.select_for_update().get_or_create(email=key)
        yield key

    def get_for_update(self, submission_id) -> Optional[Submission]:
        """Row-locked read. Must be used inside ``transaction.atomic``."""
        if submission_id is None:
            return None
        return Submission.objects.select_for_update().filter(pk=submission_id).first()

    def prune_locks(self) -> int:
        """
        Delete lock rows for emails that no longer own any submission.

        Returns:
            Number of lock rows removed
        """
        owned = (
            Submission.objects.exclude(email="")
            .annotate(email_key=Lower("email"))
            .values("email_key")
        )
        try:
            deleted, _ = SubmissionLock.objects.exclude(email__in=owned).delete()
        except DatabaseError as e:
            logger.error(f"Failed to prune submission locks: {e}")
            raise PersistenceError() from e
        if deleted:
            logger.info(f"Pruned {deleted} unused submission locks")
        return deleted

    def insert(self, fields: dict) -> tuple[Submission, bool]:
        """
        Create a submission, unless a pre-insert hook absorbs it.

        Returns:
            Tuple of (submission, created). ``created`` is False when an
            existing record absorbed the write.

        Raises:
            PersistenceError: If the database rejects the write
        """
        fields = self._clean_fields(fields)
        email = fields.get("email", "")
        try:
            with transaction.atomic():
                if email:
                    with self.lock_email(email):
                        for hook in self._pre_insert_hooks:
                            absorbed = hook(fields)
                            if absorbed is not None:
                                return absorbed, False
                submission = Submission(**fields)
                submission.submission_time = timezone.now()
                submission.save()
        except DatabaseError as e:
            logger.error(f"Failed to insert submission: {e}")
            raise PersistenceError() from e

        logger.info(
            f"Created submission #{submission.pk} at step {submission.current_step}"
        )
        return submission, True

    def update(
        self,
        submission_id,
        fields: dict,
        answers: Optional[dict[int, int]] = None,
    ) -> Submission:
        """
        Apply ``fields`` to an existing submission.

        ``current_step`` only moves forward. ``answers`` maps question index
        to points and is overlaid on the stored answers under the row lock.

        Raises:
            IdentityNotFoundError: If the submission does not exist
            PersistenceError: If the database rejects the write
        """
        fields = self._clean_fields(fields)
        try:
            with transaction.atomic():
                submission = (
                    Submission.objects.select_for_update()
                    .filter(pk=submission_id)
                    .first()
                )
                if submission is None:
                    raise IdentityNotFoundError(
                        message=f"Submission #{submission_id} does not exist."
                    )
                for name, value in fields.items():
                    if name == "current_step":
                        value = max(submission.current_step, int(value))
                    setattr(submission, name, value)
                if answers:
                    stored = list(submission.answers or [])
                    stored.extend([None] * (QUESTION_COUNT - len(stored)))
                    for index, points in answers.items():
                        stored[index] = points
                    submission.answers = stored
                submission.submission_time = timezone.now()
                submission.save()
        except DatabaseError as e:
            logger.error(f"Failed to update submission #{submission_id}: {e}")
            raise PersistenceError() from e
        return submission

    def delete(self, submission_id) -> bool:
        try:
            deleted, _ = Submission.objects.filter(pk=submission_id).delete()
        except DatabaseError as e:
            logger.error(f"Failed to delete submission #{submission_id}: {e}")
            raise PersistenceError() from e
        if deleted:
            logger.info(f"Deleted submission #{submission_id}")
        return bool(deleted)

    @staticmethod
    def _clean_fields(fields: dict) -> dict:
        unknown = set(fields) - WRITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown submission fields: {sorted(unknown)}")
        cleaned = dict(fields)
        if "email" in cleaned:
            cleaned["email"] = normalize_email(cleaned["email"])
        return cleaned
