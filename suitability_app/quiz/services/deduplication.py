"""
DeduplicationMerger - Collapses repeat submissions from the same respondent.

Two mechanisms share one merge rule (first non-empty value wins):

- ``intercept`` runs synchronously before an insert. When a record with
  the same email was written inside the dedup window, the incoming fields
  are merged into it and no new row is created.
- ``sweep`` runs from ``manage.py dedupe_submissions``. It groups every
  record by email, keeps the most advanced one and folds the rest into it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import decimal
from datetime import timedelta
import logging
from typing import Optional

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import Count
from django.db.models.functions import Lower
from django.utils import timezone

from ..exceptions import MergeConflictError
from ..models import SignatureRecord, Submission
from ..utils import normalize_email
from .submission_store import SubmissionStore

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_MINUTES = 10


def is_empty(name: str, value) -> bool:
    """Whether a stored value counts as "not yet provided" for merging."""
    if value is None:
        return True
    if isinstance(value, bool):
        return not value
    if isinstance(value, (int, float, decimal.Decimal)):
        return value == 0
    if isinstance(value, str):
        if name == "selected_package" and value == Submission.Package.NONE:
            return True
        return value.strip() == ""
    if isinstance(value, list):
        return all(item is None for item in value)
    if isinstance(value, dict):
        return not value
    return False


@dataclass
class SweepReport:
    groups: int = 0
    merged: int = 0
    deleted: int = 0
    failed: list[str] = field(default_factory=list)
    locks_pruned: int = 0
    dry_run: bool = False


class DeduplicationMerger:
    """Merge rule, synchronous intercept and batch sweep for duplicate submissions."""

    def __init__(self, store: SubmissionStore, window_minutes: Optional[int] = None):
        self.store = store
        if window_minutes is None:
            window_minutes = getattr(
                settings, "QUIZ_DEDUP_WINDOW_MINUTES", DEFAULT_WINDOW_MINUTES
            )
        self.window = timedelta(minutes=window_minutes)

    def install(self) -> "DeduplicationMerger":
        """Register ``intercept`` as a pre-insert hook on the store."""
        self.store.add_pre_insert_hook(self.intercept)
        return self

    # ------------------------------------------------------------------
    # Merge rule
    # ------------------------------------------------------------------

    @staticmethod
    def merge_fields(existing: Submission, incoming: dict) -> dict:
        """
        Work out which incoming values should be written onto ``existing``.

        Args:
            existing: The record that will absorb the write
            incoming: Field values of the write being absorbed

        Returns:
            Dict of field updates. Empty when nothing new was supplied.
        """
        updates = {}
        for name, value in incoming.items():
            if name not in Submission.MERGEABLE_FIELDS:
                continue
            if name == "current_step":
                if int(value) > existing.current_step:
                    updates[name] = int(value)
                continue
            if name == "answers":
                merged = _merge_answers(existing.answers, value)
                if merged != existing.answers:
                    updates[name] = merged
                continue
            if is_empty(name, getattr(existing, name)) and not is_empty(name, value):
                updates[name] = value

        # Any write past step 1 arriving through the intercept marks the
        # absorbing record completed.
        if int(incoming.get("current_step") or 1) >= 2 and not existing.completed:
            updates["completed"] = True
        return updates

    # ------------------------------------------------------------------
    # Synchronous intercept
    # ------------------------------------------------------------------

    def intercept(self, fields: dict) -> Optional[Submission]:
        """
        Pre-insert hook. Runs inside the store's insert transaction, under
        the email lock.

        Returns:
            The record that absorbed the write, or None to insert normally
        """
        email = normalize_email(fields.get("email"))
        if not email:
            return None

        cutoff = timezone.now() - self.window
        existing = (
            Submission.objects.select_for_update()
            .filter(email__iexact=email, submission_time__gte=cutoff)
            .order_by("-submission_time", "-id")
            .first()
        )
        if existing is None:
            return None

        updates = self.merge_fields(existing, fields)
        if updates:
            existing = self.store.update(existing.pk, updates)
            logger.info(
                f"Merged duplicate submission into #{existing.pk} "
                f"({len(updates)} fields updated)"
            )
        else:
            logger.info(f"Duplicate submission absorbed by #{existing.pk}, nothing new")
        return existing

    # ------------------------------------------------------------------
    # Batch sweep
    # ------------------------------------------------------------------

    def find_duplicate_groups(self) -> list[tuple[str, int]]:
        """Emails (lower-cased) that own more than one record, with their counts."""
        rows = (
            Submission.objects.exclude(email="")
            .annotate(email_key=Lower("email"))
            .values("email_key")
            .annotate(total=Count("id"))
            .filter(total__gt=1)
            .order_by("email_key")
        )
        return [(row["email_key"], row["total"]) for row in rows]

    @staticmethod
    def choose_keeper(rows: list[Submission]) -> Submission:
        """Highest current_step wins, ties go to the lowest id."""
        return min(rows, key=lambda row: (-row.current_step, row.pk))

    def merge_group(self, email: str) -> int:
        """
        Fold every record for ``email`` into one keeper.

        Returns:
            Number of records deleted

        Raises:
            MergeConflictError: If the group could not be merged
        """
        try:
            with transaction.atomic():
                with self.store.lock_email(email):
                    rows = list(
                        Submission.objects.select_for_update()
                        .filter(email__iexact=email)
                        .order_by("id")
                    )
                    if len(rows) < 2:
                        return 0

                    keeper = self.choose_keeper(rows)
                    others = [row for row in rows if row.pk != keeper.pk]

                    # Field-wise merge, the scoring fields included: a failing
                    # keeper can take passed=True from a duplicate while its
                    # own score and band stay as they are.
                    updates = {}
                    for other in others:
                        for name in Submission.MERGEABLE_FIELDS:
                            current = updates.get(name, getattr(keeper, name))
                            value = getattr(other, name)
                            if name == "answers":
                                merged = _merge_answers(current, value)
                                if merged != current:
                                    updates[name] = merged
                            elif is_empty(name, current) and not is_empty(name, value):
                                updates[name] = value

                    other_ids = [row.pk for row in others]
                    SignatureRecord.objects.filter(submission_id__in=other_ids).update(
                        submission=keeper
                    )
                    Submission.objects.filter(pk__in=other_ids).delete()

                    if updates:
                        for name, value in updates.items():
                            setattr(keeper, name, value)
                        keeper.save(update_fields=list(updates))
        except DatabaseError as e:
            raise MergeConflictError(
                message=f"Could not merge submissions for one email group: {e}"
            ) from e

        logger.info(
            f"Merged {len(other_ids)} duplicate submissions into #{keeper.pk}"
        )
        return len(other_ids)

    def sweep(self, dry_run: bool = False) -> SweepReport:
        """
        Merge every email group with more than one record.

        Each group is handled in its own transaction; a group that fails is
        logged and left untouched while the sweep continues. Lock rows for
        emails without any submission are pruned afterwards.
        """
        report = SweepReport(dry_run=dry_run)
        for email, total in self.find_duplicate_groups():
            report.groups += 1
            if dry_run:
                report.deleted += total - 1
                continue
            try:
                deleted = self.merge_group(email)
            except MergeConflictError as e:
                logger.error(f"Skipping duplicate group: {e.message}")
                report.failed.append(email)
                continue
            if deleted:
                report.merged += 1
                report.deleted += deleted

        if not dry_run:
            report.locks_pruned = self.store.prune_locks()

        if report.deleted and not dry_run:
            logger.info(
                f"Duplicate sweep merged {report.merged} groups, "
                f"removed {report.deleted} submissions"
            )
        return report


def _merge_answers(current, incoming) -> list:
    """Fill unanswered slots of ``current`` from ``incoming``."""
    merged = list(current or [])
    incoming = list(incoming or [])
    if len(merged) < len(incoming):
        merged.extend([None] * (len(incoming) - len(merged)))
    for index, value in enumerate(incoming):
        if merged[index] is None and value is not None:
            merged[index] = value
    return merged
