from __future__ import annotations

import decimal
import secrets

from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone

QUESTION_COUNT = 10
CHOICES_PER_QUESTION = 4
MIN_POINTS = 1
MAX_POINTS = 4
MAX_SCORE = QUESTION_COUNT * MAX_POINTS

DEFAULT_CITIZENSHIP = "ישראלית"


def generate_submission_token() -> str:
    """Opaque correlation id handed to the client at step 1."""
    return secrets.token_urlsafe(24)


def empty_answers() -> list:
    return [None] * QUESTION_COUNT


class QuizQuestion(models.Model):
    """
    One question of the suitability questionnaire.

    The questionnaire is owned by site administrators; the funnel only
    reads it. ``choices`` holds ``{"label": str, "points": int}`` entries.
    """

    order = models.PositiveSmallIntegerField(unique=True)
    text = models.CharField(max_length=500)
    choices = models.JSONField(default=list)
    explanation = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["order"]

    def __str__(self) -> str:  # pragma: no cover
        return f"Q{self.order + 1}: {self.text}"

    @property
    def max_points(self) -> int:
        points = [c.get("points", 0) for c in self.choices if isinstance(c, dict)]
        return max(points) if points else 0


class Submission(models.Model):
    """
    A single respondent's pass through the four-step suitability funnel.

    Created at step 1, mutated in place by later steps, finalised at step 4.
    """

    class Package(models.TextChoices):
        TRIAL = "trial", "Trial"
        MONTHLY = "monthly", "Monthly"
        YEARLY = "yearly", "Yearly"
        NONE = "none", "None"

    class Band(models.TextChoices):
        PASS = "pass", "Pass"
        BORDERLINE = "borderline", "Borderline"
        FAIL = "fail", "Fail"

    token = models.CharField(
        max_length=64,
        unique=True,
        default=generate_submission_token,
        editable=False,
        help_text="Correlation id echoed by the client on every step",
    )

    # Identity
    email = models.EmailField(max_length=254, blank=True, db_index=True)
    phone = models.CharField(max_length=20, blank=True)

    # Step 1/2: personal details
    first_name = models.CharField(max_length=100, blank=True)
    last_name = models.CharField(max_length=100, blank=True)
    id_number = models.CharField(max_length=20, blank=True)
    gender = models.CharField(max_length=10, blank=True)
    birth_date = models.DateField(null=True, blank=True)
    citizenship = models.CharField(max_length=50, default=DEFAULT_CITIZENSHIP)
    address = models.TextField(blank=True)
    marital_status = models.CharField(max_length=20, blank=True)
    employment_status = models.CharField(max_length=50, blank=True)
    education = models.CharField(max_length=50, blank=True)
    profession = models.CharField(max_length=100, blank=True)

    # Package attribution
    selected_package = models.CharField(
        max_length=10, choices=Package.choices, default=Package.NONE
    )
    package_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=decimal.Decimal("0"),
        validators=[MinValueValidator(decimal.Decimal("0"))],
    )
    package_source = models.CharField(max_length=255, blank=True)

    # Quiz answers: one slot per question, None until answered
    answers = models.JSONField(default=empty_answers)

    # Scoring
    score = models.PositiveSmallIntegerField(default=0)
    max_score = models.PositiveSmallIntegerField(default=MAX_SCORE)
    passed = models.BooleanField(default=False)
    band = models.CharField(max_length=12, choices=Band.choices, blank=True)

    # Progress
    current_step = models.PositiveSmallIntegerField(default=1)
    completed = models.BooleanField(default=False)

    # Declaration
    final_declaration_accepted = models.BooleanField(default=False)
    signature_data = models.TextField(blank=True)

    # Metadata
    created_at = models.DateTimeField(auto_now_add=True)
    submission_time = models.DateTimeField(default=timezone.now, db_index=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)

    # Fields a merge may copy between records for the same respondent
    MERGEABLE_FIELDS = (
        "email",
        "phone",
        "first_name",
        "last_name",
        "id_number",
        "gender",
        "birth_date",
        "citizenship",
        "address",
        "marital_status",
        "employment_status",
        "education",
        "profession",
        "selected_package",
        "package_price",
        "package_source",
        "answers",
        "score",
        "max_score",
        "passed",
        "band",
        "current_step",
        "completed",
        "final_declaration_accepted",
        "signature_data",
        "ip_address",
        "user_agent",
    )

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(
                fields=["email", "submission_time"], name="submission_email_time_idx"
            ),
            models.Index(fields=["completed", "passed"], name="submission_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(current_step__gte=1) & Q(current_step__lte=4),
                name="submission_step_in_range",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        name = f"{self.first_name} {self.last_name}".strip() or "anonymous"
        return f"Submission #{self.pk} ({name}, step {self.current_step})"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def score_percentage(self) -> int:
        """Score as a whole percentage of max_score, rounded half-up."""
        if not self.max_score:
            return 0
        value = decimal.Decimal(self.score) * 100 / decimal.Decimal(self.max_score)
        return int(value.quantize(decimal.Decimal("1"), rounding=decimal.ROUND_HALF_UP))

    @property
    def answered_count(self) -> int:
        return len([a for a in (self.answers or []) if a is not None])

    @property
    def has_signature(self) -> bool:
        return bool(self.signature_data)


class SignatureRecord(models.Model):
    """Signature blob captured at finalisation, kept apart from the submission row."""

    submission = models.ForeignKey(
        Submission,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="signatures",
    )
    email = models.EmailField(max_length=254, blank=True, db_index=True)
    signature_data = models.TextField()
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]


class SubmissionLock(models.Model):
    """
    Serialisation point for writes that key on an email address.

    Row locks on this table stand in for a per-email mutex so that two
    concurrent first submissions cannot both miss the duplicate check.
    """

    email = models.CharField(max_length=254, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)
