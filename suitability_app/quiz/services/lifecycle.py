"""
SubmissionLifecycle - Drives a respondent through the four funnel steps.

Steps 1-3 save partial progress. Step 4 validates everything, scores the
quiz and finalises the record together with its signature. The outcome
of finalisation is announced through the ``quiz_passed`` and
``submission_completed`` signals; the lifecycle never touches a cart.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Optional
from urllib.parse import urlencode

from django.conf import settings
from django.db import transaction

from .. import signals
from ..exceptions import IdentityNotFoundError
from ..models import QUESTION_COUNT, Submission, empty_answers
from ..utils import ClientInfo
from .identity import IdentityResolver
from .scoring import QuizDefinition, ScoreResult, ScoringEngine
from .signatures import SignatureStore
from .step_processor import FINAL_STEP, NormalizedStepData, StepProcessor, parse_step
from .submission_store import SubmissionStore

logger = logging.getLogger(__name__)

Band = Submission.Band

PAID_PACKAGES = (
    Submission.Package.TRIAL,
    Submission.Package.MONTHLY,
    Submission.Package.YEARLY,
)


@dataclass
class SubmissionResult:
    submission: Submission
    score: ScoreResult
    redirect_url: str
    message: str
    question_results: list = field(default_factory=list)
    checkout: Optional[dict] = None

    @property
    def passed(self) -> bool:
        return self.score.passed

    def as_dict(self) -> dict:
        return {
            **self.score.as_dict(),
            "redirect_url": self.redirect_url,
            "message": self.message,
            "results": self.question_results,
        }


@dataclass
class StepOutcome:
    submission: Submission
    created: bool
    result: Optional[SubmissionResult] = None


def overlay_answers(stored, answers: dict[int, int]) -> list:
    """Stored answer slots with the given ``{index: points}`` written over them."""
    merged = list(stored or empty_answers())
    merged.extend([None] * (QUESTION_COUNT - len(merged)))
    for index, points in answers.items():
        merged[index] = points
    return merged


def with_query(url: str, params: dict) -> str:
    if not params:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(params)}"


class SubmissionLifecycle:
    """Entry point for the step and submit views."""

    def __init__(
        self,
        store: SubmissionStore,
        resolver: IdentityResolver,
        processor: StepProcessor,
        scoring: ScoringEngine,
        signatures: SignatureStore,
        checkout_url: Optional[str] = None,
        review_url: Optional[str] = None,
        followup_url: Optional[str] = None,
    ):
        self.store = store
        self.resolver = resolver
        self.processor = processor
        self.scoring = scoring
        self.signatures = signatures
        self.checkout_url = checkout_url or getattr(
            settings, "QUIZ_CHECKOUT_URL", "/checkout/"
        )
        self.review_url = review_url or getattr(
            settings, "QUIZ_REVIEW_URL", "/suitability-review/"
        )
        self.followup_url = followup_url or getattr(
            settings, "QUIZ_FOLLOWUP_URL", "/thank-you/"
        )

    # ------------------------------------------------------------------
    # Steps 1-3
    # ------------------------------------------------------------------

    def submit_step(
        self,
        step,
        session_token: Optional[str],
        payload,
        client: Optional[ClientInfo] = None,
    ) -> StepOutcome:
        """
        Save the data of one intermediate step.

        Step 1 only continues a record its token points at; any other
        step 1 starts a new record, which the duplicate intercept may fold
        into a recent one with the same email. Later steps fall back to the
        email and start a new record when nothing matches.

        Raises:
            ValidationError: If the payload is invalid. Nothing is written.
            PersistenceError: If the write fails
        """
        if parse_step(step) == FINAL_STEP:
            result = self.submit_final(session_token, payload, client)
            return StepOutcome(submission=result.submission, created=False, result=result)

        data = self.processor.process(step, payload)
        client = client or ClientInfo()
        if data.step == 1:
            submission_id = self.resolver.resolve(session_token, None)
        else:
            submission_id = self.resolver.resolve(session_token, data.email)

        fields = {**data.fields, **client.as_fields()}
        if submission_id is None:
            return self._start_record(data, fields, payload)

        existing = self.store.get(submission_id)
        if existing is None:
            return self._start_record(data, fields, payload)
        if data.email and not existing.email:
            fields["email"] = data.email
        try:
            submission = self.store.update(submission_id, fields, answers=data.answers)
        except IdentityNotFoundError:
            # Removed by the duplicate sweep after it was resolved
            logger.warning(f"Submission #{submission_id} disappeared before step {data.step}")
            return self._start_record(data, fields, payload)
        logger.info(f"Saved step {data.step} for submission #{submission.pk}")
        return StepOutcome(submission=submission, created=False)

    def _start_record(self, data: NormalizedStepData, fields: dict, payload) -> StepOutcome:
        if data.step > 1:
            logger.warning(
                f"No submission found for step {data.step}, starting a new record"
            )
            fields = {**self.processor.identity_fields(payload), **fields}
        if data.answers:
            fields["answers"] = overlay_answers(None, data.answers)
        submission, created = self.store.insert(fields)
        return StepOutcome(submission=submission, created=created)

    # ------------------------------------------------------------------
    # Step 4
    # ------------------------------------------------------------------

    def submit_final(
        self,
        session_token: Optional[str],
        payload,
        client: Optional[ClientInfo] = None,
    ) -> SubmissionResult:
        """
        Validate, score and finalise a submission.

        All checks run before anything is written: declaration and
        signature first, then the questionnaire, then the full set of
        answers (stored answers overlaid with the payload's).

        Returns:
            SubmissionResult with the score, band and redirect URL

        Raises:
            ValidationError: ``declaration_or_signature_missing``,
                ``incomplete_answers`` or ``quiz_not_configured``
            PersistenceError: If the final write fails; nothing is kept
        """
        client = client or ClientInfo()
        data = self.processor.process(FINAL_STEP, payload)

        definition = QuizDefinition.load()
        definition.validate()

        # Stored answers are read, scored and written back under one row lock
        with transaction.atomic():
            submission_id = self.resolver.resolve(session_token, data.email)
            existing = self.store.get_for_update(submission_id)

            answers = overlay_answers(
                existing.answers if existing else None, data.answers
            )
            score = self.scoring.score(answers, definition)

            package = data.fields.get("selected_package")
            if package is None:
                package = (
                    existing.selected_package if existing else Submission.Package.NONE
                )
            price = data.fields.get("package_price")
            if price is None:
                price = existing.package_price if existing else 0

            final_fields = {
                **data.fields,
                **client.as_fields(),
                "answers": answers,
                "score": score.score,
                "max_score": score.max_score,
                "passed": score.passed,
                "band": score.band,
                "completed": True,
                "final_declaration_accepted": True,
                "signature_data": data.signature_data,
            }

            if existing is None:
                logger.warning("No submission found at finalisation, starting a new record")
                start_fields = {
                    **self.processor.identity_fields(payload),
                    **client.as_fields(),
                }
                existing, _ = self.store.insert(start_fields)
            if data.email and not existing.email:
                final_fields["email"] = data.email
            submission = self.store.update(existing.pk, final_fields)
            self.signatures.save(
                data.signature_data, submission=submission, client=client
            )

        result = SubmissionResult(
            submission=submission,
            score=score,
            redirect_url=self.redirect_url(score, package),
            message=self.scoring.result_message(score),
            question_results=self.scoring.question_results(answers, definition),
        )
        logger.info(
            f"Finalised submission #{submission.pk}: "
            f"{score.score}/{score.max_score} ({score.band})"
        )

        if score.passed and package in PAID_PACKAGES:
            result.checkout = {"package_type": package, "package_price": price}
            signals.quiz_passed.send(
                sender=self.__class__,
                submission=submission,
                package_type=package,
                package_price=price,
            )
        signals.submission_completed.send(
            sender=self.__class__, submission=submission, result=result
        )
        return result

    def redirect_url(self, score: ScoreResult, package: str) -> str:
        if score.band == Band.PASS:
            params = {}
            if package in PAID_PACKAGES:
                params[str(package)] = "1"
            params["quiz_passed"] = "1"
            params["score"] = str(score.score)
            return with_query(self.checkout_url, params)
        if score.band == Band.BORDERLINE:
            return self.review_url
        return self.followup_url
