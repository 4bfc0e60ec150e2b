"""
ScoringEngine - Turns ten answers into a score, a band and a pass flag.

Bands are evaluated in order: PASS at or above the pass score, BORDERLINE
from the borderline minimum up to one below the pass score, FAIL below
that. Only PASS counts as passed.
"""

from __future__ import annotations

from dataclasses import dataclass
import decimal
import logging
from typing import Optional, Sequence

from django.conf import settings

from ..exceptions import ValidationError
from ..models import (
    CHOICES_PER_QUESTION,
    MAX_POINTS,
    MAX_SCORE,
    MIN_POINTS,
    QUESTION_COUNT,
    QuizQuestion,
    Submission,
)

logger = logging.getLogger(__name__)

DEFAULT_PASS_SCORE = 23
DEFAULT_BORDERLINE_MIN_SCORE = 19

# Threshold quoted in the respondent-facing instructions
DECLARED_PASSING_SCORE = 21

Band = Submission.Band


@dataclass(frozen=True)
class ScoreResult:
    score: int
    max_score: int
    percentage: int
    band: str

    @property
    def passed(self) -> bool:
        return self.band == Band.PASS

    def as_dict(self) -> dict:
        return {
            "score": self.score,
            "max_score": self.max_score,
            "percentage": self.percentage,
            "band": self.band,
            "passed": self.passed,
        }


@dataclass(frozen=True)
class QuizDefinition:
    """The questionnaire as configured by site administrators."""

    questions: tuple

    @classmethod
    def load(cls) -> "QuizDefinition":
        rows = QuizQuestion.objects.order_by("order")
        return cls(
            questions=tuple(
                {
                    "text": row.text,
                    "choices": list(row.choices or []),
                    "explanation": row.explanation,
                }
                for row in rows
            )
        )

    def validate(self) -> None:
        """
        Raises:
            ValidationError: ``quiz_not_configured`` unless there are exactly
                ten questions, each with four choices worth 1-4 points
        """
        if len(self.questions) != QUESTION_COUNT:
            raise _not_configured(
                f"Expected {QUESTION_COUNT} questions, found {len(self.questions)}"
            )
        for index, question in enumerate(self.questions):
            choices = question.get("choices") or []
            if len(choices) != CHOICES_PER_QUESTION:
                raise _not_configured(
                    f"Question {index + 1} needs {CHOICES_PER_QUESTION} choices"
                )
            for choice in choices:
                points = choice.get("points") if isinstance(choice, dict) else None
                if not _is_point_value(points):
                    raise _not_configured(
                        f"Question {index + 1} has an invalid point value"
                    )

    def allowed_points(self, index: int) -> set[int]:
        return {choice["points"] for choice in self.questions[index]["choices"]}


def _not_configured(detail: str) -> ValidationError:
    logger.error(f"Quiz definition is invalid: {detail}")
    return ValidationError(
        code="quiz_not_configured",
        message="השאלון לא מוגדר כראוי. אנא פנה למנהל האתר.",
    )


def _is_point_value(value) -> bool:
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and MIN_POINTS <= value <= MAX_POINTS
    )


class ScoringEngine:
    def __init__(
        self,
        pass_score: Optional[int] = None,
        borderline_min_score: Optional[int] = None,
    ):
        if pass_score is None:
            pass_score = getattr(settings, "QUIZ_PASS_SCORE", DEFAULT_PASS_SCORE)
        if borderline_min_score is None:
            borderline_min_score = getattr(
                settings, "QUIZ_BORDERLINE_MIN_SCORE", DEFAULT_BORDERLINE_MIN_SCORE
            )
        self.pass_score = pass_score
        self.borderline_min_score = borderline_min_score

    def classify(self, score: int) -> str:
        if score >= self.pass_score:
            return Band.PASS
        if score >= self.borderline_min_score:
            return Band.BORDERLINE
        return Band.FAIL

    def score(
        self, answers: Sequence, definition: Optional[QuizDefinition] = None
    ) -> ScoreResult:
        """
        Score a complete set of answers.

        Args:
            answers: Ten point values in question order
            definition: Optional questionnaire to check answers against

        Returns:
            ScoreResult with score, max_score, percentage and band

        Raises:
            ValidationError: ``incomplete_answers`` if an answer is missing or
                out of range, ``quiz_not_configured`` if the definition is invalid
        """
        if definition is not None:
            definition.validate()

        answers = list(answers or [])
        if len(answers) != QUESTION_COUNT or not all(_is_point_value(a) for a in answers):
            raise ValidationError(
                code="incomplete_answers",
                message="אנא ענה על כל השאלות.",
            )
        if definition is not None:
            for index, points in enumerate(answers):
                if points not in definition.allowed_points(index):
                    raise ValidationError(
                        code="incomplete_answers",
                        message="אנא ענה על כל השאלות.",
                    )

        total = sum(answers)
        percentage = decimal.Decimal(total) * 100 / decimal.Decimal(MAX_SCORE)
        return ScoreResult(
            score=total,
            max_score=MAX_SCORE,
            percentage=int(
                percentage.quantize(decimal.Decimal("1"), rounding=decimal.ROUND_HALF_UP)
            ),
            band=self.classify(total),
        )

    @staticmethod
    def question_results(answers: Sequence, definition: QuizDefinition) -> list[dict]:
        """Per-question breakdown shown on the results screen."""
        results = []
        for question, points in zip(definition.questions, answers):
            results.append(
                {
                    "question": question["text"],
                    "points_earned": points,
                    "max_points": MAX_POINTS,
                    "explanation": question.get("explanation", ""),
                }
            )
        return results

    def result_message(self, result: ScoreResult) -> str:
        summary = f"{result.score}/{result.max_score}"
        if result.band == Band.PASS:
            return f"כל הכבוד! עברת את השאלון בציון {summary}"
        if result.band == Band.BORDERLINE:
            return f"ציון: {summary}. תשובותיך יועברו לבדיקה נוספת."
        return f"ציון: {summary}. ציון מעבר מינימלי הוא {self.pass_score}."
