"""Forms that normalise the raw payload of each funnel step.

Validation here is deliberately loose: free text is trimmed, stripped of
markup and control characters and cut to the column width, but formats
(phone numbers, ID numbers) are not checked.
"""

import decimal
import re

from django import forms
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.utils.dateparse import parse_date
from django.utils.html import strip_tags

from .models import (
    DEFAULT_CITIZENSHIP,
    MAX_POINTS,
    MIN_POINTS,
    QUESTION_COUNT,
    Submission,
)

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_WHITESPACE = re.compile(r"\s+")
_TRUTHY = {"1", "on", "true", "yes"}

# Questions answered on each quiz step
STEP_QUESTIONS = {
    3: range(0, 5),
    4: range(5, QUESTION_COUNT),
}


def sanitize_text(value, limit: int | None = None, multiline: bool = False) -> str:
    """Trim and clean a free-text value the way the form front end expects."""
    if value is None:
        return ""
    text = strip_tags(str(value))
    text = _CONTROL_CHARS.sub("", text)
    if multiline:
        lines = [_WHITESPACE.sub(" ", line).strip() for line in text.splitlines()]
        text = "\n".join(lines).strip()
    else:
        text = _WHITESPACE.sub(" ", text).strip()
    if limit is not None:
        text = text[:limit]
    return text


def parse_answer(value) -> int | None:
    """Return the point value of an answer, or None when missing or out of range."""
    if value is None or value == "":
        return None
    try:
        points = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    if MIN_POINTS <= points <= MAX_POINTS:
        return points
    return None


def is_truthy(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in _TRUTHY


class CleanTextField(forms.CharField):
    """CharField that sanitises and truncates instead of rejecting long input."""

    def __init__(self, *, limit=None, multiline=False, **kwargs):
        self.limit = limit
        self.multiline = multiline
        kwargs.setdefault("required", False)
        super().__init__(**kwargs)

    def to_python(self, value):
        return sanitize_text(value, self.limit, self.multiline)


class LooseEmailField(forms.CharField):
    """Email that is lower-cased, and dropped rather than rejected when malformed."""

    def __init__(self, **kwargs):
        kwargs.setdefault("required", False)
        super().__init__(**kwargs)

    def to_python(self, value):
        email = sanitize_text(value, 254).lower()
        if not email:
            return ""
        try:
            validate_email(email)
        except DjangoValidationError:
            return ""
        return email


class LooseDateField(forms.CharField):
    def __init__(self, **kwargs):
        kwargs.setdefault("required", False)
        super().__init__(**kwargs)

    def to_python(self, value):
        text = sanitize_text(value, 10)
        if not text:
            return None
        try:
            return parse_date(text)
        except ValueError:
            return None


class PackageForm(forms.Form):
    """Package attribution carried from the landing page."""

    package_selected = CleanTextField(limit=10)
    package_price = CleanTextField(limit=20)
    package_source = CleanTextField(limit=255)

    def clean_package_selected(self):
        package = self.cleaned_data.get("package_selected", "").lower()
        if package in Submission.Package.values:
            return package
        return Submission.Package.NONE

    def clean_package_price(self):
        raw = self.cleaned_data.get("package_price", "")
        try:
            price = decimal.Decimal(raw or "0")
        except decimal.InvalidOperation:
            return decimal.Decimal("0")
        if not price.is_finite() or price < 0:
            return decimal.Decimal("0")
        return price.quantize(decimal.Decimal("0.01"))


class StepOneForm(PackageForm):
    first_name = CleanTextField(limit=100, required=True)
    last_name = CleanTextField(limit=100, required=True)
    phone = CleanTextField(limit=20, required=True)
    email = LooseEmailField()


class StepTwoForm(forms.Form):
    # Used only to find the record started at step 1
    email = LooseEmailField()

    id_number = CleanTextField(limit=20)
    gender = CleanTextField(limit=10)
    birth_date = LooseDateField()
    citizenship = CleanTextField(limit=50)
    address = CleanTextField(multiline=True, limit=1000)
    marital_status = CleanTextField(limit=20)
    employment_status = CleanTextField(limit=50)
    education = CleanTextField(limit=50)
    profession = CleanTextField(limit=100)

    def clean_citizenship(self):
        return self.cleaned_data.get("citizenship") or DEFAULT_CITIZENSHIP


class AnswersForm(forms.Form):
    """Quiz answers keyed ``question_0`` .. ``question_9``."""

    email = LooseEmailField()

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        for index in range(QUESTION_COUNT):
            self.fields[f"question_{index}"] = forms.CharField(
                required=False, strip=True
            )

    def answers(self) -> dict[int, int]:
        """Answered questions only, as ``{index: points}``."""
        found = {}
        for index in range(QUESTION_COUNT):
            points = parse_answer(self.cleaned_data.get(f"question_{index}"))
            if points is not None:
                found[index] = points
        return found


class FinalStepForm(AnswersForm, PackageForm):
    final_declaration = forms.CharField(required=False)
    final_declaration_accepted = forms.CharField(required=False)
    # Opaque image payload from the signature pad; kept verbatim apart from trimming
    signature_data = forms.CharField(required=False, strip=True)

    def declaration_accepted(self) -> bool:
        return is_truthy(self.cleaned_data.get("final_declaration")) or is_truthy(
            self.cleaned_data.get("final_declaration_accepted")
        )
