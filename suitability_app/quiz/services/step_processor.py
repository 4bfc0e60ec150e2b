"""
StepProcessor - Validates and normalises the payload of one funnel step.

Pure: nothing here reads or writes the database.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging

from ..exceptions import ValidationError
from ..forms import (
    AnswersForm,
    FinalStepForm,
    LooseEmailField,
    StepOneForm,
    StepTwoForm,
    sanitize_text,
)

logger = logging.getLogger(__name__)

FINAL_STEP = 4

STEP_FORMS = {
    1: StepOneForm,
    2: StepTwoForm,
    3: AnswersForm,
    4: FinalStepForm,
}

PACKAGE_FIELDS = {
    "package_selected": "selected_package",
    "package_price": "package_price",
    "package_source": "package_source",
}

DEMOGRAPHIC_FIELDS = (
    "id_number",
    "gender",
    "birth_date",
    "citizenship",
    "address",
    "marital_status",
    "employment_status",
    "education",
    "profession",
)


@dataclass
class NormalizedStepData:
    """Cleaned values for one step, ready for the store."""

    step: int
    fields: dict = field(default_factory=dict)
    email: str = ""
    answers: dict[int, int] = field(default_factory=dict)
    declaration_accepted: bool = False
    signature_data: str = ""


class StepProcessor:
    def process(self, step, payload) -> NormalizedStepData:
        """
        Validate ``payload`` for ``step`` and return its normalised fields.

        Args:
            step: Funnel step number, 1-4
            payload: Mapping of raw form values (a QueryDict or plain dict)

        Returns:
            NormalizedStepData whose ``fields`` hold only what that step owns

        Raises:
            ValidationError: ``invalid_step``, ``missing_required_fields`` or
                ``declaration_or_signature_missing``
        """
        step = parse_step(step)
        payload = payload if payload is not None else {}
        form = STEP_FORMS[step](data=payload)
        if not form.is_valid():
            missing = sorted(form.errors)
            raise ValidationError(
                code="missing_required_fields",
                message=f"Required fields are missing: {', '.join(missing)}",
            )
        cleaned = form.cleaned_data

        data = NormalizedStepData(step=step, email=cleaned.get("email", ""))
        data.fields["current_step"] = step

        if step == 1:
            for name in ("first_name", "last_name", "phone"):
                data.fields[name] = cleaned[name]
            if data.email:
                data.fields["email"] = data.email

        if step == 2:
            for name in DEMOGRAPHIC_FIELDS:
                data.fields[name] = cleaned[name]

        if step in (1, 4):
            for form_name, model_name in PACKAGE_FIELDS.items():
                if form_name in payload:
                    data.fields[model_name] = cleaned[form_name]

        if step in (3, 4):
            data.answers = form.answers()

        if step == 4:
            data.declaration_accepted = form.declaration_accepted()
            data.signature_data = cleaned.get("signature_data", "")
            if not data.declaration_accepted or not data.signature_data:
                raise ValidationError(
                    code="declaration_or_signature_missing",
                    message="Please accept the declaration and sign before submitting.",
                )

        return data

    def identity_fields(self, payload) -> dict:
        """
        Contact details resent with a later step, used when that step has to
        start a new record. Nothing is required here.
        """
        payload = payload if payload is not None else {}
        fields = {
            "first_name": sanitize_text(payload.get("first_name"), 100),
            "last_name": sanitize_text(payload.get("last_name"), 100),
            "phone": sanitize_text(payload.get("phone"), 20),
        }
        email = LooseEmailField().clean(payload.get("email"))
        if email:
            fields["email"] = email
        return {name: value for name, value in fields.items() if value}


def parse_step(step) -> int:
    try:
        value = int(step)
    except (TypeError, ValueError):
        value = None
    if value not in STEP_FORMS:
        raise ValidationError(code="invalid_step", message=f"Unknown step: {step}")
    return value
