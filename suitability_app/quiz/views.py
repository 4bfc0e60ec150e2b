from __future__ import annotations

import json
import logging

from django.conf import settings
from django.http import HttpRequest, JsonResponse, QueryDict
from django.views.decorators.http import require_POST
from django_ratelimit.decorators import ratelimit

from .exceptions import SubmissionError, ValidationError
from .services import build_lifecycle
from .utils import ClientInfo

logger = logging.getLogger(__name__)

SESSION_TOKEN_KEY = "quiz_submission_token"


def step_rate(group, request):
    return settings.QUIZ_STEP_RATE


def _payload(request: HttpRequest):
    if request.content_type == "application/json":
        try:
            data = json.loads(request.body or b"{}")
        except ValueError:
            return QueryDict()
        return data if isinstance(data, dict) else QueryDict()
    return request.POST


def _session_token(request: HttpRequest, payload) -> str:
    return payload.get("submission_token") or request.session.get(SESSION_TOKEN_KEY, "")


def _error_response(e: Exception) -> JsonResponse:
    if isinstance(e, ValidationError):
        return JsonResponse(
            {"ok": False, "errors": [e.code], "message": e.message}, status=400
        )
    return JsonResponse(
        {"ok": False, "errors": [e.code], "message": e.message}, status=503
    )


@require_POST
@ratelimit(key="ip", rate=step_rate, block=True)
def submit_step(request: HttpRequest, step: int) -> JsonResponse:
    """Save one step of the funnel and echo the submission token back."""
    payload = _payload(request)
    lifecycle = build_lifecycle()
    try:
        outcome = lifecycle.submit_step(
            step,
            _session_token(request, payload),
            payload,
            client=ClientInfo.from_request(request),
        )
    except SubmissionError as e:
        logger.warning(f"Step {step} rejected: {e.code}")
        return _error_response(e)

    submission = outcome.submission
    request.session[SESSION_TOKEN_KEY] = submission.token
    body = {
        "ok": True,
        "submission_token": submission.token,
        "current_step": submission.current_step,
    }
    if outcome.result is not None:
        body.update(outcome.result.as_dict())
    return JsonResponse(body)


@require_POST
@ratelimit(key="ip", rate=step_rate, block=True)
def submit_quiz(request: HttpRequest) -> JsonResponse:
    """Finalise the submission: score it and return where to send the respondent."""
    payload = _payload(request)
    lifecycle = build_lifecycle()
    try:
        result = lifecycle.submit_final(
            _session_token(request, payload),
            payload,
            client=ClientInfo.from_request(request),
        )
    except SubmissionError as e:
        logger.warning(f"Final submission rejected: {e.code}")
        return _error_response(e)

    request.session[SESSION_TOKEN_KEY] = result.submission.token
    return JsonResponse(
        {
            "ok": True,
            "submission_token": result.submission.token,
            **result.as_dict(),
        }
    )
