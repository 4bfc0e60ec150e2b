"""Find the submission a step belongs to."""

from __future__ import annotations

import logging
from typing import Optional

from ..exceptions import IdentityNotFoundError
from .submission_store import SubmissionStore

logger = logging.getLogger(__name__)


class IdentityResolver:
    """
    Resolves the target submission for a step.

    The client's submission token wins when it points at a stored record.
    Otherwise the latest record for the email is used. Email matching is
    case-insensitive and an empty email never matches.
    """

    def __init__(self, store: SubmissionStore):
        self.store = store

    def resolve(self, session_token: Optional[str], email: Optional[str] = None):
        """Return the id of the matching submission, or None."""
        if session_token:
            submission = self.store.get_by_token(session_token)
            if submission is not None:
                return submission.pk
            logger.debug("Submission token did not match any record")

        submission = self.store.latest_for_email(email)
        if submission is not None:
            return submission.pk
        return None

    def require(self, session_token: Optional[str], email: Optional[str] = None):
        submission_id = self.resolve(session_token, email)
        if submission_id is None:
            raise IdentityNotFoundError()
        return submission_id
