"""Signature blobs captured when a submission is finalised."""

from __future__ import annotations

import logging
from typing import Optional

from django.db import DatabaseError

from ..exceptions import IdentityNotFoundError, PersistenceError
from ..models import SignatureRecord, Submission
from ..utils import ClientInfo, normalize_email

logger = logging.getLogger(__name__)


class SignatureStore:
    def save(
        self,
        signature_data: str,
        submission: Optional[Submission] = None,
        email: str = "",
        client: Optional[ClientInfo] = None,
    ) -> SignatureRecord:
        """
        Store a signature, linked to its submission when there is one.

        Raises:
            PersistenceError: If the database rejects the write
        """
        client = client or ClientInfo()
        if not email and submission is not None:
            email = submission.email
        try:
            record = SignatureRecord.objects.create(
                submission=submission,
                email=normalize_email(email),
                signature_data=signature_data,
                ip_address=client.ip_address,
                user_agent=client.user_agent,
            )
        except DatabaseError as e:
            logger.error(f"Failed to store signature: {e}")
            raise PersistenceError() from e
        return record

    def latest(
        self, submission_id=None, email: Optional[str] = None
    ) -> Optional[SignatureRecord]:
        """
        Newest signature for a submission, falling back to the email.

        Raises:
            IdentityNotFoundError: If neither a submission id nor an email is given
        """
        email = normalize_email(email)
        if submission_id is None and not email:
            raise IdentityNotFoundError(
                message="A submission id or email is required to look up a signature."
            )
        record = None
        if submission_id is not None:
            record = SignatureRecord.objects.filter(submission_id=submission_id).first()
        if record is None and email:
            record = SignatureRecord.objects.filter(email__iexact=email).first()
        return record
