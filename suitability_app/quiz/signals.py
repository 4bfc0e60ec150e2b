"""
Events raised when a submission is finalised.

``quiz_passed`` is the hand-off to checkout: receivers get the submission,
``package_type`` and ``package_price`` and are expected to add the package
to the respondent's cart. ``submission_completed`` fires for every
finalised submission with the submission and its ``result``.
"""

import logging

from django.dispatch import Signal

logger = logging.getLogger(__name__)

quiz_passed = Signal()
submission_completed = Signal()


def log_checkout_handoff(sender, submission, package_type, package_price, **kwargs):
    logger.info(
        f"Submission #{submission.pk} passed, handing {package_type} "
        f"package ({package_price}) to checkout"
    )


def log_completion(sender, submission, result, **kwargs):
    logger.info(f"Submission #{submission.pk} completed with band {result.score.band}")


def connect_default_receivers():
    quiz_passed.connect(log_checkout_handoff, dispatch_uid="quiz.log_checkout_handoff")
    submission_completed.connect(log_completion, dispatch_uid="quiz.log_completion")
