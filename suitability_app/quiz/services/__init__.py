"""Service layer for the suitability funnel."""

from .deduplication import DeduplicationMerger
from .identity import IdentityResolver
from .lifecycle import SubmissionLifecycle
from .scoring import ScoringEngine
from .signatures import SignatureStore
from .step_processor import StepProcessor
from .submission_store import SubmissionStore


def build_lifecycle() -> SubmissionLifecycle:
    """Wire the funnel services together with the duplicate intercept installed."""
    store = SubmissionStore()
    DeduplicationMerger(store).install()
    return SubmissionLifecycle(
        store=store,
        resolver=IdentityResolver(store),
        processor=StepProcessor(),
        scoring=ScoringEngine(),
        signatures=SignatureStore(),
    )


def build_merger() -> DeduplicationMerger:
    return DeduplicationMerger(SubmissionStore())


__all__ = [
    "DeduplicationMerger",
    "IdentityResolver",
    "ScoringEngine",
    "SignatureStore",
    "StepProcessor",
    "SubmissionLifecycle",
    "SubmissionStore",
    "build_lifecycle",
    "build_merger",
]
