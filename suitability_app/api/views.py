import logging
from typing import Any

from rest_framework import mixins, permissions, serializers, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.response import Response

from suitability_app.quiz.exceptions import PersistenceError
from suitability_app.quiz.models import SignatureRecord, Submission
from suitability_app.quiz.services import SignatureStore, SubmissionStore

logger = logging.getLogger(__name__)


class SubmissionSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)
    score_percentage = serializers.IntegerField(read_only=True)
    answered_count = serializers.IntegerField(read_only=True)
    has_signature = serializers.BooleanField(read_only=True)

    class Meta:
        model = Submission
        fields = [
            "id",
            "email",
            "phone",
            "first_name",
            "last_name",
            "full_name",
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
            "answered_count",
            "score",
            "max_score",
            "score_percentage",
            "passed",
            "band",
            "current_step",
            "completed",
            "final_declaration_accepted",
            "has_signature",
            "created_at",
            "submission_time",
            "ip_address",
            "user_agent",
        ]
        read_only_fields = fields


class SignatureSerializer(serializers.ModelSerializer):
    class Meta:
        model = SignatureRecord
        fields = ["id", "submission", "email", "signature_data", "created_at"]
        read_only_fields = fields


def _parse_bool(value) -> Any:
    if value is None or value == "":
        return None
    return str(value).lower() in ("1", "true", "yes")


class SubmissionViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """Read and delete access to funnel submissions for staff."""

    serializer_class = SubmissionSerializer
    permission_classes = [permissions.IsAdminUser]

    def get_store(self) -> SubmissionStore:
        return SubmissionStore()

    def get_queryset(self):
        params = self.request.query_params
        return self.get_store().list(
            completed=_parse_bool(params.get("completed")),
            passed=_parse_bool(params.get("passed")),
            search=params.get("search", ""),
        )

    def destroy(self, request, *args, **kwargs):
        submission = self.get_object()
        try:
            self.get_store().delete(submission.pk)
        except PersistenceError as e:
            return Response(
                {"detail": e.message}, status=status.HTTP_503_SERVICE_UNAVAILABLE
            )
        logger.info(f"Submission #{submission.pk} deleted by {request.user}")
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=["get"])
    def stats(self, request):
        return Response(self.get_store().stats())

    @action(detail=True, methods=["get"])
    def signature(self, request, pk=None):
        submission = self.get_object()
        record = SignatureStore().latest(
            submission_id=submission.pk, email=submission.email
        )
        if record is None:
            raise NotFound("No signature stored for this submission.")
        return Response(SignatureSerializer(record).data)
