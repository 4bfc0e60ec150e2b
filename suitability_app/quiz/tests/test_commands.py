from io import StringIO

from django.core.management import call_command
import pytest

from suitability_app.quiz.defaults import DEFAULT_QUESTIONS
from suitability_app.quiz.models import QuizQuestion
from suitability_app.quiz.services.scoring import QuizDefinition


@pytest.mark.django_db
class TestSeedQuizQuestions:
    def test_seeds_empty_questionnaire(self):
        out = StringIO()
        call_command("seed_quiz_questions", stdout=out)

        assert QuizQuestion.objects.count() == 10
        assert "Loaded 10 quiz questions" in out.getvalue()
        QuizDefinition.load().validate()

    def test_keeps_configured_questionnaire(self):
        call_command("seed_quiz_questions", stdout=StringIO())
        QuizQuestion.objects.filter(order=0).update(text="Edited by admin")

        out = StringIO()
        call_command("seed_quiz_questions", stdout=out)

        assert QuizQuestion.objects.get(order=0).text == "Edited by admin"
        assert "already configured" in out.getvalue()

    def test_force_replaces_questions(self):
        call_command("seed_quiz_questions", stdout=StringIO())
        QuizQuestion.objects.filter(order=0).update(text="Edited by admin")

        call_command("seed_quiz_questions", "--force", stdout=StringIO())

        assert QuizQuestion.objects.get(order=0).text == DEFAULT_QUESTIONS[0]["text"]
        assert QuizQuestion.objects.count() == 10

    def test_partial_questionnaire_is_replaced(self):
        QuizQuestion.objects.create(order=0, text="Only one", choices=[])
        call_command("seed_quiz_questions", stdout=StringIO())
        assert QuizQuestion.objects.count() == 10
