"""
Load the default ten-question suitability questionnaire.

Usage:
    python manage.py seed_quiz_questions
    python manage.py seed_quiz_questions --force
"""

from django.core.management.base import BaseCommand

from suitability_app.quiz.defaults import install_default_questions


class Command(BaseCommand):
    help = "Load the default suitability questionnaire if it is not configured"

    def add_arguments(self, parser):
        parser.add_argument(
            "--force",
            action="store_true",
            help="Replace any existing questions with the defaults",
        )

    def handle(self, *args, **options):
        written = install_default_questions(force=options["force"])
        if written:
            self.stdout.write(self.style.SUCCESS(f"Loaded {written} quiz questions"))
        else:
            self.stdout.write(
                self.style.WARNING(
                    "Questionnaire already configured. Use --force to replace it."
                )
            )
