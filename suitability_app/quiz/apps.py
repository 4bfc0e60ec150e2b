from django.apps import AppConfig


class QuizConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "suitability_app.quiz"
    verbose_name = "Suitability Quiz"

    def ready(self):
        from . import signals

        signals.connect_default_receivers()
