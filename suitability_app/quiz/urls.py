from django.urls import path

from . import views

app_name = "quiz"

urlpatterns = [
    path("step/<int:step>/", views.submit_step, name="step"),
    path("submit/", views.submit_quiz, name="submit"),
]
