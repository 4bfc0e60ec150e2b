from django.urls import include, path

urlpatterns = [
    path("quiz/", include("suitability_app.quiz.urls")),
    path("api/", include("suitability_app.api.urls")),
]
