from django.urls import include, path


urlpatterns = [
    path("scratchcard/", include("scratchcard.urls")),
]
