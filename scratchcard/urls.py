from django.urls import path

from . import views


app_name = "scratchcard"

urlpatterns = [
    path("cards/<str:card_id>/", views.card_detail, name="card_detail"),
    path("cards/<str:card_id>/stock/", views.card_stock, name="card_stock"),
    path("cards/<str:card_id>/play/", views.play_card, name="play_card"),
    path("broadcast/", views.broadcast, name="broadcast"),
]
