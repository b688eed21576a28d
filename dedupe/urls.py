from django.urls import path

from dedupe import views

app_name = "dedupe"

urlpatterns = [
    path("dedupe/", views.dedupe_view, name="dedupe"),
    path("restore/", views.restore_view, name="restore"),
]
