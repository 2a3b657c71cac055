from django.urls import path

from taskhub.activity.api.views import RecentActivityView

app_name = "activity"

urlpatterns = [
    path("recent/", RecentActivityView.as_view(), name="recent"),
]
