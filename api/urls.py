from django.urls import include, path
from rest_framework.routers import DefaultRouter

from api.views import EventTemplateViewSet, EventViewSet, MinistryViewSet

router = DefaultRouter()
router.register("templates", EventTemplateViewSet, basename="template")
router.register("ministries", MinistryViewSet)
router.register("events", EventViewSet)

urlpatterns = [
    path("", include(router.urls)),
]
