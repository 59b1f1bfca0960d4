from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

from billing import health

urlpatterns = [
    path("admin/", admin.site.urls),
    path("health", health.liveness_check, name="health_check"),
    path("health/ready", health.readiness_check, name="readiness_check"),
    path("api/schema", SpectacularAPIView.as_view(), name="api-schema"),
    path("api/docs", SpectacularSwaggerView.as_view(url_name="api-schema"), name="api-docs"),
    path("api/", include("billing.api.urls")),
]
