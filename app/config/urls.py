"""
URL configuration for the settlement service.

The `urlpatterns` list routes URLs to views. This is the root URL configuration
that includes all app-specific routes.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - JWT endpoints (simplejwt)
        token/                     - Obtain access/refresh pair
        token/refresh/             - Refresh access token
    /api/v1/orders/                - Order endpoints
        (root)                     - Create order (POST)
        {id}/                      - Order detail
    /api/v1/settlement/            - Settlement endpoints
        orders/{id}/distribute/    - Manual distribution (staff)
        wallets/                   - Current user's wallets
        wallets/{role}/transactions/ - Wallet history
        earnings/                  - Seller earnings summary
        withdrawals/               - List/request withdrawals
        withdrawals/{id}/approve/  - Approve (staff)
        withdrawals/{id}/reject/   - Reject (staff)
        withdrawals/{id}/transfer/ - Start Paystack transfer (staff)
        webhooks/paystack/         - Paystack webhook endpoint (POST)

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Authentication (simplejwt)
    path("auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    # Orders
    path("orders/", include("orders.urls")),
    # Settlement
    path("settlement/", include("settlement.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Settlement Admin"
admin.site.site_title = "Settlement Admin Portal"
admin.site.index_title = "Wallets, withdrawals and webhooks"
