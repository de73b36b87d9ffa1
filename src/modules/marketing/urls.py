"""Marketing URL configuration."""

from django.urls import path

from modules.marketing.views import DiscountPreviewView

urlpatterns = [
    path("discounts/preview/", DiscountPreviewView.as_view(), name="discount-preview"),
]
