# products/api/urls.py

from django.urls import path

from products.api.views import StockLevelView, StockMovementListView


urlpatterns = [
    path("movements/", StockMovementListView.as_view(), name="stock-movements"),
    path("levels/<uuid:product_id>/", StockLevelView.as_view(), name="stock-levels"),
]
