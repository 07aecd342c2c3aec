from django.urls import path
from .views import OrdersPingView, CreateOrderView, VerifyPaymentView
app_name = "orders"

urlpatterns = [
    path("ping/", OrdersPingView.as_view(), name="ping"),
    path("create/", CreateOrderView.as_view(), name="create"),
    path("verify/", VerifyPaymentView.as_view(), name="verify"),
]
