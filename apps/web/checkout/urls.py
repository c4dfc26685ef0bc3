"""
URL routing for cart and checkout endpoints.
"""

from django.urls import path

from apps.web.checkout import views

app_name = "checkout"

urlpatterns = [
    # Cart
    path("cart/", views.cart_summary, name="cart"),
    path("cart/items", views.cart_add, name="cart_add"),
    path("cart/items/<str:item_id>", views.cart_item, name="cart_item"),
    # Checkout
    path("checkout/", views.checkout, name="checkout"),
    # Return URL for the payment gateway
    path("checkout/success", views.checkout_success, name="success"),
]
