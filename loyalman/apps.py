from django.apps import AppConfig


class LoyalmanConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "loyalman"
    verbose_name = "Loyalman - Hotel Loyalty"
