from django.apps import AppConfig


class RatingAndReviewsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "rating_and_reviews"
