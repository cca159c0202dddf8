from django.apps import AppConfig


class MedicalServicesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "medical_services"
    verbose_name = "Services"
