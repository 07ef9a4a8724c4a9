from django.apps import AppConfig


class HotelOpsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'hotelops'
    verbose_name = 'Hotel Operations'
