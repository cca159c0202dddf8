from django.contrib import admin

from .models import ClientProfile


@admin.register(ClientProfile)
class ClientProfileAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'gender', 'birth_date', 'status', 'created_at')
    list_filter = ('status', 'gender')
    search_fields = ('user__email', 'user__full_name', 'user__phone_number', 'google_id')
    raw_id_fields = ('user',)
