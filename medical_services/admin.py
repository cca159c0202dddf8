from django.contrib import admin

from .models import Service


@admin.register(Service)
class ServiceAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'price', 'number_of_sessions', 'created_at')
    search_fields = ('name', 'description')
    filter_horizontal = ('doctors',)
    readonly_fields = ('created_at', 'updated_at')
