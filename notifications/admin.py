from django.contrib import admin

from .models import Notification, Reminder


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('id', 'user', 'title', 'type', 'status', 'created_at')
    list_filter = ('status', 'type', 'created_at')
    search_fields = ('user__email', 'user__full_name', 'title', 'message')


@admin.register(Reminder)
class ReminderAdmin(admin.ModelAdmin):
    list_display = ('id', 'client', 'appointment', 'type', 'scheduled_send', 'status', 'sent_at')
    list_filter = ('type', 'status')
    search_fields = ('client__user__email', 'client__user__full_name')
    raw_id_fields = ('client', 'appointment')
