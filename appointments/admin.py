from django.contrib import admin

from .models import Appointment, DoctorAvailability


@admin.register(DoctorAvailability)
class DoctorAvailabilityAdmin(admin.ModelAdmin):
    list_display = ('doctor', 'available_date', 'start_time', 'end_time', 'status', 'is_active')
    list_filter = ('status', 'is_active', 'available_date')
    search_fields = ('doctor__full_name', 'doctor__email')


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('order', 'session_number', 'scheduled_at', 'status', 'is_reminder_sent')
    list_filter = ('status', 'is_reminder_sent')
    search_fields = ('order__client__user__email', 'order__client__user__full_name', 'order__doctor__full_name')
    raw_id_fields = ('order', 'availability')
