from django.contrib import admin

from appointments.models import Appointment

from .models import Order


class AppointmentInline(admin.TabularInline):
    model = Appointment
    extra = 0
    fields = ('session_number', 'scheduled_at', 'status', 'availability')
    raw_id_fields = ('availability',)
    ordering = ('session_number',)


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        'id', 'client', 'doctor', 'service', 'completed_sessions', 'number_of_sessions',
        'amount', 'payment_status', 'status', 'created_at',
    )
    list_filter = ('status', 'payment_status', 'payment_method')
    search_fields = ('client__user__full_name', 'client__user__email', 'doctor__full_name', 'service__name')
    raw_id_fields = ('client', 'doctor', 'service')
    readonly_fields = ('completed_sessions', 'started_at', 'completed_at', 'created_at', 'updated_at')
    inlines = [AppointmentInline]
