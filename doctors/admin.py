from django.contrib import admin

from .models import Doctor, Experience, Qualification


class QualificationInline(admin.TabularInline):
    model = Qualification
    extra = 0


class ExperienceInline(admin.TabularInline):
    model = Experience
    extra = 0


@admin.register(Doctor)
class DoctorAdmin(admin.ModelAdmin):
    list_display = ('id', 'full_name', 'email', 'specialty', 'department', 'status', 'created_at')
    list_filter = ('status', 'department')
    search_fields = ('full_name', 'email', 'specialty')
    ordering = ('full_name',)
    readonly_fields = ('created_at', 'updated_at')
    inlines = [QualificationInline, ExperienceInline]
