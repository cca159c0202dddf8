from django.contrib import admin

from .models import Review


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ('id', 'client', 'appointment', 'rating', 'created_at')
    list_filter = ('rating',)
    search_fields = ('client__user__full_name', 'comment')
    raw_id_fields = ('appointment', 'client')
