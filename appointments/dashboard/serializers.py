from rest_framework import serializers


def money_field():
    return serializers.DecimalField(max_digits=14, decimal_places=2, coerce_to_string=False)


class DashboardStatsSerializer(serializers.Serializer):
    totalRevenue = money_field()
    totalClients = serializers.IntegerField()
    totalServices = serializers.IntegerField()
    appointmentsToday = serializers.IntegerField()
    monthlyRevenue = money_field()
    inProgressCount = serializers.IntegerField()


class InvoiceStatsSerializer(serializers.Serializer):
    totalInvoices = serializers.IntegerField()
    totalAmount = money_field()
    todayInvoices = serializers.IntegerField()
    yesterdayInvoices = serializers.IntegerField()
    growthRate = serializers.FloatField()


class ActivitySerializer(serializers.Serializer):
    type = serializers.CharField()
    id = serializers.IntegerField()
    timestamp = serializers.DateTimeField()
    status = serializers.CharField()
    client_name = serializers.CharField()
    doctor_name = serializers.CharField()
    service_name = serializers.CharField()
    created_at = serializers.DateTimeField()


class ScheduleEntrySerializer(serializers.Serializer):
    id = serializers.IntegerField()
    scheduled_at = serializers.DateTimeField()
    status = serializers.CharField()
    session_number = serializers.IntegerField()
    client_name = serializers.CharField()
    doctor_name = serializers.CharField()
    service_name = serializers.CharField()
    start_time = serializers.TimeField(allow_null=True)
    end_time = serializers.TimeField(allow_null=True)


class ActivityQuerySerializer(serializers.Serializer):
    limit = serializers.IntegerField(min_value=1, max_value=100, default=10)
