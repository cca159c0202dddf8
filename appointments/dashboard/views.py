from rest_framework import permissions
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import ActivityQuerySerializer, ActivitySerializer
from .services import DashboardAnalyticsService


class DashboardMetricView(APIView):
    """
    Staff-only read of one ``DashboardAnalyticsService`` figure.

    ``metric`` names the service method; ``serializer_class`` optionally
    shapes its result.
    """
    permission_classes = [permissions.IsAdminUser]
    metric = None
    serializer_class = None
    many = False

    def get_metric(self, service):
        return getattr(service, self.metric)()

    def get(self, request):
        data = self.get_metric(DashboardAnalyticsService())
        if self.serializer_class is not None:
            data = self.serializer_class(data, many=self.many).data
        return Response(data)


class RecentActivitiesView(DashboardMetricView):
    serializer_class = ActivitySerializer
    many = True

    def get_metric(self, service):
        params = ActivityQuerySerializer(data=self.request.query_params.dict())
        params.is_valid(raise_exception=True)
        return service.recent_activities(limit=params.validated_data["limit"])
