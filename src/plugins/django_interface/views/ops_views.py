from django.db import connection
from django.db.utils import DatabaseError
from drf_yasg.utils import swagger_auto_schema
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from appointment_notification.adapters.config.composition_root import container as an_container
from appointment_notification.core.application.commands.notification_commands import (
    RunAppointmentNotificationsCommand,
)
from plugins.django_interface.permissions import HasSweepToken
from plugins.django_interface.serializers import RunNotificationsSerializer

an_command_bus = an_container.command_bus()


class RunAppointmentNotificationsView(APIView):
    permission_classes = [HasSweepToken]
    authentication_classes = []

    @swagger_auto_schema(request_body=RunNotificationsSerializer)
    def post(self, request):
        ser = RunNotificationsSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        report = an_command_bus.dispatch(RunAppointmentNotificationsCommand(dry_run=ser.validated_data["dry_run"]))
        return Response(report.as_payload())


class HealthCheckView(APIView):
    permission_classes = []
    authentication_classes = []

    def get(self, request):
        try:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1")
        except DatabaseError:
            return Response({"status": "degraded", "database": "down"}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
        return Response({"status": "ok", "database": "up"})
