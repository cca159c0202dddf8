import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "mindbridge.settings")

app = Celery("mindbridge")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

app.conf.beat_schedule = {
    "dispatch-due-reminders-every-5-min": {
        "task": "appointments.tasks.dispatch_due_reminders_task",
        "schedule": 300,  # every 5 minutes
    },
    "send-upcoming-appointment-reminders": {
        "task": "appointments.tasks.send_appointment_reminders_task",
        "schedule": 900,
    },
}
