import os
from collections import defaultdict
from typing import Dict, Iterable, List

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError


class Command(BaseCommand):
    help = "Report presence of critical environment variables for external integrations."

    def handle(self, *args, **options):
        requirements = self._build_requirements()
        grouped: Dict[str, List[str]] = defaultdict(list)
        missing_required = False

        for requirement in requirements:
            group = requirement["group"]
            key = requirement["key"]
            note = requirement["note"]
            required_flag = self._is_required(requirement)
            value = os.environ.get(key)

            if required_flag and not value:
                missing_required = True
                grouped[group].append(self.style.ERROR(f"x {key}: missing ({note})"))
            elif value:
                grouped[group].append(self.style.SUCCESS(f"ok {key}: set"))
            else:
                grouped[group].append(self.style.WARNING(f"- {key}: optional ({note})"))

        for group, lines in grouped.items():
            self.stdout.write("")
            self.stdout.write(self.style.MIGRATE_HEADING(group))
            for line in lines:
                self.stdout.write(f"  {line}")

        if missing_required:
            raise CommandError("Missing required environment variables. See messages above.")

        self.stdout.write("")
        self.stdout.write(self.style.SUCCESS("All required environment variables are set."))

    def _build_requirements(self) -> Iterable[Dict[str, object]]:
        return [
            {"group": "Core", "key": "SECRET_KEY", "note": "Django crypto key", "required": self._production},
            {"group": "Core", "key": "ALLOWED_HOSTS", "note": "Comma separated host names", "required": self._production},
            {"group": "Database", "key": "DB_NAME", "note": "Primary database name (sqlite when unset)", "required": False},
            {"group": "Database", "key": "DB_USER", "note": "Database username", "required": self._database_configured},
            {"group": "Database", "key": "DB_PASSWORD", "note": "Database password", "required": self._database_configured},
            {"group": "Database", "key": "DB_HOST", "note": "Database host", "required": False},
            {"group": "Auth", "key": "ADMIN_ACCESS_TOKEN_LIFETIME_MIN", "note": "Admin access token lifetime (default 60)", "required": False},
            {"group": "Auth", "key": "CLIENT_ACCESS_TOKEN_LIFETIME_MIN", "note": "Client access token lifetime (default 1440)", "required": False},
            {"group": "SMS", "key": "SMS_API_KEY", "note": "API key for the configured SMS provider", "required": self._sms_configured},
            {"group": "SMS", "key": "SMS_API_URL", "note": "Endpoint of the HTTP SMS gateway", "required": self._sms_configured},
            {"group": "SMS", "key": "SMS_SENDER", "note": "Registered sender number for SMS", "required": False},
            {"group": "Email", "key": "EMAIL_HOST", "note": "SMTP host for outgoing mail", "required": self._email_required},
            {"group": "Email", "key": "EMAIL_PORT", "note": "SMTP port (465/587)", "required": self._email_required},
            {"group": "Email", "key": "EMAIL_HOST_USER", "note": "SMTP username", "required": self._email_required},
            {"group": "Email", "key": "EMAIL_HOST_PASSWORD", "note": "SMTP password or app password", "required": self._email_required},
            {"group": "Email", "key": "DEFAULT_FROM_EMAIL", "note": "Default sender email", "required": False},
            {"group": "Caching", "key": "REDIS_URL", "note": "Redis URL for cache & Celery broker", "required": False},
            {"group": "Caching", "key": "CELERY_BROKER_URL", "note": "Overrides REDIS_URL as broker", "required": False},
            {"group": "Reminders", "key": "APPOINTMENT_REMINDER_WINDOW", "note": "Minutes ahead for upcoming reminders (default 60)", "required": False},
        ]

    def _is_required(self, requirement: Dict[str, object]) -> bool:
        flag = requirement.get("required", False)
        if callable(flag):
            return bool(flag())
        return bool(flag)

    def _production(self) -> bool:
        return not settings.DEBUG

    def _database_configured(self) -> bool:
        return bool(os.environ.get("DB_NAME"))

    def _sms_configured(self) -> bool:
        return getattr(settings, "SMS_PROVIDER", "console") != "console"

    def _email_required(self) -> bool:
        return settings.EMAIL_BACKEND == "django.core.mail.backends.smtp.EmailBackend"
