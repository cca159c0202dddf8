import logging
import re
from collections import OrderedDict

from django.core.management.base import BaseCommand, CommandError
from django.db import connection, transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from appointments.models import Appointment
from common.choices import AppointmentStatus
from orders.models import Order

logger = logging.getLogger(__name__)

TABLE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
COLUMNS = ("order_id", "scheduled_at", "status", "notes", "created_at", "updated_at")


def _as_aware(value):
    if isinstance(value, str):
        try:
            value = parse_datetime(value)
        except ValueError:
            return None
    if value is not None and timezone.is_naive(value):
        value = timezone.make_aware(value)
    return value


class Command(BaseCommand):
    help = "Copy rows of the legacy sessions table into numbered appointments and recompute order progress."

    def add_arguments(self, parser):
        parser.add_argument("--table", default="sessions", help="Legacy table to read (default: sessions).")
        parser.add_argument("--dry-run", action="store_true", help="Run the import and roll it back.")

    def handle(self, *args, **options):
        table = options["table"]
        dry_run = options["dry_run"]

        if not TABLE_NAME_RE.match(table):
            raise CommandError(f"Invalid table name '{table}'.")

        if table not in connection.introspection.table_names():
            self.stdout.write(self.style.WARNING(f"Table '{table}' does not exist, nothing to import."))
            return

        grouped, undated = self._read_rows(table)
        stats = {
            "orders": 0,
            "appointments": 0,
            "skipped_existing": 0,
            "skipped_missing": 0,
            "skipped_undated": undated,
        }

        with transaction.atomic():
            for order_id, rows in grouped.items():
                order = Order.objects.select_for_update().filter(pk=order_id).first()
                if order is None:
                    stats["skipped_missing"] += 1
                    logger.warning("Legacy sessions reference unknown order %s", order_id)
                    continue
                if order.appointments.exists():
                    stats["skipped_existing"] += 1
                    continue

                for session_number, row in enumerate(rows, start=1):
                    appointment = Appointment.objects.create(
                        order=order,
                        session_number=session_number,
                        scheduled_at=row["scheduled_at"],
                        status=row["status"],
                        notes=row["notes"],
                    )
                    stamps = {k: row[k] for k in ("created_at", "updated_at") if row[k] is not None}
                    if stamps:
                        Appointment.objects.filter(pk=appointment.pk).update(**stamps)
                    stats["appointments"] += 1

                order.recompute_progress()
                stats["orders"] += 1

            if dry_run:
                transaction.set_rollback(True)

        logger.info("Legacy session import %s: %s", "dry run" if dry_run else "done", stats)
        prefix = "[dry run] " if dry_run else ""
        self.stdout.write(
            self.style.SUCCESS(
                f"{prefix}Imported {stats['appointments']} appointments for {stats['orders']} orders "
                f"({stats['skipped_existing']} orders already had appointments, "
                f"{stats['skipped_missing']} unknown orders, "
                f"{stats['skipped_undated']} sessions without a valid time)."
            )
        )

    def _read_rows(self, table):
        quoted = connection.ops.quote_name(table)
        with connection.cursor() as cursor:
            cursor.execute(f"SELECT {', '.join(COLUMNS)} FROM {quoted} ORDER BY order_id, scheduled_at")
            records = cursor.fetchall()

        grouped = OrderedDict()
        undated = 0
        for record in records:
            row = dict(zip(COLUMNS, record))
            row["scheduled_at"] = _as_aware(row["scheduled_at"])
            if row["scheduled_at"] is None:
                undated += 1
                logger.warning("Skipping legacy session of order %s without a valid time", row["order_id"])
                continue
            status = (row["status"] or "").lower()
            row["status"] = status if status in AppointmentStatus.values else AppointmentStatus.PENDING
            row["notes"] = row["notes"] or ""
            for key in ("created_at", "updated_at"):
                row[key] = _as_aware(row[key])
            grouped.setdefault(row["order_id"], []).append(row)
        return grouped, undated
