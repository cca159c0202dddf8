from datetime import date, datetime, time
from datetime import timezone as dt_timezone

from django.core.exceptions import ValidationError as DjangoValidationError
from django.test import SimpleTestCase, override_settings
from rest_framework import status
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.request import Request
from rest_framework.test import APIRequestFactory

from common.dateutils import format_date_for_display, format_date_to_ymd, format_datetime, format_iso_to_ymd
from common.exceptions import Conflict, api_exception_handler
from common.utils import ensure_found, get_search_term
from common.validators import validate_date_range, validate_rating, validate_slot_time


class DateUtilsTests(SimpleTestCase):
    def test_iso_to_ymd(self):
        self.assertEqual(format_iso_to_ymd("2024-03-05T10:30:00Z"), "2024-03-05")
        self.assertEqual(format_iso_to_ymd(""), "")
        self.assertEqual(format_iso_to_ymd(None), "")

    def test_display_date_keeps_calendar_day(self):
        self.assertEqual(format_date_for_display("2024-03-05T23:30:00+07:00"), "05/03/2024")
        self.assertEqual(format_date_for_display(date(2024, 3, 5), fmt="%Y/%m/%d"), "2024/03/05")

    def test_display_date_returns_unparseable_input(self):
        self.assertEqual(format_date_for_display("next tuesday"), "next tuesday")
        self.assertEqual(format_date_for_display("2024-13-45"), "2024-13-45")
        self.assertEqual(format_date_for_display(""), "")

    def test_format_datetime(self):
        self.assertEqual(format_datetime(datetime(2024, 3, 5, 9, 15)), "09:15 - 05/03/2024")
        self.assertEqual(format_datetime("2024-03-05T09:15:00"), "09:15 - 05/03/2024")
        self.assertEqual(format_datetime("garbage"), "garbage")
        self.assertEqual(format_datetime(None), "")

    @override_settings(TIME_ZONE="UTC")
    def test_format_datetime_uses_local_time_for_aware_values(self):
        value = datetime(2024, 3, 5, 9, 15, tzinfo=dt_timezone.utc)
        self.assertEqual(format_datetime(value), "09:15 - 05/03/2024")

    def test_date_to_ymd(self):
        self.assertEqual(format_date_to_ymd(date(2024, 3, 5)), "2024-03-05")


class ValidatorTests(SimpleTestCase):
    def test_slot_time(self):
        validate_slot_time(time(9), time(10))
        with self.assertRaises(DjangoValidationError):
            validate_slot_time(time(10), time(10))

    def test_rating(self):
        validate_rating(5)
        for value in (0, 6, None):
            with self.assertRaises(DjangoValidationError):
                validate_rating(value)

    def test_date_range(self):
        validate_date_range(date(2024, 1, 1), None)
        with self.assertRaises(DjangoValidationError):
            validate_date_range(date(2024, 2, 1), date(2024, 1, 1))


class ExceptionHandlerTests(SimpleTestCase):
    def test_model_validation_error_becomes_400(self):
        response = api_exception_handler(DjangoValidationError({"status": "Invalid status."}), {})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {"status": ["Invalid status."]})

    def test_plain_message_is_reported_as_non_field_error(self):
        response = api_exception_handler(DjangoValidationError("Appointment is already completed."), {})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("non_field_errors", response.data)

    def test_conflict(self):
        response = api_exception_handler(Conflict(), {})
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)


class SearchHelperTests(SimpleTestCase):
    def _request(self, **params):
        return Request(APIRequestFactory().get("/", params))

    def test_search_term_is_required(self):
        self.assertEqual(get_search_term(self._request(searchTerm="  anna ")), "anna")
        with self.assertRaises(ValidationError):
            get_search_term(self._request())

    def test_ensure_found(self):
        class Empty:
            def exists(self):
                return False

        with self.assertRaises(NotFound):
            ensure_found(Empty())
