from django.core.exceptions import ValidationError


def validate_slot_time(start_time, end_time):
    if start_time is not None and end_time is not None and end_time <= start_time:
        raise ValidationError("Start time must be before end time.")


def validate_rating(value):
    if value is None or not 1 <= int(value) <= 5:
        raise ValidationError("Rating must be an integer between 1 and 5.")


def validate_date_range(start_date, end_date):
    if start_date and end_date and end_date < start_date:
        raise ValidationError("end_date cannot be before start_date.")
