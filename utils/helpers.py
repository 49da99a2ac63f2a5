import calendar # For month lengths when adding calendar months.
import re
import uuid
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP


def new_uuid():
    """Returns a new random UUID as a string (primary keys are stored as 36-char strings)."""
    return str(uuid.uuid4())


def utcnow():
    """
    Returns the current UTC time as a naive datetime.

    All timestamps in the database are stored as naive UTC values, so every
    component compares against this clock rather than local time.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def add_months(moment, months=1):
    """
    Adds calendar months to a datetime, keeping the time of day.

    If the target month is shorter than the source day (e.g. Jan 31 + 1 month),
    the day is clamped to the last day of the target month (Feb 28/29).

    Args:
        moment (datetime): The starting point.
        months (int, optional): Number of months to add. Defaults to 1.

    Returns:
        datetime: The shifted datetime.
    """
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def to_minor_units(amount):
    """
    Converts a decimal price (e.g. Decimal('990.00') or 990.5) to integer minor units (kopecks/cents).

    Returns 0 for None so free or unpriced tiers never produce a negative or missing amount.
    """
    if amount is None:
        return 0
    # str() first so floats like 0.1 are not converted with binary noise.
    return int((Decimal(str(amount)) * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def format_minor_units(amount_minor):
    """Formats integer minor units as the gateway's two-decimal string ('99000' -> '990.00')."""
    return f"{amount_minor // 100}.{amount_minor % 100:02d}"


def parse_id_list(value):
    """
    Parses a comma-separated list of ids from a query string value.

    Accepts a string ('a,b, c'), a list of strings (repeated query params, each possibly
    comma-separated) or None. Empty entries are dropped.

    Returns:
        set: The distinct ids.
    """
    if not value:
        return set()
    if isinstance(value, str):
        value = [value]
    ids = set()
    for chunk in value:
        ids.update(part.strip() for part in str(chunk).split(',') if part.strip())
    return ids


def split_email_list(raw):
    """
    Splits a comma- or newline-separated email list into normalized (lower-cased, trimmed) addresses.
    """
    if not raw:
        return set()
    return {email.strip().lower() for email in re.split(r'[,\n]+', raw) if email.strip()}
