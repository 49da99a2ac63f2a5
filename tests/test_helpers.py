import pytest
from datetime import datetime
from decimal import Decimal
from utils.helpers import add_months, format_minor_units, parse_id_list, split_email_list, to_minor_units

def test_add_months_keeps_time_of_day():
    assert add_months(datetime(2024, 3, 15, 12, 30)) == datetime(2024, 4, 15, 12, 30)

def test_add_months_clamps_to_month_end():
    assert add_months(datetime(2024, 1, 31)) == datetime(2024, 2, 29) # Leap year.
    assert add_months(datetime(2023, 1, 31)) == datetime(2023, 2, 28)
    assert add_months(datetime(2024, 5, 31)) == datetime(2024, 6, 30)

def test_add_months_crosses_year_boundary():
    assert add_months(datetime(2024, 12, 10)) == datetime(2025, 1, 10)
    assert add_months(datetime(2024, 11, 30), months=14) == datetime(2026, 1, 30)

@pytest.mark.parametrize('amount, expected', [
    (Decimal('990.00'), 99000),
    (Decimal('0.1'), 10),
    (0.1, 10), # Floats go through str(), so no binary noise.
    ('12.345', 1235), # Half-up rounding.
    (None, 0),
])
def test_to_minor_units(amount, expected):
    assert to_minor_units(amount) == expected

def test_format_minor_units():
    assert format_minor_units(99000) == '990.00'
    assert format_minor_units(99005) == '990.05'
    assert format_minor_units(7) == '0.07'

def test_parse_id_list():
    assert parse_id_list(None) == set()
    assert parse_id_list('a, b,,c') == {'a', 'b', 'c'}
    assert parse_id_list(['a,b', 'c']) == {'a', 'b', 'c'}

def test_split_email_list():
    assert split_email_list(' One@Example.com,two@example.com\nTHREE@example.com, ') == {
        'one@example.com', 'two@example.com', 'three@example.com',
    }
    assert split_email_list(None) == set()
