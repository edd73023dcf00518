"""
Unit tests for formatting, number parsing and search pattern helpers.
"""

import pytest
from decimal import Decimal
from datetime import date, datetime

from vitrine.utils.formatters import money_br, date_br, digits_only
from vitrine.utils.number_format import parse_decimal, parse_int, parse_datetime
from vitrine.utils.search import contains_pattern


class TestMoney:

    def test_thousands_and_cents(self):
        assert money_br(1500) == 'R$ 1.500,00'
        assert money_br(Decimal('9.9')) == 'R$ 9,90'

    def test_without_symbol_and_negative(self):
        assert money_br(-3, symbol=False) == '-3,00'

    def test_missing(self):
        assert money_br(None) == '-'
        assert money_br('abc') == '-'

    def test_date(self):
        assert date_br(date(2024, 3, 9)) == '09/03/2024'
        assert date_br(datetime(2024, 3, 9, 10, 30)) == '09/03/2024'

    def test_digits_only(self):
        assert digits_only('+55 (11) 98888-7777') == '5511988887777'
        assert digits_only(None) == ''


class TestParsing:

    def test_brazilian_and_dotted_input(self):
        assert parse_decimal('1.234,56') == Decimal('1234.56')
        assert parse_decimal('1234.56') == Decimal('1234.56')
        assert parse_decimal('10,5') == Decimal('10.50')
        assert parse_decimal(7) == Decimal('7.00')

    def test_empty_is_none(self):
        assert parse_decimal('') is None
        assert parse_decimal(None) is None

    def test_negative_rejected_unless_allowed(self):
        with pytest.raises(ValueError):
            parse_decimal('-5')
        assert parse_decimal('-5', allow_negative=True) == Decimal('-5.00')

    def test_garbage_rejected(self):
        with pytest.raises(ValueError):
            parse_decimal('dez reais')

    def test_parse_int(self):
        assert parse_int('3') == 3
        assert parse_int('') is None
        with pytest.raises(ValueError):
            parse_int('0', minimum=1)

    def test_parse_datetime(self):
        assert parse_datetime('2024-05-01') == datetime(2024, 5, 1)
        assert parse_datetime('2024-05-01T10:00:00').hour == 10
        assert parse_datetime('2024-05-01T10:00:00Z').tzinfo is None
        with pytest.raises(ValueError):
            parse_datetime('ontem')


class TestContainsPattern:

    @pytest.mark.parametrize('term,expected', [
        ('anel', '%anel%'),
        ('10%', '%10\\%%'),
        ('a_b', '%a\\_b%'),
        ('c:\\x', '%c:\\\\x%'),
    ])
    def test_escapes_like_wildcards(self, term, expected):
        assert contains_pattern(term) == expected
