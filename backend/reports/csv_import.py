"""
Parsing of the creator reward CSV exported from the TikTok backend.

Header names in the export vary in case and suffix between months, so
scalar columns are looked up by exact lowercase name against a list of
candidates and bonus breakdown columns by lowercase substring.
"""
import csv
import io
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from backend.core.exceptions import ValidationFailed
from .models import CsvDataRow

SCALAR_COLUMNS = {
    'creator_id': ['creator id', 'creator_id'],
    'creator_nickname': ['creator nickname', 'creator_nickname'],
    'handle': ['handle'],
    'group': ['group'],
    'group_manager': ['group manager', 'group_manager'],
    'creator_network_manager': ['creator network manager', 'creator_network_manager'],
    'data_month': ['data month', 'data_month'],
    'valid_days': ['valid days(d)', 'valid days', 'valid_days'],
    'live_duration': ['live duration(h)', 'live duration', 'live_duration'],
}

DECIMAL_COLUMNS = {
    'diamonds': ['diamonds'],
    'estimated_bonus': ['estimated bonus', 'estimated_bonus'],
}

BOOLEAN_COLUMNS = {
    'is_violative': ['is violative creators', 'is_violative_creators'],
    'was_rookie': [
        'the creator was rookie at the time of first joining',
        'the_creator_was_rookie_at_the_time_of_first_joining',
    ],
}

# Matched by substring, first fragment that hits wins
BONUS_COLUMNS = {
    'bonus_rookie_half_milestone': ['rookie half-milestone', 'rookie half milestone', 'bonus_rookie_half_milestone'],
    'bonus_activeness': ['activeness', 'bonus_activeness'],
    'bonus_revenue_scale': ['revenue scale', 'bonus_revenue_scale'],
    'bonus_rookie_milestone_1': ['rookie milestone 1 bonus task', 'bonus_rookie_milestone_1'],
    'bonus_rookie_milestone_2': ['rookie milestone 2', 'bonus_rookie_milestone_2'],
    'bonus_off_platform': ['off-platform', 'bonus_off_platform'],
    'bonus_rookie_retention': ['milestone 1 retention', 'bonus_rookie_retention'],
}

_NUMBER_CLEANUP = re.compile(r'[,\s$¥]')
_MONTH_PATTERN = re.compile(r'(\d{4})\D?(\d{1,2})')


def safe_decimal(value, max_digits=None, decimal_places=None):
    """
    Lenient number parsing: thousands separators stripped, anything invalid is 0.

    With decimal_places the number is rounded to that many places, and with
    max_digits as well a number too wide for the column also counts as invalid.
    """
    if value is None:
        return Decimal('0')
    cleaned = _NUMBER_CLEANUP.sub('', str(value))
    if not cleaned:
        return Decimal('0')
    try:
        number = Decimal(cleaned)
    except InvalidOperation:
        return Decimal('0')
    if not number.is_finite():
        return Decimal('0')
    if decimal_places is None:
        return number

    try:
        number = number.quantize(Decimal(1).scaleb(-decimal_places), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return Decimal('0')
    if max_digits is not None and abs(number) >= Decimal(10) ** (max_digits - decimal_places):
        return Decimal('0')
    return number


def column_decimal(field, value):
    """safe_decimal sized to a CsvDataRow decimal column"""
    column = CsvDataRow._meta.get_field(field)
    return safe_decimal(value, column.max_digits, column.decimal_places)


def safe_bool(value):
    return str(value or '').strip().lower() in ('true', 'yes')


def normalize_data_month(value):
    """
    Reduce a Data Month cell to YYYY-MM.

    Accepts 2025-01, 202501, 2025/01 and 2025-01-01; returns None when no
    plausible year and month can be found.
    """
    if not value:
        return None
    match = _MONTH_PATTERN.search(str(value))
    if not match:
        return None
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        return None
    return f"{year:04d}-{month:02d}"


class HeaderIndex:
    """Lowercased header lookup for one CSV file"""

    def __init__(self, fieldnames):
        self.key_map = {}
        for name in fieldnames or []:
            if name is None:
                continue
            self.key_map.setdefault(name.strip().lower(), name)

    def has_exact(self, *candidates):
        return any(candidate in self.key_map for candidate in candidates)

    def has_fragment(self, fragment):
        return any(fragment in key for key in self.key_map)

    def get(self, row, candidates, default=''):
        for candidate in candidates:
            original = self.key_map.get(candidate)
            if original is not None and row.get(original) is not None:
                return row[original]
        return default

    def get_by_fragment(self, row, fragments, default='0'):
        for fragment in fragments:
            for key, original in self.key_map.items():
                if fragment in key and row.get(original) is not None:
                    return row[original]
        return default


def _is_blank_row(row):
    return all(not (value or '').strip() for value in row.values())


def parse_csv_text(text):
    """
    Parse the export into a list of row dicts keyed by CsvDataRow field name.

    Raises:
        ValidationFailed: no data, or the creator id / estimated bonus
            columns are missing
    """
    if text.startswith('\ufeff'):
        text = text[1:]

    reader = csv.DictReader(io.StringIO(text))
    headers = HeaderIndex(reader.fieldnames)

    if not headers.has_exact('creator id', 'creator_id') or not (
        headers.has_fragment('estimated bonus') or headers.has_exact('estimated_bonus')
    ):
        raise ValidationFailed('CSV is missing required columns (Creator ID and Estimated bonus)')

    rows = []
    try:
        for raw in reader:
            # Ragged lines: extra cells land under the None key, missing ones are None
            raw.pop(None, None)
            if _is_blank_row(raw):
                continue

            parsed = {}
            for field, candidates in SCALAR_COLUMNS.items():
                parsed[field] = headers.get(raw, candidates).strip()
            for field, candidates in DECIMAL_COLUMNS.items():
                parsed[field] = column_decimal(field, headers.get(raw, candidates, default='0'))
            for field, candidates in BOOLEAN_COLUMNS.items():
                parsed[field] = safe_bool(headers.get(raw, candidates, default='false'))
            for field, fragments in BONUS_COLUMNS.items():
                parsed[field] = column_decimal(field, headers.get_by_fragment(raw, fragments))
            rows.append(parsed)
    except csv.Error as e:
        raise ValidationFailed(f'Failed to parse CSV: {e}')

    if not rows:
        raise ValidationFailed('CSV has no data rows')
    return rows


def detect_data_month(rows):
    """First Data Month value that normalizes, or None"""
    for row in rows:
        month = normalize_data_month(row.get('data_month'))
        if month:
            return month
    return None
