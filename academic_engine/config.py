"""Environment-driven settings for the performance engine."""

import os
from typing import Dict

from dotenv import load_dotenv
from pydantic import ValidationError

from academic_engine.errors import InvalidInput
from academic_engine.models import RiskThresholds

# Load environment variables
load_dotenv()

THRESHOLD_KEYS = ('critical_attendance', 'critical_score', 'warning_attendance', 'warning_score')


def parse_thresholds(raw: str) -> RiskThresholds:
    """
    Parse a ``key:value,key:value`` list into RiskThresholds.

    Keys not present keep their defaults.
    """
    values: Dict[str, float] = {}
    for item in raw.split(','):
        item = item.strip()
        if not item:
            continue
        if ':' not in item:
            raise InvalidInput(f"Malformed risk threshold entry: {item!r}", 'RISK_THRESHOLDS', raw)
        key, value = item.split(':', 1)
        key = key.strip()
        if key not in THRESHOLD_KEYS:
            raise InvalidInput(f"Unknown risk threshold: {key!r}", 'RISK_THRESHOLDS', raw)
        try:
            values[key] = float(value.strip())
        except ValueError:
            raise InvalidInput(f"Risk threshold {key!r} is not a number: {value!r}", 'RISK_THRESHOLDS', raw)
    try:
        return RiskThresholds(**values)
    except ValidationError as e:
        raise InvalidInput(f"Inconsistent risk thresholds: {e.errors()[0]['msg']}", 'RISK_THRESHOLDS', raw)


RISK_THRESHOLDS = parse_thresholds(os.getenv(
    'RISK_THRESHOLDS',
    'critical_attendance:60,critical_score:40,warning_attendance:75,warning_score:50'
))

PERCENTAGE_DECIMALS = int(os.getenv('PERCENTAGE_DECIMALS', '1'))
PASSING_PERCENTAGE = float(os.getenv('PASSING_PERCENTAGE', '33'))
AT_RISK_LIMIT = int(os.getenv('AT_RISK_LIMIT', '50'))

MAX_UPLOAD_SIZE_MB = int(os.getenv('MAX_UPLOAD_SIZE_MB', '10'))
MAX_UPLOAD_SIZE = MAX_UPLOAD_SIZE_MB * 1024 * 1024

ALLOW_ORIGINS = os.getenv('ALLOW_ORIGINS', '*').split(',')
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

APP_URL = os.getenv('APP_URL', 'http://localhost:8000')


def get_advisor_info() -> Dict[str, str]:
    """Get advisor name and email from environment or defaults."""
    return {
        'name': os.getenv('ADVISOR_NAME', 'Academic Advisor'),
        'email': os.getenv('ADVISOR_EMAIL', 'advisor@example.com')
    }
