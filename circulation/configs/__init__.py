#!/usr/bin/env python

"""
    Configurations for Circulation

    :copyright: (c) 2015 by AUTHORS
    :license: see LICENSE for more details
"""

import os


# Determine environment
TESTING = os.getenv("TESTING", "false").lower() == "true"

DEBUG = bool(int(os.environ.get('CIRCULATION_DEBUG', 0)))
LOG_LEVEL = os.environ.get('CIRCULATION_LOG_LEVEL', 'info')

DB_CONFIG = {
    'user': os.environ.get('DB_USER', 'postgres'),
    'password': os.environ.get('DB_PASSWORD'),
    'host': os.environ.get('DB_HOST', 'localhost'),
    'port': int(os.environ.get('DB_PORT', '5432')),
    'dbname': os.environ.get('DB_NAME', 'circulation'),
}

# Database configuration
DB_URI = os.environ.get('CIRCULATION_DB_URI') or (
    "sqlite:///:memory:" if TESTING else
    'postgresql+psycopg2://{user}:{password}@{host}:{port}/{dbname}'.format(**DB_CONFIG)
)

# Lending policy
BORROW_LIMIT = int(os.environ.get('CIRCULATION_BORROW_LIMIT', 5))
DAILY_FINE_RATE = int(os.environ.get('CIRCULATION_DAILY_FINE_RATE', 5000))  # minor currency units
DEFAULT_LOAN_PERIOD_DAYS = int(os.environ.get('CIRCULATION_LOAN_PERIOD_DAYS', 14))

# Overdue sweep, once a day by default
RECONCILE_INTERVAL_SECONDS = float(os.environ.get('CIRCULATION_RECONCILE_INTERVAL', 86400))

__all__ = [
    'TESTING', 'DEBUG', 'LOG_LEVEL', 'DB_CONFIG', 'DB_URI',
    'BORROW_LIMIT', 'DAILY_FINE_RATE', 'DEFAULT_LOAN_PERIOD_DAYS',
    'RECONCILE_INTERVAL_SECONDS',
]
