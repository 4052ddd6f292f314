#!/usr/bin/env python
"""
Test runner script for comprehensive test execution
Usage: python run_tests.py [app ...]
Coverage: coverage run run_tests.py && coverage report
"""
import os
import sys

import django
from django.conf import settings
from django.test.utils import get_runner

APPS = [
    'tenderhub.core',
    'tenderhub.organizations',
    'tenderhub.tenders',
    'tenderhub.vendors',
    'tenderhub.bids',
    'tenderhub.emd',
    'tenderhub.contracts',
    'tenderhub.payments',
    'tenderhub.security',
    'tenderhub.notifications',
    'tenderhub.llm_processing',
]

if __name__ == "__main__":
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'tenderhub.config.settings')
    django.setup()
    TestRunner = get_runner(settings)
    test_runner = TestRunner()
    labels = [f'tenderhub.{name}' if not name.startswith('tenderhub.') else name for name in sys.argv[1:]]
    failures = test_runner.run_tests(labels or APPS)
    sys.exit(bool(failures))
