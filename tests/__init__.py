"""
Test package for the CleanPlate Score engine.
"""

import os
import sys
import logging
from datetime import date, timedelta
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Set up test logging
logging.basicConfig(
    level=logging.WARNING,  # Reduce noise in tests
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

# Test configuration
TEST_DATABASE_URL = "sqlite:///:memory:"

# Fixed evaluation date so ages are reproducible
AS_OF = date(2024, 6, 15)

def setup_test_environment():
    """Set up test environment variables"""
    os.environ.update({
        'DATABASE_URL': TEST_DATABASE_URL,
        'SECRET_KEY': 'test-secret-key',
        'SESSION_SECRET': 'test-session-secret'
    })
    os.environ.pop('ADMIN_API_TOKEN', None)
    os.environ.pop('REDIS_URL', None)

def days_ago(days, as_of=AS_OF):
    return as_of - timedelta(days=days)

def make_record(result_text, age_days, violations=0, criticals=0, as_of=AS_OF):
    """Build an engine InspectionRecord aged relative to AS_OF"""
    from services.scoring.outcome import InspectionRecord

    return InspectionRecord.from_result_text(result_text, days_ago(age_days, as_of), violations, criticals)
