"""
Startup check for the secrets the score service runs with
"""
import os
import logging
from typing import Dict, List

logger = logging.getLogger(__name__)

REQUIRED_SECRETS = {
    'SESSION_SECRET': 'Flask session security',
    'DATABASE_URL': 'Inspection and score store'
}

# Missing ones only switch a feature off
OPTIONAL_SECRETS = {
    'ADMIN_API_TOKEN': 'bulk recalculation is unprotected',
    'REDIS_URL': 'score breakdowns are cached per process'
}


class MissingSecretsError(ValueError):
    def __init__(self, missing: List[str]):
        super().__init__(f"Missing required secrets: {', '.join(missing)}")
        self.missing = missing


def check_secrets(require: bool = True) -> Dict[str, List[str]]:
    """Check the environment for required and optional secrets.

    Raises MissingSecretsError when a required secret is unset and require is
    true; otherwise missing secrets are only logged.
    """
    missing = [name for name in REQUIRED_SECRETS if not os.environ.get(name)]
    for name in missing:
        logger.error(f"Missing required secret: {name} ({REQUIRED_SECRETS[name]})")
    if missing and require:
        raise MissingSecretsError(missing)

    available = []
    for name, consequence in OPTIONAL_SECRETS.items():
        if os.environ.get(name):
            available.append(name)
        else:
            logger.warning(f"{name} not set: {consequence}")

    return {'missing_required': missing, 'optional_available': available}
