"""
Google Cloud credential loading shared by the speech clients.
"""
import logging
from typing import Optional

from google.oauth2 import service_account

logger = logging.getLogger("google_credentials")

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


def load_credentials(credentials_json: Optional[str]):
    """
    Load service-account credentials from a JSON file.

    Returns None when no path is configured so the client libraries fall
    back to Application Default Credentials.
    """
    if not credentials_json:
        return None
    logger.info(f"Loading Google credentials from {credentials_json}")
    return service_account.Credentials.from_service_account_file(
        credentials_json,
        scopes=[CLOUD_PLATFORM_SCOPE],
    )
