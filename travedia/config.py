"""
Runtime configuration for the Travedia booking API.
Values come from the environment, with a .env file loaded on import.
"""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).parent.parent
load_dotenv(ROOT_DIR / '.env')


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.lower() in ("1", "true", "yes", "on")


class Settings:
    """Snapshot of the environment taken at construction time."""

    def __init__(self, **overrides):
        self.environment = (overrides.pop('environment', None) or os.getenv('ENVIRONMENT', 'development')).lower()

        # MongoDB
        self.mongo_url = os.getenv('MONGO_URL', 'mongodb://localhost:27017')
        self.db_name = os.getenv('DB_NAME', 'travedia')

        # Midtrans
        self.midtrans_server_key = os.getenv('MIDTRANS_SERVER_KEY', '')
        self.midtrans_client_key = os.getenv('MIDTRANS_CLIENT_KEY', '')
        self.midtrans_is_production = _env_flag('MIDTRANS_IS_PRODUCTION', False)
        self.midtrans_timeout = float(os.getenv('MIDTRANS_TIMEOUT', '30'))
        self.payments_dry_run = _env_flag('PAYMENTS_DRY_RUN', False)  # Only true for staging

        # Public URLs used for gateway callbacks
        self.frontend_url = os.getenv('FRONTEND_URL', 'http://localhost:5173').rstrip('/')
        self.backend_url = os.getenv('BACKEND_URL', 'http://localhost:8000').rstrip('/')

        self.cors_origins: List[str] = [
            origin.strip() for origin in os.getenv('CORS_ORIGINS', '*').split(',') if origin.strip()
        ]

        # Rate limiting
        self.redis_url: Optional[str] = os.getenv('REDIS_URL') or None
        self.rate_limit_requests = int(os.getenv('RATE_LIMIT_REQUESTS', '10'))
        self.rate_limit_window = int(os.getenv('RATE_LIMIT_WINDOW', '60'))

        # Explicit switch; falls back to the production flag when unset
        self.verify_webhook_signature = _env_flag(
            'MIDTRANS_VERIFY_SIGNATURE', self.environment == 'production'
        )

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown setting: {key}")
            setattr(self, key, value)

    @property
    def is_production(self) -> bool:
        return self.environment == 'production'

    @property
    def is_development(self) -> bool:
        return self.environment == 'development'

    @property
    def webhook_url(self) -> str:
        return f"{self.backend_url}/api/payment/notification"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Process-wide settings, created on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
