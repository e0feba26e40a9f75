"""
Omnitrack Configuration
Loads settings from environment variables with sensible defaults.
"""

import logging
import os
import warnings
from pathlib import Path
from urllib.parse import urlparse
from dotenv import load_dotenv

_logger = logging.getLogger(__name__)

# Load .env file
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)

_LOCAL_HOSTS = {'localhost', '127.0.0.1', '::1'}


def _check_auth_url(url: str) -> None:
    """Warn when the auth endpoint would receive tokens over plain HTTP."""
    parsed = urlparse(url)
    if parsed.scheme == 'http' and parsed.hostname not in _LOCAL_HOSTS:
        message = (
            f"SUPABASE_URL {url!r} uses plain HTTP on a remote host; "
            "session tokens would be sent unencrypted. Use HTTPS."
        )
        _logger.warning(message)
        warnings.warn(message, UserWarning)


class Config:
    """Application configuration."""

    # Database: must be set in .env
    DATABASE_URL = os.getenv('DATABASE_URL')
    if not DATABASE_URL:
        _logger.critical("DATABASE_URL is not set, cannot start. Copy .env.example to .env and configure it.")
        raise ValueError("DATABASE_URL environment variable is not set. Copy .env.example to .env and configure it.")
    DB_CONNECT_TIMEOUT = int(os.getenv('DB_CONNECT_TIMEOUT', '10'))

    # Hosted auth
    SUPABASE_URL = os.getenv('SUPABASE_URL', '')
    SUPABASE_ANON_KEY = os.getenv('SUPABASE_ANON_KEY', '')
    if SUPABASE_URL:
        _check_auth_url(SUPABASE_URL)

    # Session bootstrap (seconds)
    BOOT_TIMEOUT_SECONDS = float(os.getenv('BOOT_TIMEOUT_SECONDS', '5.0'))
    TROUBLESHOOT_AFTER_SECONDS = float(os.getenv('TROUBLESHOOT_AFTER_SECONDS', '8.0'))

    # Local persisted state (session + preferences)
    STATE_DIR = Path(os.getenv('STATE_DIR', str(Path.home() / '.omnitrack')))

    # Studio defaults
    DEFAULT_LANGUAGE = os.getenv('DEFAULT_LANGUAGE', 'BN')
    DEFAULT_CURRENCY = os.getenv('DEFAULT_CURRENCY', 'BDT')

    # AI advisor
    # DeepSeek (routine questions)
    DEEPSEEK_API_KEY = os.getenv('DEEPSEEK_API_KEY', '')
    DEEPSEEK_BASE_URL = os.getenv('DEEPSEEK_BASE_URL', 'https://api.deepseek.com')
    DEFAULT_AI_MODEL = os.getenv('DEFAULT_AI_MODEL', 'deepseek-chat')
    # Claude
    ANTHROPIC_API_KEY = os.getenv('ANTHROPIC_API_KEY', '')


# Singleton instance
config = Config()
