"""
Configuration settings for the CPM scheduler.
Load configuration from environment variables or a .env file.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
env_file = Path(__file__).parent.parent.parent / '.env'
if env_file.exists():
    load_dotenv(env_file)


class Settings:
    """Application settings loaded from environment variables."""

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_DIR = os.getenv('LOG_DIR', '')

    # ============================================================================
    # Scheduling
    # ============================================================================
    # Consecutive non-working days scanned before falling back to calendar days
    CALENDAR_SEARCH_LIMIT_DAYS = int(os.getenv('CALENDAR_SEARCH_LIMIT_DAYS', '3660'))
    NEAR_CRITICAL_THRESHOLD_DAYS = int(os.getenv('NEAR_CRITICAL_THRESHOLD_DAYS', '5'))

    # ============================================================================
    # XER import
    # ============================================================================
    DEFAULT_HOURS_PER_DAY = float(os.getenv('DEFAULT_HOURS_PER_DAY', '8.0'))

    @classmethod
    def validate_required_settings(cls) -> list[str]:
        """
        Validate that settings hold usable values.
        Returns list of problems found.
        """
        problems = []

        if cls.CALENDAR_SEARCH_LIMIT_DAYS < 7:
            problems.append('CALENDAR_SEARCH_LIMIT_DAYS must cover at least one week')
        if cls.NEAR_CRITICAL_THRESHOLD_DAYS < 0:
            problems.append('NEAR_CRITICAL_THRESHOLD_DAYS must not be negative')
        if cls.DEFAULT_HOURS_PER_DAY <= 0:
            problems.append('DEFAULT_HOURS_PER_DAY must be positive')

        return problems


# Create settings instance
settings = Settings()
