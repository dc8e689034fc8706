# core/config_validator.py

from typing import List
from core.config import settings
from core.logging_config import logger


def validate_required_config() -> List[str]:
    """
    Validate that all required environment variables are set.
    Returns list of missing required variables.
    """
    missing = []

    if not settings.SUPABASE_URL:
        missing.append("SUPABASE_URL")
    if not settings.SUPABASE_SERVICE_ROLE_KEY:
        missing.append("SUPABASE_SERVICE_ROLE_KEY")

    return missing


def validate_optional_config() -> List[str]:
    """
    Optional but recommended configuration.
    Returns list of warnings.
    """
    warnings = []

    if not settings.TELEGRAM_BOT_TOKEN:
        warnings.append("TELEGRAM_BOT_TOKEN (Telegram arrival alerts disabled)")
    elif not settings.TELEGRAM_WEBHOOK_SECRET:
        warnings.append("TELEGRAM_WEBHOOK_SECRET (Telegram callbacks are not authenticated)")
    if not settings.SUPABASE_WEBHOOK_SECRET:
        warnings.append("SUPABASE_WEBHOOK_SECRET (database webhook is not authenticated)")

    return warnings


def validate_config_on_startup(strict: bool = None):
    """
    Validate configuration on application startup.
    In production (or when strict) missing required config raises RuntimeError;
    otherwise it is only logged.
    """
    if strict is None:
        strict = settings.ENV == "production"

    missing_required = validate_required_config()
    missing_optional = validate_optional_config()

    if missing_required:
        error_msg = f"Missing required environment variables: {', '.join(missing_required)}"
        logger.error(error_msg)
        if strict:
            raise RuntimeError(error_msg)

    for warning in missing_optional:
        logger.warning(f"Optional configuration missing: {warning}")

    if not missing_required:
        logger.info("Configuration validation passed")
