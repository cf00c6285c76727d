# core/config_validator.py

from typing import List

from core.config import settings
from core.logging_config import logger


# Without these the service-role client cannot be built at all
REQUIRED_SETTINGS = ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY")

# name → what stops working while it is unset
OPTIONAL_SETTINGS = {
    "SUPABASE_ANON_KEY": "self-service signup and login are disabled",
    "BASE_URL": "invite links fall back to a derived host",
}


def validate_required_config() -> List[str]:
    """Names of required environment variables that are not set."""
    return [name for name in REQUIRED_SETTINGS if not getattr(settings, name, None)]


def validate_optional_config() -> List[str]:
    return [
        f"{name} ({effect})"
        for name, effect in OPTIONAL_SETTINGS.items()
        if not getattr(settings, name, None)
    ]


def validate_config_on_startup():
    """
    Fails startup when the store cannot be reached; only warns for the rest.
    Skipped under ENV=test, where the clients are faked.
    """
    if settings.ENV == "test":
        return

    missing = validate_required_config()
    if missing:
        message = f"Missing required environment variables: {', '.join(missing)}"
        logger.error(message)
        raise RuntimeError(message)

    for warning in validate_optional_config():
        logger.warning(f"Optional configuration missing: {warning}")

    if settings.PROVISIONING_COMPENSATE:
        logger.info("Provisioning compensation is ON: failed workflows undo completed steps")

    logger.info(f"Configuration OK (env={settings.ENV}, invite redirect={settings.invite_redirect_url})")
