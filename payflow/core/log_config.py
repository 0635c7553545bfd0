import logging

from payflow.core.config import Settings, settings as default_settings


def configure_logging(settings: Settings = default_settings) -> None:
    """Configure root logging the same way for every entry point."""
    if settings.DEBUG:
        level = logging.DEBUG
    elif settings.ENVIRONMENT == "development":
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    logging.getLogger(settings.APP_NAME).info(
        f"{settings.APP_NAME} logging configured for {settings.ENVIRONMENT}"
    )
