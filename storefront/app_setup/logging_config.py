"""
Configuration des logs applicatifs: les loggers `storefront.*` suivent le niveau LOG_LEVEL.
Un handler console n'est ajouté que si personne (uvicorn, pytest) n'en a déjà installé.
"""
import logging
from storefront.config import LOG_LEVEL

def configure_logging() -> None:
    level = getattr(logging, LOG_LEVEL.upper(), logging.INFO)
    logger = logging.getLogger("storefront")
    logger.setLevel(level)
    if not logger.handlers and not logging.getLogger().handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s:     %(name)s - %(message)s"))
        logger.addHandler(handler)
