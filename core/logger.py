import logging
import sys

from core.config import settings

def get_logger(name: str) -> logging.Logger:
    """Crée et configure un logger standard pour le panneau de contrôle."""
    logger = logging.getLogger(name)

    if not logger.handlers:
        logger.setLevel(settings.log_level.upper())

        # Format des logs structuré
        formatter = logging.Formatter(
            "%(asctime)s - [%(levelname)s] - %(name)s : %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

        # Sortie vers la console (stdout)
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
