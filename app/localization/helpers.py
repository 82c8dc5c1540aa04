"""Lookup of translated messages."""
from __future__ import annotations

import logging

from app.localization.translations import TRANSLATIONS

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "en"
SUPPORTED_LOCALES = frozenset(TRANSLATIONS)


def normalize_locale(locale: str | None) -> str:
    """Reduce ``ru-RU`` style tags to a supported locale code."""
    if not locale:
        return DEFAULT_LOCALE
    code = locale.split(",")[0].split(";")[0].strip().lower()[:2]
    return code if code in SUPPORTED_LOCALES else DEFAULT_LOCALE


def get_translation(key: str, locale: str = DEFAULT_LOCALE, **kwargs) -> str:
    """Message for ``key`` in ``locale``, falling back to English, then to the key itself."""
    catalogue = TRANSLATIONS[normalize_locale(locale)]
    message = catalogue.get(key) or TRANSLATIONS[DEFAULT_LOCALE].get(key)
    if message is None:
        logger.debug("Missing translation for %s", key)
        return key
    if not kwargs:
        return message
    try:
        return message.format(**kwargs)
    except (KeyError, IndexError):
        logger.warning("Translation %s could not be formatted with %s", key, sorted(kwargs))
        return message
