"""
Translations for the EDDS map dashboard: page chrome, legend, map tooltips
and callouts. Strings live in locales/<language>.yaml.
"""
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from config import Config

logger = logging.getLogger(__name__)

LOCALES_DIR = Path(__file__).parent / "locales"
FALLBACK_LANGUAGE = 'ru'


class I18n:
    """Dot-key lookup over one locale file."""

    def __init__(self, language: Optional[str] = None):
        self.language = language or Config.LANGUAGE
        self.translations = self._load_translations()

    def _load_translations(self) -> Dict[str, Any]:
        locale_file = LOCALES_DIR / f"{self.language}.yaml"
        if not locale_file.exists():
            logger.warning(f"No locale for '{self.language}', using '{FALLBACK_LANGUAGE}'")
            self.language = FALLBACK_LANGUAGE
            locale_file = LOCALES_DIR / f"{FALLBACK_LANGUAGE}.yaml"

        with open(locale_file, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}

    def _lookup(self, key: str) -> Optional[str]:
        node: Any = self.translations
        for part in key.split('.'):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node if isinstance(node, str) else None

    def t(self, key: str, **kwargs) -> str:
        """
        Translate a dot-separated key, e.g. t('map.tooltip.many', count=3).

        Unknown keys come back unchanged so a missing string shows up on screen.
        """
        value = self._lookup(key)
        if value is None:
            return key
        if not kwargs:
            return value
        try:
            return value.format(**kwargs)
        except KeyError as e:
            logger.warning(f"Missing variable {e} for translation key '{key}'")
            return value


i18n = I18n()
