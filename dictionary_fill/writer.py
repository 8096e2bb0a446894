import json
import logging
import os
from typing import Optional

from dictionary_fill.app_config import AppConfig
from dictionary_fill.dictionaries import Dictionary

logger = logging.getLogger(__name__)


class UnsupportedDeclarationFormat(Exception):
    """Raised when asked to write a content declaration in a format other than JSON."""


def serialize_content_declaration(dictionary: Dictionary) -> str:
    """Render a dictionary as a JSON content declaration file body."""
    data = dictionary.to_dict()
    # The path of a declaration is where it lives, not part of it
    data.pop('filePath', None)
    data.pop('location', None)
    return json.dumps(data, ensure_ascii=False, indent=2) + '\n'


class ContentDeclarationWriter:
    """Persists dictionaries as JSON content declaration files."""

    def __init__(self, config: AppConfig):
        self.config = config

    def write(self, dictionary: Dictionary, file_path: Optional[str] = None) -> str:
        """
        Write ``dictionary`` to ``file_path`` (defaults to its own file path).

        Returns:
            The path written to (or that would be written to in dry-run mode).
        """
        target_path = file_path or dictionary.file_path
        if not target_path:
            raise ValueError(f"No file path to write dictionary '{dictionary.key}' to")
        if not target_path.endswith('.json'):
            raise UnsupportedDeclarationFormat(
                f"Cannot write '{target_path}': only JSON content declarations are supported"
            )

        relative_path = os.path.relpath(target_path, self.config.base_dir)
        file_content = serialize_content_declaration(dictionary)

        if self.config.dry_run:
            logger.info(f"[Dry Run] Would write content declaration '{dictionary.key}' to '{relative_path}'.")
            return target_path

        os.makedirs(os.path.dirname(target_path) or '.', exist_ok=True)
        with open(target_path, 'w', encoding='utf-8') as file:
            file.write(file_content)
        logger.info(f"Content declaration '{dictionary.key}' saved to '{relative_path}'.")
        return target_path
