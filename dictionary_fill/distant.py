"""Fetching of dictionaries managed remotely in the editor backend."""
import logging
from typing import Callable, Dict, List, Optional, Sequence

import httpx

from dictionary_fill.app_config import EditorConfig
from dictionary_fill.dictionaries import Dictionary, DictionaryRepository

logger = logging.getLogger(__name__)

DICTIONARY_UPDATES_PATH = '/api/dictionary/update'
DICTIONARY_PATH = '/api/dictionary/{key}'


class DistantDictionaryClient:
    """Reads distant dictionaries from the editor backend."""

    def __init__(self, editor: EditorConfig, access_token: Optional[str] = None, timeout: float = 30.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.editor = editor
        self.access_token = access_token
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {'Authorization': f'Bearer {self.access_token}'} if self.access_token else {}
        return httpx.AsyncClient(
            base_url=self.editor.backend_url,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def fetch_update_timestamps(self) -> Dict[str, int]:
        """Return the last update timestamp (epoch ms) of every distant dictionary key."""
        async with self._client() as client:
            response = await client.get(DICTIONARY_UPDATES_PATH)
            response.raise_for_status()
        data = response.json().get('data') or {}
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected dictionary update payload: {data!r}")
        return {key: int(timestamp) for key, timestamp in data.items()}

    async def fetch_dictionaries(self, keys: Sequence[str]) -> List[Dictionary]:
        dictionaries = []
        async with self._client() as client:
            for key in keys:
                response = await client.get(DICTIONARY_PATH.format(key=key))
                response.raise_for_status()
                data = response.json().get('data')
                if not isinstance(data, dict):
                    logger.warning(f"Distant dictionary '{key}' returned no content, ignoring it")
                    continue
                dictionary = Dictionary.from_dict({**data, 'key': data.get('key', key), 'location': 'distant'})
                dictionaries.append(dictionary)
        return dictionaries


def select_outdated_keys(update_timestamps: Dict[str, int],
                         merged_repository: Optional[DictionaryRepository] = None) -> List[str]:
    """Keys unknown locally or updated remotely since the local record was built, sorted."""
    outdated = []
    for key, timestamp in update_timestamps.items():
        local = merged_repository.get(key) if merged_repository is not None else None
        if local is None or local.updated_at is None or timestamp > local.updated_at:
            outdated.append(key)
    return sorted(outdated)


async def load_distant_dictionaries(
        client: DistantDictionaryClient,
        merged_repository: Optional[DictionaryRepository] = None,
        on_keys: Optional[Callable[[List[str]], None]] = None
) -> List[Dictionary]:
    """
    Fetch the distant dictionaries that are newer than the local record.

    Fetch errors are logged and yield no distant dictionaries; local
    dictionaries are unaffected.

    Args:
        client: The distant dictionary client.
        merged_repository: The current merged record, to skip up-to-date keys.
        on_keys: Called with the list of keys about to be fetched.
    """
    try:
        update_timestamps = await client.fetch_update_timestamps()
        keys = select_outdated_keys(update_timestamps, merged_repository)
        if on_keys:
            on_keys(keys)
        if not keys:
            logger.debug("Distant dictionaries are up to date")
            return []
        dictionaries = await client.fetch_dictionaries(keys)
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"Error during fetching distant dictionaries: {e}")
        return []

    logger.info(f"Fetched {len(dictionaries)} distant dictionary(ies)")
    return dictionaries
