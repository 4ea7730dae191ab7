"""
Offline aircraft registry - last-resort detail provider.

Maps uppercased ICAO24 hex addresses to aircraft metadata loaded from a
bundled file. Several dumps are in circulation and they disagree on
field names, so every logical field accepts a list of aliases:

    registration   registration / reg / r
    manufacturer   manufacturer / m   (falls back to model)
    type           type / icaotype / t / short_type
    owner          owner / ownop / o

Accepted file layouts:
1. JSON object keyed by hex address
2. JSON array of entries carrying an 'icao' field
3. NDJSON, one entry per line with an 'icao' field

Usage:
    from planewatch.services.offline_registry import OfflineRegistry

    registry = OfflineRegistry.load('icaorepo.json')
    detail = registry.lookup('a0b1c2')
"""

import json
import logging
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from planewatch.models import PartialDetail
from planewatch.services.providers import DetailProvider

logger = logging.getLogger(__name__)

FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    'registration': ('registration', 'reg', 'r'),
    'manufacturer': ('manufacturer', 'm'),
    'type': ('type', 'icaotype', 't', 'short_type'),
    'owner': ('owner', 'ownop', 'o'),
}


def _first_alias(entry: dict, field: str) -> Optional[str]:
    for alias in FIELD_ALIASES[field]:
        value = entry.get(alias)
        if value:
            return str(value).strip() or None
    return None


class OfflineRegistry(DetailProvider):
    """In-memory registry keyed by uppercase hex address."""

    name = 'offline'

    def __init__(self, entries: Optional[Dict[str, dict]] = None):
        self._entries: Dict[str, dict] = {}
        for key, entry in (entries or {}).items():
            if isinstance(entry, dict):
                self._entries[key.upper()] = entry

    def __len__(self) -> int:
        return len(self._entries)

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'OfflineRegistry':
        """
        Load registry file. A missing or unreadable file gives an empty registry.
        """
        path = Path(path)
        if not path.exists():
            logger.error(f'Offline registry not found: {path}')
            return cls()

        logger.info(f'Loading offline registry from {path}')
        with open(path, 'r', encoding='utf-8', errors='ignore') as f:
            text = f.read()

        registry = cls(cls._parse_text(text))
        logger.info(f'Offline registry loaded ({len(registry)} entries)')
        return registry

    @staticmethod
    def _parse_text(text: str) -> Dict[str, dict]:
        entries: Dict[str, dict] = {}

        try:
            data = json.loads(text)
        except ValueError:
            # Newline-delimited JSON
            skipped = 0
            for line in text.splitlines():
                if not line.strip():
                    continue
                try:
                    entry = json.loads(line)
                except ValueError:
                    skipped += 1
                    continue
                if isinstance(entry, dict) and entry.get('icao'):
                    entries[str(entry['icao']).upper()] = entry
            if skipped:
                logger.warning(f'Skipped {skipped} unparseable registry lines')
            return entries

        if isinstance(data, list):
            for entry in data:
                if isinstance(entry, dict) and entry.get('icao'):
                    entries[str(entry['icao']).upper()] = entry
        elif isinstance(data, dict):
            entries = {str(k).upper(): v for k, v in data.items() if isinstance(v, dict)}
        else:
            logger.warning('Offline registry has an unsupported layout')

        return entries

    def get(self, identifier: str) -> Optional[dict]:
        return self._entries.get(identifier.replace('~', '').upper())

    def lookup(self, identifier: str, callsign: Optional[str] = None) -> Optional[PartialDetail]:
        entry = self.get(identifier)
        if not entry:
            logger.debug(f'No offline registry entry for {identifier.upper()}')
            return None

        return PartialDetail(
            registration=_first_alias(entry, 'registration'),
            manufacturer=_first_alias(entry, 'manufacturer') or entry.get('model') or None,
            type=_first_alias(entry, 'type'),
            owner=_first_alias(entry, 'owner'),
        )
