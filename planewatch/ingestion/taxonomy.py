"""
Aircraft taxonomy and model-based filtering.

The taxonomy is a static reference document mapping manufacturers to
models, each with a set of regular expressions matched against an
aircraft's ICAO type code or free-text description:

    {
      "Boeing": [
        {"model": "Boeing 737", "patterns": ["^B73[1-9]$", "737"], "image": "boeing-737.png"}
      ]
    }

It is loaded once at startup and read-only afterwards. Patterns are
compiled case-insensitively; a pattern that fails to compile is logged
and skipped, never aborting the load or a filter pass.

Usage:
    from planewatch.ingestion.taxonomy import Taxonomy, TaxonomyFilter

    taxonomy = Taxonomy.load('planewatch/data/taxonomy.json')
    flt = TaxonomyFilter(taxonomy)
    visible = flt.apply(aircraft, selection={'Boeing 737', OTHERS})
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Pattern, Tuple, Union

from planewatch.models import AircraftPosition

logger = logging.getLogger(__name__)

# Selection key for aircraft that match no known model
OTHERS = 'Others'

# Message sources that are relayed or derived rather than received directly
NON_STANDARD_PREFIXES = ('tisb', 'adsr', 'adsc')
NON_STANDARD_SOURCES = frozenset({'mlat', 'mode_s', 'other'})


@dataclass(frozen=True)
class TaxonomyModel:
    """One model with its compiled match patterns."""
    manufacturer: str
    name: str
    patterns: Tuple[Pattern, ...]
    image: Optional[str] = None

    def matches(self, aircraft: AircraftPosition) -> bool:
        """True if any pattern matches the type code or the description."""
        for pattern in self.patterns:
            if aircraft.type_code and pattern.search(aircraft.type_code):
                return True
            if aircraft.description and pattern.search(aircraft.description):
                return True
        return False


@dataclass
class Taxonomy:
    """Manufacturer -> models reference data."""
    manufacturers: Dict[str, List[TaxonomyModel]] = field(default_factory=dict)
    skipped_patterns: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> 'Taxonomy':
        """Build from the parsed document, skipping invalid patterns."""
        taxonomy = cls()
        if not isinstance(data, dict):
            logger.error('Taxonomy document must be an object keyed by manufacturer')
            return taxonomy

        for manufacturer, entries in data.items():
            models = []
            for entry in entries or []:
                name = entry.get('model') if isinstance(entry, dict) else None
                if not name:
                    logger.warning(f'Taxonomy entry without model name under {manufacturer}, skipped')
                    continue

                compiled = []
                for raw in entry.get('patterns') or []:
                    try:
                        compiled.append(re.compile(raw, re.IGNORECASE))
                    except (re.error, TypeError) as e:
                        taxonomy.skipped_patterns += 1
                        logger.warning(f'Invalid pattern {raw!r} for {name}, skipped: {e}')

                models.append(TaxonomyModel(
                    manufacturer=manufacturer,
                    name=name,
                    patterns=tuple(compiled),
                    image=entry.get('image'),
                ))
            taxonomy.manufacturers[manufacturer] = models

        return taxonomy

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'Taxonomy':
        """
        Load the taxonomy document from disk.

        A missing or unreadable file yields an empty taxonomy, in which
        case every aircraft classifies as "other".
        """
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f'Could not load taxonomy from {path}: {e}')
            return cls()

        taxonomy = cls.from_dict(data)
        logger.info(
            f'Loaded taxonomy: {len(taxonomy.manufacturers)} manufacturers, '
            f'{len(taxonomy.models)} models ({taxonomy.skipped_patterns} patterns skipped)'
        )
        return taxonomy

    @property
    def models(self) -> List[TaxonomyModel]:
        return [model for models in self.manufacturers.values() for model in models]

    @property
    def model_names(self) -> List[str]:
        return [model.name for model in self.models]

    def get_model(self, name: str) -> Optional[TaxonomyModel]:
        for model in self.models:
            if model.name == name:
                return model
        return None

    def classify(self, aircraft: AircraftPosition) -> Optional[str]:
        """Name of the first model the aircraft matches, or None ("other")."""
        for model in self.models:
            if model.matches(aircraft):
                return model.name
        return None

    def to_dict(self) -> dict:
        return {
            manufacturer: [
                {
                    'model': model.name,
                    'patterns': [p.pattern for p in model.patterns],
                    'image': model.image,
                }
                for model in models
            ]
            for manufacturer, models in self.manufacturers.items()
        }


def is_non_standard(aircraft: AircraftPosition) -> bool:
    """
    True if the position was relayed or derived (TIS-B, ADS-R, MLAT...).

    Non-ICAO addresses ('~' prefix) only occur for such sources.
    """
    if aircraft.identifier.startswith('~'):
        return True
    source = (aircraft.source_type or '').lower()
    if not source:
        return False
    return source.startswith(NON_STANDARD_PREFIXES) or source in NON_STANDARD_SOURCES


class TaxonomyFilter:
    """
    Applies source exclusion and model selection to a raw aircraft list.

    Order matters: non-standard sources are dropped first, then model
    matching runs on what remains.
    """

    def __init__(self, taxonomy: Taxonomy):
        self.taxonomy = taxonomy

    def matches_selection(self, aircraft: AircraftPosition, selection: Iterable[str]) -> bool:
        selection = set(selection)
        if not selection:
            return True

        for name in selection:
            if name == OTHERS:
                continue
            model = self.taxonomy.get_model(name)
            if model and model.matches(aircraft):
                return True

        if OTHERS in selection:
            return self.taxonomy.classify(aircraft) is None
        return False

    def apply(
        self,
        aircraft: List[AircraftPosition],
        selection: Iterable[str] = (),
        include_non_standard: bool = False,
    ) -> List[AircraftPosition]:
        """
        Filter a raw list. Empty selection means every model passes.

        Input order is preserved.
        """
        selection = set(selection)
        result = []
        excluded = 0

        for ac in aircraft:
            if not include_non_standard and is_non_standard(ac):
                excluded += 1
                continue
            if self.matches_selection(ac, selection):
                result.append(ac)

        if excluded:
            logger.debug(f'Excluded {excluded} non-standard source aircraft')
        return result
