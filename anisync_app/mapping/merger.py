"""Folds matched (canonical_id, connector) pairs into canonical records."""

import logging
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .models import CanonicalMedia, CanonicalRecord, Connector

logger = logging.getLogger(__name__)

MediaLookup = Union[Mapping[str, CanonicalMedia], Callable[[str], Optional[CanonicalMedia]]]


class RecordMerger:
    """
    Ordered accumulator keyed by canonical id.

    The first pair for an id creates its record; later pairs append. Nothing
    is de-duplicated: two results from one provider that both match the same
    id become two connectors.
    """

    def merge(
        self,
        pairs: Sequence[Tuple[str, Connector]],
        media_lookup: MediaLookup
    ) -> List[CanonicalRecord]:
        lookup = media_lookup if callable(media_lookup) else media_lookup.get
        records: Dict[str, CanonicalRecord] = {}

        for canonical_id, connector in pairs:
            record = records.get(canonical_id)
            if record is not None:
                record.connectors.append(connector)
                continue

            media = lookup(canonical_id)
            if media is None:
                logger.warning(f"No canonical media for id {canonical_id}, dropping connector")
                continue
            records[canonical_id] = CanonicalRecord(id=canonical_id, media=media, connectors=[connector])

        return list(records.values())
