"""
Reconciles two independently produced record sets.

When both sides are non-empty the result is the id-wise INTERSECTION:
records present on only one side are dropped, and inside a shared record
only connectors whose source_id appears on both sides survive.
"""

import logging
from typing import Dict, List, Sequence

from .models import CanonicalRecord, Connector

logger = logging.getLogger(__name__)


class ConflictResolver:

    def reconcile(
        self,
        base: Sequence[CanonicalRecord],
        incoming: Sequence[CanonicalRecord],
        min_similarity: float = 0.0
    ) -> List[CanonicalRecord]:
        """
        Merge `incoming` into `base`.

        For every shared id and every (base, incoming) connector pair with
        the same source_id, the incoming connector replaces the base one
        only when its value is at least `min_similarity` and strictly
        higher than the base value.
        """
        if not base:
            return list(incoming)
        if not incoming:
            return list(base)

        incoming_by_id: Dict[str, CanonicalRecord] = {r.id: r for r in incoming}
        merged: List[CanonicalRecord] = []

        for record in base:
            other = incoming_by_id.get(record.id)
            if other is None:
                continue

            kept: List[Connector] = []
            for connector in record.connectors:
                for candidate in other.connectors:
                    if candidate.source_id != connector.source_id:
                        continue
                    if (candidate.similarity.value >= min_similarity
                            and candidate.similarity.value > connector.similarity.value):
                        kept.append(candidate)
                    else:
                        kept.append(connector)

            merged.append(CanonicalRecord(id=record.id, media=record.media, connectors=kept))

        logger.debug(f"Reconciled {len(base)} + {len(incoming)} records -> {len(merged)}")
        return merged
