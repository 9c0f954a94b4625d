import logging
from dataclasses import dataclass
from typing import List

from lostlink.db.repositories import ItemRepository
from lostlink.models.item import Item
from lostlink.services.prefilter import should_skip_comparison
from lostlink.services.scorer import MatchScorer

logger = logging.getLogger(__name__)


@dataclass
class MatchCandidate:
    item: Item
    score: int
    reasoning: str = ""


class MatchingOrchestrator:
    def __init__(self, items: ItemRepository, scorer: MatchScorer):
        self.items = items
        self.scorer = scorer

    def _load_candidates(self, new_item: Item) -> List[Item]:
        candidates = self.items.find(item_type=new_item.opposite_type, is_resolved=False)
        return [candidate for candidate in candidates if candidate.id != new_item.id]

    async def find_potential_matches(self, new_item: Item) -> List[MatchCandidate]:
        """Score every plausible counterpart of ``new_item``, best first.

        Never raises: a failing candidate is dropped, a failing candidate
        query yields no results.
        """
        try:
            candidates = self._load_candidates(new_item)
        except Exception:
            logger.exception("Could not load match candidates for item %s", new_item.id)
            return []

        logger.info("Evaluating %s item %s against %d candidates", new_item.type, new_item.id, len(candidates))

        results: List[MatchCandidate] = []

        for candidate in candidates:
            lost_item, found_item = (new_item, candidate) if new_item.type == "lost" else (candidate, new_item)

            try:
                if should_skip_comparison(lost_item, found_item):
                    continue

                evaluation = await self.scorer.evaluate(lost_item, found_item)
            except Exception:
                logger.exception("Error scoring candidate %s for item %s", candidate.id, new_item.id)
                continue

            if not evaluation.ok:
                logger.warning(
                    "No usable score for candidate %s of item %s: %s",
                    candidate.id, new_item.id, evaluation.error,
                )
                continue

            logger.debug("Candidate %s scored %d: %s", candidate.id, evaluation.confidence_score, evaluation.reasoning)
            results.append(MatchCandidate(
                item=candidate,
                score=evaluation.confidence_score,
                reasoning=evaluation.reasoning,
            ))

        # sorted() is stable, ties keep candidate order
        results = sorted(results, key=lambda result: result.score, reverse=True)

        if results:
            logger.info("Scored %d candidates for item %s, best %d", len(results), new_item.id, results[0].score)

        return results
