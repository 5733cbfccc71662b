"""
nanobrain Lifecycle Engine

Three maintenance passes over the memory store and credit ledger, always
run in this order by compact():

1. consolidate - merge same-day episodes that share tags into one episode
2. promote     - copy bullet facts out of high-credit episodes into a
                 long-lived project entity
3. prune       - archive low-credit memories outside protected categories

Each pass is best-effort: a failure on one memory is recorded in the
report details and the pass moves on to the next.
"""

import logging
from collections import OrderedDict
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from nanobrain.config.models import LifecycleConfig
from nanobrain.errors import (
    MemoryConflictError,
    MemoryNotFoundError,
    NanobrainError,
    PinnedMemoryError,
)
from nanobrain.memory.credit import CreditTracker
from nanobrain.memory.schemas import LifecycleReport, MemoryEntry, MemoryType
from nanobrain.memory.store import MemoryStore, parse_timestamp

logger = logging.getLogger(__name__)

BULLET_PREFIX = "- "
PROMOTED_CATEGORY = "projects"
PROMOTED_TAG = "promoted"
MAX_SLUG_ATTEMPTS = 100


class LifecycleEngine:
    """Consolidates, promotes and prunes memories using credit scores."""

    def __init__(
        self,
        store: MemoryStore,
        tracker: CreditTracker,
        config: Optional[LifecycleConfig] = None,
    ):
        self.store = store
        self.tracker = tracker
        self.ledger = tracker.ledger
        self.config = config or LifecycleConfig()

    def compact(self) -> LifecycleReport:
        """Run consolidate, promote and prune in that order."""
        report = self.consolidate().merge(self.promote()).merge(self.prune())
        logger.info(
            "Compaction finished: %d consolidated, %d promoted, %d pruned",
            report.consolidated, report.promoted, report.pruned,
        )
        return report

    # =====================================================================
    # Consolidate
    # =====================================================================

    def consolidate(self) -> LifecycleReport:
        """Merge same-day episodes with overlapping tags.

        Clusters are built by one greedy forward walk per day: each unvisited
        episode seeds a cluster, then the later unvisited episodes are scanned
        once and join if they share a tag with the cluster so far. Episodes
        skipped earlier in the scan are not revisited when the cluster's tag
        set grows, so chains of indirectly related episodes may stay apart.
        """
        report = LifecycleReport()

        for day, episodes in self._episodes_by_day().items():
            if len(episodes) < 2:
                continue
            for cluster in _greedy_clusters(episodes):
                if len(cluster) < 2:
                    continue
                try:
                    merged_id = self._merge_cluster(day, cluster, report)
                except NanobrainError as e:
                    logger.warning("Could not merge cluster on %s: %s", day, e)
                    report.details.append(
                        f"Skipped merge of {', '.join(m.id for m in cluster)}: {e}"
                    )
                    continue
                report.consolidated += 1
                report.details.append(
                    f"Consolidated {len(cluster)} episodes from {day.isoformat()} into {merged_id}"
                )

        logger.info("Consolidate pass merged %d cluster(s)", report.consolidated)
        return report

    def _episodes_by_day(self) -> Dict[date, List[MemoryEntry]]:
        by_day: Dict[date, List[MemoryEntry]] = OrderedDict()
        for episode in self.store.list(MemoryType.EPISODE):
            # Pinned episodes can never be archived, so they never merge
            if episode.pinned:
                continue
            try:
                day = parse_timestamp(episode.created).date()
            except ValueError:
                logger.warning("Episode %s has unparsable created time %r",
                               episode.id, episode.created)
                continue
            by_day.setdefault(day, []).append(episode)
        return by_day

    def _merge_cluster(
        self, day: date, cluster: List[MemoryEntry], report: LifecycleReport
    ) -> str:
        content = "\n\n".join(
            f"## {member.name}\n\n{member.content.strip()}" for member in cluster
        )
        tags = sorted({tag for member in cluster for tag in member.tags})
        noon = datetime(day.year, day.month, day.day, 12, tzinfo=timezone.utc)

        member_scores = {m.id: self.tracker.get_score(m.id) for m in cluster}

        base_slug = f"merged-{day.isoformat()}-{cluster[0].name}"
        stored = None
        for attempt in range(MAX_SLUG_ATTEMPTS):
            slug = base_slug if attempt == 0 else f"{base_slug}-{attempt + 1}"
            try:
                stored = self.store.store_episode(slug, content, tags, as_of=noon)
                break
            except MemoryConflictError:
                continue
        if stored is None:
            raise MemoryConflictError(base_slug, f"{MAX_SLUG_ATTEMPTS} slug variants")

        member_ids = []
        for member in cluster:
            try:
                self.store.delete(member.id)
            except (MemoryNotFoundError, PinnedMemoryError) as e:
                logger.warning("Kept consolidated member %s: %s", member.id, e)
                report.details.append(f"Kept {member.id} after merge: {e}")
                continue
            self.tracker.delete_record(member.id)
            member_ids.append(member.id)

        # Sum, not average: merging rewarded episodes keeps their credit.
        # Members that are still live keep their own score.
        merged_score = min(1.0, sum(member_scores[m] for m in member_ids))
        self.tracker.set_score(stored.id, merged_score)

        self.ledger.log_lifecycle(
            "consolidate",
            [stored.id, *member_ids],
            f"Merged {len(cluster)} episode(s) from {day.isoformat()} "
            f"(score {merged_score:.3f})",
        )
        logger.debug("Merged %s into %s", [m.id for m in cluster], stored.id)
        return stored.id

    # =====================================================================
    # Promote
    # =====================================================================

    def promote(self) -> LifecycleReport:
        """Copy bullet facts from high-credit episodes into project entities.

        An episode is promoted at most once; the promote entries in the
        lifecycle log are the record of which episodes were already handled.
        """
        report = LifecycleReport()
        already_promoted = self.ledger.promoted_episode_ids()

        for episode in self.store.list(MemoryType.EPISODE):
            if episode.id in already_promoted:
                continue

            episode_score = self.tracker.get_score(episode.id)
            if episode_score <= self.config.promote_threshold:
                continue

            facts = extract_bullet_facts(episode.content)
            if not facts:
                continue

            try:
                entity_id = self._promote_episode(episode, facts, episode_score)
            except NanobrainError as e:
                logger.warning("Could not promote %s: %s", episode.id, e)
                report.details.append(f"Skipped promotion of {episode.id}: {e}")
                continue

            report.promoted += 1
            report.details.append(f"Promoted {episode.id} into {entity_id}")

        logger.info("Promote pass promoted %d episode(s)", report.promoted)
        return report

    def _promote_episode(
        self, episode: MemoryEntry, facts: List[str], episode_score: float
    ) -> str:
        entity_name = f"promoted-{episode.name}"
        entity_id = f"entity-{PROMOTED_CATEGORY}-{entity_name}"

        if self.store.exists(entity_id):
            existing = self.store.retrieve(entity_id)
            present = {line.strip() for line in existing.content.splitlines()}
            new_facts = [fact for fact in facts if fact not in present]
            if new_facts:
                merged = existing.content.rstrip() + "\n" + "\n".join(new_facts)
                self.store.update(entity_id, merged)
        else:
            tags = [*episode.tags, PROMOTED_TAG]
            self.store.store_entity(PROMOTED_CATEGORY, entity_name, "\n".join(facts), tags)

        entity_score = min(
            1.0,
            self.tracker.get_score(entity_id)
            + self.config.promotion_transfer * episode_score,
        )
        self.tracker.set_score(entity_id, entity_score)

        if self.config.cap_promoted_episode:
            self.tracker.set_score(
                episode.id, min(episode_score, self.config.promote_threshold - 0.01)
            )

        self.ledger.log_lifecycle(
            "promote",
            [episode.id, entity_id],
            f"Promoted {len(facts)} fact(s) (entity score {entity_score:.3f})",
        )
        return entity_id

    # =====================================================================
    # Prune
    # =====================================================================

    def prune(self, threshold: Optional[float] = None) -> LifecycleReport:
        """Archive memories scoring below threshold, lowest first.

        Protected categories are never pruned. Pinned or already-archived
        memories are skipped. Credit records are kept.
        """
        if threshold is None:
            threshold = self.config.prune_threshold

        report = LifecycleReport()
        archived = []

        for record in self.tracker.get_low_scored(threshold):
            if self.is_protected(record.id):
                continue
            try:
                self.store.delete(record.id)
            except MemoryNotFoundError:
                logger.debug("Prune skipped %s: no live memory", record.id)
                continue
            except PinnedMemoryError:
                report.details.append(f"Skipped pinned {record.id} (score: {record.score:.3f})")
                continue

            archived.append(record.id)
            report.pruned += 1
            report.details.append(f"Archived {record.id} (score: {record.score:.3f})")

        if archived:
            self.ledger.log_lifecycle(
                "prune", archived, f"Archived {len(archived)} memory(ies) below {threshold}"
            )
        logger.info("Prune pass archived %d memory(ies)", report.pruned)
        return report

    def is_protected(self, memory_id: str) -> bool:
        return any(memory_id.startswith(p) for p in self.config.protected_prefixes)


# =========================================================================
# Helpers
# =========================================================================


def _greedy_clusters(episodes: List[MemoryEntry]) -> List[List[MemoryEntry]]:
    """Single forward pass clustering by tag overlap (not a transitive closure)."""
    visited = set()
    clusters = []
    for i, seed in enumerate(episodes):
        if seed.id in visited:
            continue
        visited.add(seed.id)
        cluster = [seed]
        cluster_tags = set(seed.tags)
        for candidate in episodes[i + 1:]:
            if candidate.id in visited:
                continue
            if cluster_tags & set(candidate.tags):
                cluster.append(candidate)
                cluster_tags |= set(candidate.tags)
                visited.add(candidate.id)
        clusters.append(cluster)
    return clusters


def extract_bullet_facts(content: str) -> List[str]:
    """Top-level lines of the form ``- fact``, in order, without repeats.

    Indented sub-bullets are not facts of their own.
    """
    facts = []
    for line in content.splitlines():
        if not line.startswith(BULLET_PREFIX):
            continue
        fact = line.rstrip()
        if fact not in facts:
            facts.append(fact)
    return facts
