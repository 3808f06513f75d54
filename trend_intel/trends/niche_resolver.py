"""
Niche Resolver — maps (path, free-text interest, sub-sector) to a taxonomy node.

Resolution order (first hit wins, only nodes of the requested path count):
  1. sub-sector equal to a node id
  2. interest equal to an alias (case-insensitive), deepest node
  3. interest and alias/label containing one another as a phrase, deepest node
  4. sub-sector mapping table, then interest mapping table
  5. the path's root node
  6. a synthetic default niche when the path has no root

Resolution never raises: unmatched input always degrades to a usable niche.
"""

import logging
import re
from typing import Dict, List, Optional

from trend_intel.schemas import NicheResolution, NicheTaxonomyNode
from trend_intel.trends.taxonomy import (
    DEFAULT_PLATFORMS, ECONOMIC_TO_PATH, NICHE_TO_TAXONOMY, PATH_MONETIZATION_SIGNALS,
    PATH_PLATFORMS, SUB_SECTOR_TO_NICHE, build_default_taxonomy, validate_taxonomy,
)

logger = logging.getLogger(__name__)


def _normalize(text: Optional[str]) -> str:
    return " ".join((text or "").replace("_", " ").split()).lower()


def _contains_phrase(haystack: str, needle: str) -> bool:
    if not needle or not haystack:
        return False
    return re.search(rf"(?<!\w){re.escape(needle)}(?!\w)", haystack) is not None


class NicheResolver:
    """Resolves user input against an in-memory copy of the taxonomy."""

    def __init__(self, nodes: Optional[List[NicheTaxonomyNode]] = None):
        self._nodes = validate_taxonomy(nodes if nodes else build_default_taxonomy())
        self._by_id: Dict[str, NicheTaxonomyNode] = {n.id: n for n in self._nodes}
        self._children: Dict[str, List[NicheTaxonomyNode]] = {}
        for node in self._nodes:
            if node.parent_id:
                self._children.setdefault(node.parent_id, []).append(node)

    @classmethod
    def from_database(cls, db) -> "NicheResolver":
        """Load the seeded taxonomy, seeding the static tree on first use."""
        nodes = db.get_taxonomy_nodes()
        if not nodes:
            nodes = build_default_taxonomy()
            db.seed_taxonomy(nodes)
        return cls(nodes)

    @property
    def nodes(self) -> List[NicheTaxonomyNode]:
        return list(self._nodes)

    # ── Queries ───────────────────────────────────────────────────────

    @staticmethod
    def map_path_id(path_id: str) -> str:
        """Economic model id → taxonomy path id (identity for path ids)."""
        return ECONOMIC_TO_PATH.get(path_id, path_id)

    def get_niches_for_path(self, path_id: str) -> List[NicheTaxonomyNode]:
        """Every node of a path, root first, in tree order."""
        resolved = self.map_path_id(path_id)
        return [n for n in self._nodes if n.path_id == resolved]

    def get_niche_by_id(self, niche_id: str) -> Optional[NicheTaxonomyNode]:
        return self._by_id.get(niche_id)

    def get_micro_niches(self, path_id: str) -> List[NicheTaxonomyNode]:
        return [n for n in self.get_niches_for_path(path_id) if n.depth == 2]

    def get_root_categories(self) -> List[NicheTaxonomyNode]:
        return [n for n in self._nodes if n.parent_id is None]

    def get_descendants(self, niche_id: str) -> List[NicheTaxonomyNode]:
        result = []
        for child in self._children.get(niche_id, []):
            result.append(child)
            result.extend(self.get_descendants(child.id))
        return result

    def get_ancestors(self, niche_id: str) -> List[NicheTaxonomyNode]:
        """Parent first, up to the root."""
        result = []
        node = self._by_id.get(niche_id)
        while node is not None and node.parent_id:
            node = self._by_id.get(node.parent_id)
            if node is not None:
                result.append(node)
        return result

    def search_taxonomy(self, query: str) -> List[NicheTaxonomyNode]:
        """Nodes whose label, aliases or tracked keywords mention `query`."""
        q = _normalize(query)
        if not q:
            return []
        return [
            n for n in self._nodes
            if q in n.label.lower()
            or any(q in a.lower() for a in n.aliases)
            or any(q in k.lower() for k in n.track_keywords)
        ]

    def collect_keywords(self, node: NicheTaxonomyNode) -> List[str]:
        """Track keywords of a node and its descendants, deduplicated in tree order."""
        seen = set()
        keywords = []
        for n in [node] + self.get_descendants(node.id):
            for kw in n.track_keywords:
                key = kw.lower()
                if key not in seen:
                    seen.add(key)
                    keywords.append(kw)
        return keywords

    # ── Resolution ────────────────────────────────────────────────────

    def resolve_user_niche(
        self,
        path_id: str,
        freeform_interest: Optional[str] = None,
        sub_sector: Optional[str] = None,
    ) -> NicheResolution:
        resolved_path = self.map_path_id(path_id)
        candidates = self.get_niches_for_path(resolved_path)
        interest = _normalize(freeform_interest)
        sub = (sub_sector or "").strip()

        if not candidates:
            logger.info(f"No taxonomy for path '{path_id}', using default niche")
            return self._default_niche(resolved_path, interest, sub)

        match = None
        if sub:
            match = self._lookup(sub, resolved_path)
        if match is None and interest:
            match = self._match_exact_alias(candidates, interest)
        if match is None and interest:
            match = self._match_phrase(candidates, interest)
        if match is None and sub:
            match = self._lookup(SUB_SECTOR_TO_NICHE.get(sub), resolved_path)
        if match is None and freeform_interest:
            match = self._lookup(NICHE_TO_TAXONOMY.get(freeform_interest.strip()), resolved_path)
        if match is None:
            match = next((n for n in candidates if n.depth == 0), candidates[0])

        keywords = self.collect_keywords(match)
        for extra in (interest, _normalize(sub)):
            if extra and not any(extra in k.lower() for k in keywords):
                keywords.append(extra)

        return NicheResolution(
            niche_id=match.id,
            label=match.label,
            path_id=match.path_id,
            keywords=keywords,
            aliases=sorted(match.aliases),
            platforms=PATH_PLATFORMS.get(match.path_id, DEFAULT_PLATFORMS),
            monetization_signals=PATH_MONETIZATION_SIGNALS.get(match.path_id, []),
            depth=match.depth,
        )

    def _lookup(self, niche_id: Optional[str], path_id: str) -> Optional[NicheTaxonomyNode]:
        """Node by id, only when it belongs to `path_id`."""
        node = self._by_id.get(niche_id or "")
        if node is not None and node.path_id != path_id:
            logger.debug(f"Ignoring {node.id}: belongs to {node.path_id}, not {path_id}")
            return None
        return node

    @staticmethod
    def _deepest(nodes: List[NicheTaxonomyNode]) -> Optional[NicheTaxonomyNode]:
        if not nodes:
            return None
        # max() keeps the first of equal depths, i.e. tree order
        return max(nodes, key=lambda n: n.depth)

    def _match_exact_alias(self, candidates: List[NicheTaxonomyNode], interest: str) -> Optional[NicheTaxonomyNode]:
        return self._deepest([
            n for n in candidates
            if any(_normalize(a) == interest for a in n.aliases) or n.label.lower() == interest
        ])

    def _match_phrase(self, candidates: List[NicheTaxonomyNode], interest: str) -> Optional[NicheTaxonomyNode]:
        hits = []
        for n in candidates:
            terms = [_normalize(a) for a in n.aliases] + [n.label.lower()]
            if any(_contains_phrase(t, interest) or _contains_phrase(interest, t) for t in terms):
                hits.append(n)
        return self._deepest(hits)

    @staticmethod
    def _default_niche(path_id: str, interest: str, sub_sector: str) -> NicheResolution:
        seed = interest or _normalize(sub_sector) or _normalize(path_id)
        return NicheResolution(
            niche_id=f"{path_id}.default",
            label=seed.title() if seed else path_id,
            path_id=path_id,
            keywords=[seed] if seed else [],
            platforms=PATH_PLATFORMS.get(path_id, DEFAULT_PLATFORMS),
            monetization_signals=PATH_MONETIZATION_SIGNALS.get(path_id, []),
            is_default=True,
        )
