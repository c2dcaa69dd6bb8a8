"""Tool catalog: hash-gated sync from providers and learned recommendation."""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field, replace

from memdex.catalog.keywords import (
    GENERAL_DOMAIN,
    classify_domain,
    extract_keywords,
    fts_or_query,
    task_keywords,
)
from memdex.catalog.providers import load_integrations, load_workflows
from memdex.config import MemdexConfig
from memdex.db.models import CorruptState, ToolRecord, ToolType
from memdex.db.repository import QuerySyntaxError, Repository

logger = logging.getLogger(__name__)


@dataclass
class SyncStats:
    integrations: int = 0
    workflows: int = 0
    indexed: int = 0
    unchanged: int = 0
    removed: int = 0
    domains: dict[str, int] = field(default_factory=dict)


@dataclass
class Recommendation:
    tool: ToolRecord
    score: float
    overlap: int
    confidence: float


def content_hash(tool: ToolRecord) -> str:
    """SHA-256 of the record's canonical JSON, usage counters excluded."""
    payload = json.dumps(tool.hash_payload(), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def keyword_overlap(task_terms: list[str], tool_terms: list[str]) -> int:
    """Count (task, tool) keyword pairs where either contains the other."""
    return sum(1 for t in task_terms for k in tool_terms if k in t or t in k)


class ToolCatalog:
    """Index integration and workflow capabilities; recommend them for tasks."""

    def __init__(self, repo: Repository, config: MemdexConfig) -> None:
        self._repo = repo
        self._config = config
        self._cfg = config.catalog

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def normalize(self, tool: ToolRecord) -> ToolRecord:
        """Fill keywords, domain, priority and content hash for a provider record."""
        keywords = extract_keywords(tool.name, tool.description, tool.parameters, self._config.keywords)
        domain = classify_domain(tool.name, tool.description, keywords, self._cfg.domains)
        priority = (
            self._cfg.integration_priority
            if tool.type is ToolType.INTEGRATION
            else self._cfg.base_priority
        )
        if domain != GENERAL_DOMAIN:
            priority += self._cfg.domain_bonus
        normalized = replace(tool, keywords=keywords, domain=domain, priority=round(priority, 6))
        normalized.content_hash = content_hash(normalized)
        return normalized

    def collect(self) -> list[ToolRecord]:
        """Normalized records from all providers; a later duplicate id wins."""
        raw = load_integrations(self._config.resolve(p) for p in self._cfg.integration_configs)
        raw += load_workflows(self._config.resolve(d) for d in self._cfg.workflow_dirs)
        by_id: dict[str, ToolRecord] = {}
        for tool in raw:
            by_id[tool.id] = self.normalize(tool)
        return list(by_id.values())

    def sync(self) -> SyncStats:
        """Upsert changed records and prune ones no provider reports anymore."""
        stats = SyncStats()
        current = self.collect()

        for tool in current:
            if tool.type is ToolType.INTEGRATION:
                stats.integrations += 1
            else:
                stats.workflows += 1
            stats.domains[tool.domain] = stats.domains.get(tool.domain, 0) + 1

            try:
                stored = self._repo.get_tool(tool.id)
            except CorruptState as exc:
                logger.warning("Stored tool %s is corrupt (%s); rewriting", tool.id, exc)
                stored = None

            if stored is not None and stored.content_hash == tool.content_hash:
                stats.unchanged += 1
                continue
            self._repo.upsert_tool(tool)
            stats.indexed += 1
            logger.debug("Indexed %s [%s]", tool.name, tool.domain)

        live = {t.id for t in current}
        stale = [tid for tid in self._repo.list_tool_ids() if tid not in live]
        stats.removed = self._repo.delete_tools(stale)
        return stats

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def recommend(
        self,
        task: str,
        limit: int | None = None,
        record_usage: bool = True,
    ) -> list[Recommendation]:
        """Rank catalog records for *task* by keyword overlap, priority and usage.

        Args:
            task: Free-text task description.
            limit: Maximum recommendations (defaults to ``catalog.limit``).
            record_usage: Increment ``use_count`` of each returned record.
        """
        limit = limit or self._cfg.limit
        kw = self._config.keywords
        terms = task_keywords(task, kw.stop_words, kw.min_task_length)
        if not terms:
            return []

        query = fts_or_query(terms, self._cfg.query_terms)
        try:
            candidates = self._repo.search_tools_fts(query, limit * 2)
        except QuerySyntaxError as exc:
            logger.debug("Tool FTS query %r rejected (%s); substring fallback", query, exc)
            candidates = []
        if not candidates:
            # Partial words ("check" for "checkout") only match as substrings.
            candidates = self._repo.search_tools_substring(terms, limit * 2)

        ranked: list[Recommendation] = []
        for tool in candidates:
            overlap = keyword_overlap(terms, tool.keywords)
            score = (
                overlap * self._cfg.overlap_weight
                + tool.priority * self._cfg.priority_weight
                + tool.use_count * self._cfg.usage_weight
            )
            confidence = max(0.0, min(1.0, score / self._cfg.confidence_scale))
            ranked.append(Recommendation(tool, score, overlap, confidence))

        ranked.sort(key=lambda r: r.score, reverse=True)
        ranked = ranked[:limit]

        if record_usage and ranked:
            self._repo.record_tool_use(r.tool.id for r in ranked)
        return ranked

    def list_tools(self, tool_type: str | None = None, domain: str | None = None) -> list[ToolRecord]:
        return self._repo.list_tools(tool_type, domain)
