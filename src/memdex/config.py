"""memdex configuration loader.

Priority (high → low):
  1. CLI flags such as --db and --base-dir (applied by the commands)
  2. Environment variables  (MEMDEX_DB, MEMDEX_DATA_DIR)
  3. Per-project memdex.yaml  (in the base directory)
  4. Global ~/.memdex/config.yaml
  5. Hardcoded defaults

The resulting MemdexConfig is built once per command and passed explicitly
into every component; nothing reads the working directory implicitly.
YAML is always parsed with yaml.safe_load().
"""

from __future__ import annotations

import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".memdex"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "memdex.yaml"

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["paths", "chunking", "index", "search", "sessions", "keywords", "catalog", "docs"]
)

DEFAULT_STOP_WORDS: frozenset[str] = frozenset(
    [
        "the", "a", "an", "is", "are", "was", "were", "be", "been", "being",
        "have", "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "must", "shall", "can", "need", "dare",
        "ought", "used", "to", "of", "in", "for", "on", "with", "at", "by",
        "from", "as", "into", "through", "during", "before", "after", "above",
        "below", "between", "under", "again", "further", "then", "once",
        "and", "but", "or", "nor", "so", "yet", "both", "either", "neither",
        "not", "only", "own", "same", "than", "too", "very", "just",
        "this", "that", "these", "those", "such", "when", "where", "why", "how",
    ]
)

# Ordered: on equal hit counts the earlier domain wins.
DEFAULT_DOMAINS: dict[str, list[str]] = {
    "payment": ["stripe", "payment", "checkout", "invoice", "subscription", "refund", "charge", "price", "coupon", "billing"],
    "voice": ["vapi", "call", "phone", "assistant", "voice", "transcribe", "speech", "audio", "twilio"],
    "deployment": ["vercel", "deploy", "build", "preview", "domain", "hosting", "production", "staging"],
    "database": ["supabase", "postgres", "sql", "query", "table", "schema", "migration", "rls"],
    "automation": ["n8n", "workflow", "automation", "trigger", "webhook", "integration"],
    "testing": ["playwright", "test", "browser", "screenshot", "e2e", "automation", "selenium"],
    "email": ["email", "smtp", "sendgrid", "resend", "notification", "template"],
    "ai": ["openai", "anthropic", "claude", "gpt", "llm", "embedding", "vector", "rag"],
    "git": ["git", "commit", "branch", "merge", "pr", "pull", "push", "worktree"],
    "file": ["file", "read", "write", "edit", "directory", "path", "glob", "grep"],
    "session": ["session", "startup", "completion", "handoff", "progress", "memory"],
    "quality": ["review", "audit", "test", "verify", "validate", "lint", "security"],
    "design": ["frontend", "ui", "ux", "component", "design", "style", "layout", "css"],
    "planning": ["plan", "brainstorm", "spec", "requirement", "architecture", "strategy"],
}

DEFAULT_PHRASES: list[str] = ["phone number", "api key", "webhook url", "access token"]

DEFAULT_VERB_PREFIXES: list[str] = ["get", "set", "list", "create", "delete", "update"]


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class PathsCfg:
    """Storage locations, relative to the base directory (memdex.yaml: paths:)."""

    data_dir: str = ".memdex"
    db: str = ".memdex/memory.db"
    docs: str = ".memdex/docs.yaml"


@dataclass
class ChunkingCfg:
    """Chunk budget in characters (4 chars ≈ 1 token)."""

    chunk_chars: int = 1_600
    overlap_chars: int = 320


@dataclass
class FileRule:
    """Classify files whose relative path matches *pattern* (PurePath.match)."""

    pattern: str
    file_type: str
    priority: float = 0.5


def _default_rules() -> list[FileRule]:
    return [
        FileRule("CLAUDE.md", "instructions", 1.0),
        FileRule("SOUL.md", "soul", 0.95),
        FileRule("MEMORY.md", "memory", 0.9),
        FileRule("patterns/*.md", "pattern", 0.85),
        FileRule("memory/*.md", "daily_log", 0.8),
        FileRule("README.md", "readme", 0.75),
        FileRule("docs/*.md", "documentation", 0.6),
    ]


@dataclass
class IndexCfg:
    """Corpus discovery and file classification (memdex.yaml: index:)."""

    exclude_dirs: list[str] = field(
        default_factory=lambda: [
            "node_modules", ".git", "dist", "build", ".next", ".vercel",
            "coverage", ".turbo", "__pycache__", "venv", ".venv",
        ]
    )
    rules: list[FileRule] = field(default_factory=_default_rules)
    default_type: str = "other"
    default_priority: float = 0.5
    log_types: list[str] = field(default_factory=lambda: ["daily_log"])


@dataclass
class SearchCfg:
    """Hybrid search weights (memdex.yaml: search:)."""

    limit: int = 5
    fts_weight: float = 0.7
    substring_weight: float = 0.3
    substring_placeholder: float = -1.0
    overlap_boost: float = 1.2
    context_terms: int = 5
    context_min_length: int = 4


@dataclass
class SessionsCfg:
    """Dated-log session boundaries and summary sections (memdex.yaml: sessions:)."""

    header_prefix: str = "## Session:"
    log_dir: str = "memory"
    summary_sections: list[str] = field(
        default_factory=lambda: [
            "Tasks Completed",
            "Goal",
            "Key Decisions Made",
            "Insights Discovered",
            "Key Insight",
            "Implementation",
            "Self-Assessment",
            "Verdict",
        ]
    )
    meta_prefixes: list[str] = field(
        default_factory=lambda: ["**Started:", "**Mode:", "**Status:"]
    )


@dataclass
class KeywordsCfg:
    """Tokenisation data shared by catalog, docs and context search."""

    stop_words: frozenset[str] = DEFAULT_STOP_WORDS
    phrases: list[str] = field(default_factory=lambda: list(DEFAULT_PHRASES))
    verb_prefixes: list[str] = field(default_factory=lambda: list(DEFAULT_VERB_PREFIXES))
    min_task_length: int = 3


@dataclass
class CatalogCfg:
    """Tool catalog providers, domains and ranking weights (memdex.yaml: catalog:)."""

    integration_configs: list[str] = field(
        default_factory=lambda: ["~/.claude.json", ".mcp.json", ".claude/mcp.json"]
    )
    workflow_dirs: list[str] = field(
        default_factory=lambda: [".claude/skills", "~/.claude/skills"]
    )
    domains: dict[str, list[str]] = field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_DOMAINS.items()}
    )
    base_priority: float = 0.5
    integration_priority: float = 0.7
    domain_bonus: float = 0.1
    overlap_weight: float = 0.3
    priority_weight: float = 0.4
    usage_weight: float = 0.1
    confidence_scale: float = 3.0
    query_terms: int = 8
    limit: int = 5


@dataclass
class DocsCfg:
    """Curated documentation retrieval (memdex.yaml: docs:)."""

    query_terms: int = 6
    limit: int = 3


@dataclass
class MemdexConfig:
    """Everything memdex reads from YAML and the environment, in one object."""

    base_dir: Path = field(default_factory=lambda: Path("."))
    paths: PathsCfg = field(default_factory=PathsCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    index: IndexCfg = field(default_factory=IndexCfg)
    search: SearchCfg = field(default_factory=SearchCfg)
    sessions: SessionsCfg = field(default_factory=SessionsCfg)
    keywords: KeywordsCfg = field(default_factory=KeywordsCfg)
    catalog: CatalogCfg = field(default_factory=CatalogCfg)
    docs: DocsCfg = field(default_factory=DocsCfg)

    def resolve(self, path: str | Path) -> Path:
        """Expand ``~`` and anchor relative paths at ``base_dir``."""
        p = Path(path).expanduser()
        return p if p.is_absolute() else self.base_dir / p

    @property
    def db_path(self) -> Path:
        return self.resolve(self.paths.db)

    @property
    def docs_path(self) -> Path:
        return self.resolve(self.paths.docs)

    @property
    def log_dir(self) -> Path:
        return self.resolve(self.sessions.log_dir)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Warn (without failing) about top-level sections memdex does not know."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: MemdexConfig) -> None:
    """Raise ConfigError for values the components cannot work with."""
    ch = cfg.chunking
    if ch.chunk_chars < 1:
        raise ConfigError("chunking.chunk_chars must be >= 1")
    if not 0 <= ch.overlap_chars < ch.chunk_chars:
        raise ConfigError(
            f"chunking.overlap_chars must be in [0, chunk_chars): "
            f"got {ch.overlap_chars} with chunk_chars={ch.chunk_chars}"
        )

    weights = {
        "search.fts_weight": cfg.search.fts_weight,
        "search.substring_weight": cfg.search.substring_weight,
        "search.overlap_boost": cfg.search.overlap_boost,
        "catalog.overlap_weight": cfg.catalog.overlap_weight,
        "catalog.priority_weight": cfg.catalog.priority_weight,
        "catalog.usage_weight": cfg.catalog.usage_weight,
    }
    for name, value in weights.items():
        if value < 0:
            raise ConfigError(f"{name} must be >= 0, got {value}")
    if cfg.catalog.confidence_scale <= 0:
        raise ConfigError("catalog.confidence_scale must be > 0")

    limits = {
        "search.limit": cfg.search.limit,
        "search.context_terms": cfg.search.context_terms,
        "catalog.limit": cfg.catalog.limit,
        "catalog.query_terms": cfg.catalog.query_terms,
        "docs.limit": cfg.docs.limit,
        "docs.query_terms": cfg.docs.query_terms,
    }
    for name, value in limits.items():
        if value < 1:
            raise ConfigError(f"{name} must be >= 1, got {value}")
    if not cfg.sessions.header_prefix.strip():
        raise ConfigError("sessions.header_prefix must not be empty")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge *override* into a copy of *base*, recursing into nested dicts."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _str_list(raw: Any, default: list[str]) -> list[str]:
    if raw is None:
        return list(default)
    if not isinstance(raw, list):
        raise ConfigError(f"Expected a list, got {type(raw).__name__}: {raw!r}")
    return [str(x) for x in raw]


def _parse_rules(raw: Any) -> list[FileRule]:
    if not isinstance(raw, list):
        raise ConfigError("index.rules must be a list of {pattern, file_type, priority}")
    rules: list[FileRule] = []
    for r in raw:
        if not isinstance(r, dict) or "pattern" not in r or "file_type" not in r:
            raise ConfigError(f"Invalid index rule: {r!r} (needs pattern and file_type)")
        rules.append(
            FileRule(
                pattern=str(r["pattern"]),
                file_type=str(r["file_type"]),
                priority=float(r.get("priority", 0.5)),
            )
        )
    return rules


def _parse_domains(raw: Any) -> dict[str, list[str]]:
    if not isinstance(raw, dict):
        raise ConfigError("catalog.domains must be a mapping of domain → trigger list")
    return {str(k): [str(t).lower() for t in (v or [])] for k, v in raw.items()}


def _cfg_from_dict(data: dict[str, Any], base_dir: Path) -> MemdexConfig:
    """Build a *MemdexConfig* from a merged raw YAML dict."""
    cfg = MemdexConfig(base_dir=base_dir)

    if "paths" in data:
        p = data["paths"] or {}
        cfg.paths = PathsCfg(
            data_dir=str(p.get("data_dir", cfg.paths.data_dir)),
            db=str(p.get("db", cfg.paths.db)),
            docs=str(p.get("docs", cfg.paths.docs)),
        )

    if "chunking" in data:
        c = data["chunking"] or {}
        cfg.chunking = ChunkingCfg(
            chunk_chars=int(c.get("chunk_chars", cfg.chunking.chunk_chars)),
            overlap_chars=int(c.get("overlap_chars", cfg.chunking.overlap_chars)),
        )

    if "index" in data:
        i = data["index"] or {}
        cfg.index = IndexCfg(
            exclude_dirs=_str_list(i.get("exclude_dirs"), cfg.index.exclude_dirs),
            rules=_parse_rules(i["rules"]) if "rules" in i else cfg.index.rules,
            default_type=str(i.get("default_type", cfg.index.default_type)),
            default_priority=float(i.get("default_priority", cfg.index.default_priority)),
            log_types=_str_list(i.get("log_types"), cfg.index.log_types),
        )

    if "search" in data:
        s = data["search"] or {}
        d = cfg.search
        cfg.search = SearchCfg(
            limit=int(s.get("limit", d.limit)),
            fts_weight=float(s.get("fts_weight", d.fts_weight)),
            substring_weight=float(s.get("substring_weight", d.substring_weight)),
            substring_placeholder=float(s.get("substring_placeholder", d.substring_placeholder)),
            overlap_boost=float(s.get("overlap_boost", d.overlap_boost)),
            context_terms=int(s.get("context_terms", d.context_terms)),
            context_min_length=int(s.get("context_min_length", d.context_min_length)),
        )

    if "sessions" in data:
        se = data["sessions"] or {}
        cfg.sessions = SessionsCfg(
            header_prefix=str(se.get("header_prefix", cfg.sessions.header_prefix)),
            log_dir=str(se.get("log_dir", cfg.sessions.log_dir)),
            summary_sections=_str_list(se.get("summary_sections"), cfg.sessions.summary_sections),
            meta_prefixes=_str_list(se.get("meta_prefixes"), cfg.sessions.meta_prefixes),
        )

    if "keywords" in data:
        k = data["keywords"] or {}
        stop_words = k.get("stop_words")
        cfg.keywords = KeywordsCfg(
            stop_words=(
                frozenset(w.lower() for w in _str_list(stop_words, []))
                if stop_words is not None
                else cfg.keywords.stop_words
            ),
            phrases=[p.lower() for p in _str_list(k.get("phrases"), cfg.keywords.phrases)],
            verb_prefixes=[v.lower() for v in _str_list(k.get("verb_prefixes"), cfg.keywords.verb_prefixes)],
            min_task_length=int(k.get("min_task_length", cfg.keywords.min_task_length)),
        )

    if "catalog" in data:
        ca = data["catalog"] or {}
        d = cfg.catalog
        cfg.catalog = CatalogCfg(
            integration_configs=_str_list(ca.get("integration_configs"), d.integration_configs),
            workflow_dirs=_str_list(ca.get("workflow_dirs"), d.workflow_dirs),
            domains=_parse_domains(ca["domains"]) if "domains" in ca else d.domains,
            base_priority=float(ca.get("base_priority", d.base_priority)),
            integration_priority=float(ca.get("integration_priority", d.integration_priority)),
            domain_bonus=float(ca.get("domain_bonus", d.domain_bonus)),
            overlap_weight=float(ca.get("overlap_weight", d.overlap_weight)),
            priority_weight=float(ca.get("priority_weight", d.priority_weight)),
            usage_weight=float(ca.get("usage_weight", d.usage_weight)),
            confidence_scale=float(ca.get("confidence_scale", d.confidence_scale)),
            query_terms=int(ca.get("query_terms", d.query_terms)),
            limit=int(ca.get("limit", d.limit)),
        )

    if "docs" in data:
        do = data["docs"] or {}
        cfg.docs = DocsCfg(
            query_terms=int(do.get("query_terms", cfg.docs.query_terms)),
            limit=int(do.get("limit", cfg.docs.limit)),
        )

    return cfg


def _apply_env_overrides(cfg: MemdexConfig) -> MemdexConfig:
    """Apply MEMDEX_* environment variable overrides (layer 2)."""
    if db := os.environ.get("MEMDEX_DB"):
        cfg.paths.db = db
    if data_dir := os.environ.get("MEMDEX_DATA_DIR"):
        cfg.paths.data_dir = data_dir
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> MemdexConfig:
    """Load and return a merged *MemdexConfig*.

    The global file is read first, then memdex.yaml, then MEMDEX_* env vars.
    Command-line flags are layered on top by the caller.

    Args:
        project_dir: Base directory of the corpus; *memdex.yaml* is read from
            here and relative paths resolve against it. Defaults to CWD.
        global_config_path: Alternate global config file; tests point it at tmp_path.

    Returns:
        Fully merged and validated *MemdexConfig*.

    Raises:
        ConfigError: If a value is malformed or out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    base_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = base_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    try:
        cfg = _cfg_from_dict(merged, base_dir)
    except ConfigError:
        raise
    except (TypeError, ValueError, AttributeError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    cfg = _apply_env_overrides(cfg)
    _validate(cfg)
    return cfg
