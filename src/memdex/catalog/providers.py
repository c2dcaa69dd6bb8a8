"""Capability providers: integration configs (JSON) and workflow documents (markdown).

Both shapes are normalised into bare ToolRecord instances; keywords, domain,
priority and content hash are filled in by ToolCatalog.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import yaml

from memdex.db.models import ToolRecord, ToolType

logger = logging.getLogger(__name__)

_DESCRIPTION_LINES = 3
_DESCRIPTION_CHARS = 500
_MAX_EXAMPLES = 5
_EXAMPLES_RE = re.compile(r"^## Examples?\s*$", re.IGNORECASE)


# ------------------------------------------------------------------
# Integrations
# ------------------------------------------------------------------


def load_integrations(paths: Iterable[Path]) -> list[ToolRecord]:
    """Read integration servers from JSON config files that exist.

    Servers live under ``mcpServers`` (or ``mcp``). A server listing ``tools``
    yields one record per tool; otherwise it yields a single record.
    Unparsable files are skipped with a warning.
    """
    records: list[ToolRecord] = []
    for path in paths:
        if not path.is_file():
            continue
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("Skipping integration config %s: %s", path, exc)
            continue
        if not isinstance(data, dict):
            logger.warning("Skipping integration config %s: top level is not an object", path)
            continue
        servers = data.get("mcpServers") or data.get("mcp") or {}
        if not isinstance(servers, dict):
            logger.warning("Skipping integration config %s: servers must be an object", path)
            continue
        for name, server in servers.items():
            records.extend(_server_records(str(name), server, path))
    return records


def _server_records(name: str, server: Any, source: Path) -> list[ToolRecord]:
    server = server if isinstance(server, dict) else {}
    tools = server.get("tools") or []
    if not isinstance(tools, list) or not tools:
        return [
            ToolRecord(
                id=f"integration:{name}",
                name=name,
                type=ToolType.INTEGRATION,
                source=str(source),
                description=str(server.get("description") or f"{name} integration server"),
            )
        ]

    records: list[ToolRecord] = []
    for tool in tools:
        if not isinstance(tool, dict) or not tool.get("name"):
            logger.warning("Skipping unnamed tool in server '%s' (%s)", name, source)
            continue
        params = tool.get("inputSchema") or tool.get("parameters") or {}
        records.append(
            ToolRecord(
                id=f"integration:{name}:{tool['name']}",
                name=f"{name}__{tool['name']}",
                type=ToolType.INTEGRATION,
                source=str(source),
                description=str(tool.get("description") or ""),
                parameters=params if isinstance(params, dict) else {},
            )
        )
    return records


# ------------------------------------------------------------------
# Workflows
# ------------------------------------------------------------------


def load_workflows(directories: Iterable[Path]) -> list[ToolRecord]:
    """Parse ``*.md`` workflow documents in each existing directory."""
    records: list[ToolRecord] = []
    for directory in directories:
        if not directory.is_dir():
            continue
        for path in sorted(directory.glob("*.md")):
            try:
                records.append(parse_workflow(path))
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Skipping workflow %s: %s", path, exc)
    return records


def parse_workflow(path: Path) -> ToolRecord:
    """Build a workflow record from a markdown document.

    The description is the frontmatter ``description:`` field, falling back to
    the first prose lines before the first ``## `` section.
    """
    content = path.read_text(encoding="utf-8")
    frontmatter, body = split_frontmatter(content, path)

    description = frontmatter.get("description")
    if not isinstance(description, str) or not description.strip():
        description = _prose_description(body)

    return ToolRecord(
        id=f"workflow:{path.stem}",
        name=path.stem,
        type=ToolType.WORKFLOW,
        source=str(path),
        description=description.strip(),
        examples=_examples(body),
    )


def split_frontmatter(content: str, path: Path | None = None) -> tuple[dict[str, Any], str]:
    """Return ``(frontmatter, body)``; invalid YAML yields an empty mapping."""
    lines = content.splitlines()
    if not lines or lines[0].strip() != "---":
        return {}, content
    for i, line in enumerate(lines[1:], start=1):
        if line.strip() == "---":
            raw = "\n".join(lines[1:i])
            body = "\n".join(lines[i + 1 :])
            try:
                data = yaml.safe_load(raw) or {}
            except yaml.YAMLError as exc:
                logger.warning("Ignoring invalid frontmatter in %s: %s", path or "<string>", exc)
                return {}, body
            return (data if isinstance(data, dict) else {}), body
    return {}, content


def _prose_description(body: str) -> str:
    prose: list[str] = []
    for line in body.splitlines():
        if line.startswith("## "):
            break
        if line.startswith("# ") or not line.strip():
            continue
        prose.append(line.strip())
        if len(prose) >= _DESCRIPTION_LINES:
            break
    return " ".join(prose)[:_DESCRIPTION_CHARS]


def _examples(body: str) -> list[str]:
    examples: list[str] = []
    inside = False
    for line in body.splitlines():
        if _EXAMPLES_RE.match(line):
            inside = True
            continue
        if not inside:
            continue
        if line.startswith("## ") or line.strip() == "---":
            break
        if line.strip():
            examples.append(line.strip())
            if len(examples) >= _MAX_EXAMPLES:
                break
    return examples
