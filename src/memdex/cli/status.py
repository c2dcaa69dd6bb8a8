"""memdex status: store statistics."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from rich.console import Console
from rich.panel import Panel

from memdex.cli.common import BaseDirOption, DbOption, open_for_read
from memdex.cli.errors import err_database
from memdex.db.repository import Repository
from memdex.db.schema import schema_version

console = Console()


def status_cmd(
    base_dir: BaseDirOption = Path("."),
    db: DbOption = None,
) -> None:
    """Show index, catalog and curated-doc statistics."""
    conn, cfg = open_for_read(console, base_dir, db)
    if conn is None:
        return
    try:
        repo = Repository(conn)
        counts = repo.counts()
        types = repo.file_type_counts()
        domains = repo.tool_domain_counts()
        doc_tokens = sum(doc.token_count for doc in repo.list_docs())
        version = schema_version(conn)
    except sqlite3.Error as exc:
        console.print(err_database(str(exc)))
        return
    finally:
        conn.close()

    size_mb = cfg.db_path.stat().st_size / (1024 * 1024)
    lines = [
        f"Database:  {cfg.db_path} ({size_mb:.1f} MB, schema v{version})",
        f"Files: [bold]{counts['files']}[/]  |  Chunks: [bold]{counts['chunks']:,}[/]",
    ]
    if types:
        lines.append("  " + ", ".join(f"{t}: {n}" for t, n in types.items()))
    console.print(Panel("\n".join(lines), title="[bold]Memory Index[/]", expand=False))

    catalog = [
        f"Tools: [bold]{counts['tools']}[/]  |  "
        f"Curated docs: [bold]{counts['docs']}[/] (~{doc_tokens:,} tokens)"
    ]
    if domains:
        catalog.append("  " + ", ".join(f"{d}: {n}" for d, n in domains.items()))
    console.print(Panel("\n".join(catalog), title="[bold]Catalog[/]", expand=False))
