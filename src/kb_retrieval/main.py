import asyncio
import logging

from typer import Exit, Option, Typer
from typing import Annotated, Optional
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import SearchSettings, resolve_db_path
from .embeddings import EmbeddingProvider
from .indexing import DocumentValidationError, IngestionPipeline
from .search import SearchOutcome, SemanticSearchEngine
from .storage import DuckDBDocumentStore

app = Typer(help="Search knowledge-base documents semantically, with lexical fallback.")
console = Console()
logger = logging.getLogger(__name__)

_PREVIEW_CHARS = 80


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def build_embedding_provider(settings: SearchSettings | None = None) -> EmbeddingProvider | None:
    settings = settings or SearchSettings.from_env()
    try:
        return EmbeddingProvider(max_chars=settings.max_embedding_chars)
    except ValueError as exc:
        logger.warning("Semantic search disabled: %s", exc)
        return None


async def run_search(
    knowledge_base_id: str,
    query: str,
    *,
    db_path: str | None = None,
    lexical: bool = False,
    timeout: float | None = None,
) -> SearchOutcome:
    store = DuckDBDocumentStore(resolve_db_path(db_path))
    try:
        settings = SearchSettings.from_env()
        provider = None if lexical else build_embedding_provider(settings)
        engine = SemanticSearchEngine(store, provider, settings=settings)
        return await engine.run(
            knowledge_base_id,
            query,
            semantic=not lexical,
            timeout=timeout,
        )
    finally:
        store.close()


def _preview(text: str) -> str:
    flattened = " ".join(text.split())
    if len(flattened) <= _PREVIEW_CHARS:
        return flattened
    return flattened[: _PREVIEW_CHARS - 3] + "..."


def render_outcome(outcome: SearchOutcome) -> None:
    if not outcome.hits:
        console.print(
            f"[bold yellow]No relevant documents found in[/] [bold]{outcome.knowledge_base_id}[/]"
        )
        return

    table = Table(
        title=f"Results for {outcome.query!r}",
        caption=f"strategy: {outcome.strategy}" + (" (cancelled)" if outcome.cancelled else ""),
    )
    table.add_column("#", justify="right")
    table.add_column("Document", style="bold cyan")
    table.add_column("Score", justify="right")
    table.add_column("Preview")
    for rank, hit in enumerate(outcome.hits, start=1):
        score = f"{hit.score:.3f}" if hit.score is not None else "-"
        table.add_row(str(rank), hit.document.name or hit.document.id, score, _preview(hit.document.content))
    console.print(table)


@app.command()
def search(
    kb: Annotated[str, Option("--kb", "-k", help="Knowledge base to search.")],
    query: Annotated[str, Option("--query", "-q", help="Natural-language query.")],
    db_path: Annotated[Optional[str], Option("--db-path", help="DuckDB store path.")] = None,
    lexical: Annotated[bool, Option("--lexical", help="Skip embeddings and search by keyword.")] = False,
    timeout: Annotated[Optional[float], Option("--timeout", help="Seconds before no new embedding calls are made.")] = None,
    verbose: Annotated[bool, Option("--verbose", "-v", help="Log retrieval details.")] = False,
) -> None:
    """Retrieve the documents most relevant to a query."""
    configure_logging(verbose)
    outcome = asyncio.run(
        run_search(kb, query, db_path=db_path, lexical=lexical, timeout=timeout)
    )
    render_outcome(outcome)


@app.command()
def ingest(
    folder: Annotated[str, Option("--folder", "-f", help="Folder of .txt/.md files to ingest.")],
    kb: Annotated[str, Option("--kb", "-k", help="Target knowledge base.")],
    db_path: Annotated[Optional[str], Option("--db-path", help="DuckDB store path.")] = None,
) -> None:
    """Ingest every text file under a folder into a knowledge base."""
    configure_logging()
    store = DuckDBDocumentStore(resolve_db_path(db_path))
    try:
        result = IngestionPipeline(store).ingest_folder(folder, kb)
    except ValueError as exc:
        console.print(f"[bold red]{exc}[/]")
        raise Exit(code=1) from exc
    finally:
        store.close()
    console.print(
        f"[bold green]Ingested {result.ingested_files} files[/] into "
        f"[bold]{result.knowledge_base_id}[/] (skipped {result.skipped_files}, "
        f"{result.total_documents} documents total)"
    )


@app.command()
def add(
    kb: Annotated[str, Option("--kb", "-k", help="Target knowledge base.")],
    name: Annotated[str, Option("--name", "-n", help="Document name.")],
    text: Annotated[str, Option("--text", "-t", help="Document content.")],
    db_path: Annotated[Optional[str], Option("--db-path", help="DuckDB store path.")] = None,
) -> None:
    """Add or replace a single document."""
    configure_logging()
    store = DuckDBDocumentStore(resolve_db_path(db_path))
    try:
        document = IngestionPipeline(store).ingest_text(kb, name, text)
    except DocumentValidationError as exc:
        console.print(f"[bold red]{exc}[/]")
        raise Exit(code=1) from exc
    finally:
        store.close()
    console.print(f"Stored [bold]{document.name}[/] as {document.id}")


@app.command()
def documents(
    kb: Annotated[str, Option("--kb", "-k", help="Knowledge base to list.")],
    db_path: Annotated[Optional[str], Option("--db-path", help="DuckDB store path.")] = None,
) -> None:
    """List the documents stored in a knowledge base."""
    configure_logging()
    store = DuckDBDocumentStore(resolve_db_path(db_path))
    try:
        docs = store.list_documents(kb)
    finally:
        store.close()

    table = Table(title=f"Documents in {kb}")
    table.add_column("Name", style="bold cyan")
    table.add_column("Type")
    table.add_column("Length", justify="right")
    for document in docs:
        table.add_row(document.name, document.type, str(document.content_length))
    console.print(table)


@app.command()
def delete(
    kb: Annotated[str, Option("--kb", "-k", help="Knowledge base holding the document.")],
    name: Annotated[str, Option("--name", "-n", help="Document name.")],
    db_path: Annotated[Optional[str], Option("--db-path", help="DuckDB store path.")] = None,
) -> None:
    """Remove a document from a knowledge base."""
    configure_logging()
    store = DuckDBDocumentStore(resolve_db_path(db_path))
    try:
        doc_id = DuckDBDocumentStore.make_document_id(kb.strip(), name.strip())
        removed = store.delete_document(doc_id=doc_id)
    finally:
        store.close()
    if not removed:
        console.print(f"[bold red]No document named {name!r} in {kb}[/]")
        raise Exit(code=1)
    console.print(f"Deleted [bold]{name}[/] from [bold]{kb}[/]")


@app.command("knowledge-bases")
def knowledge_bases(
    db_path: Annotated[Optional[str], Option("--db-path", help="DuckDB store path.")] = None,
) -> None:
    """List knowledge bases with their document counts."""
    configure_logging()
    store = DuckDBDocumentStore(resolve_db_path(db_path))
    try:
        counts = {kb_id: store.count_documents(kb_id) for kb_id in store.list_knowledge_bases()}
    finally:
        store.close()

    if not counts:
        console.print("[bold yellow]No knowledge bases found[/]")
        return
    table = Table(title="Knowledge bases")
    table.add_column("Knowledge base", style="bold cyan")
    table.add_column("Documents", justify="right")
    for kb_id, count in counts.items():
        table.add_row(kb_id, str(count))
    console.print(table)
