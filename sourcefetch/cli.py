"""Command-line interface for the source fetcher."""

import asyncio
import json
from typing import Annotated

import typer
import yaml

from .config.factory import create_fetcher
from .config.loader import DEFAULT_CONFIG_PATH, load_config
from .providers.registry import PROVIDER_CLASSES, ProviderName
from .sources.errors import InvalidQueryError
from .sources.fetcher import SourceFetcher
from .sources.models import (
    CanonicalSource,
    ProgressEvent,
    ResultsEvent,
    SearchFilters,
    SearchQuery,
    SearchType,
    StartEvent,
)

app = typer.Typer(
    name="sourcefetch",
    help="Search scholarly metadata providers and merge the results.",
    add_completion=False,
)

SourcesOption = Annotated[
    list[str],
    typer.Option("--source", "-s", help="Providers to use (can specify multiple)"),
]
ProfileOption = Annotated[
    str,
    typer.Option("--profile", "-p", help="Config profile (default: $SOURCEFETCH_PROFILE or 'default')"),
]
FormatOption = Annotated[
    str,
    typer.Option("--format", "-f", help="Output format: text or json"),
]


def build_fetcher(profile: str | None, sources: list[str] | None) -> SourceFetcher:
    """Build a fetcher from a profile, optionally restricted to some providers."""
    config = load_config(profile)
    if sources:
        providers = [ProviderName(s.lower()) for s in sources]
        config = config.model_copy(
            update={"fetcher": config.fetcher.model_copy(update={"providers": providers})}
        )
    return create_fetcher(config)


def _validate_sources(sources: list[str] | None) -> None:
    valid = {p.value for p in ProviderName}
    for s in sources or []:
        if s.lower() not in valid:
            typer.echo(f"Error: Invalid source '{s}'. Must be one of: {', '.join(sorted(valid))}", err=True)
            raise typer.Exit(1)


def _validate_format(output_format: str) -> None:
    if output_format not in ("text", "json"):
        typer.echo("Error: Format must be one of: text, json", err=True)
        raise typer.Exit(1)


def _print_source(index: int, source: CanonicalSource) -> None:
    typer.echo(f"{index}. [{source.source_api}] {source.title}")
    typer.echo(f"   Year: {source.year or 'N/A'} | Type: {source.source_type.value} | Citations: {source.citation_count or 'N/A'}")
    if source.authors:
        names = [a.full_name or a.last_name or "Unknown" for a in source.authors]
        authors = ", ".join(names[:3])
        if len(names) > 3:
            authors += f" (+{len(names) - 3} more)"
        typer.echo(f"   Authors: {authors}")
    if source.doi:
        typer.echo(f"   DOI: {source.doi}")
    typer.echo()


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Search text (or a DOI with --type doi)")],
    search_type: Annotated[
        SearchType,
        typer.Option("--type", "-t", help="How to interpret the query"),
    ] = SearchType.KEYWORD,
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", min=1, max=100, help="Maximum number of results"),
    ] = 10,
    sources: SourcesOption = None,
    year_from: Annotated[
        int,
        typer.Option("--year-from", help="Only sources published in or after this year"),
    ] = None,
    year_to: Annotated[
        int,
        typer.Option("--year-to", help="Only sources published in or before this year"),
    ] = None,
    open_access: Annotated[
        bool,
        typer.Option("--open-access", help="Only open access sources"),
    ] = False,
    profile: ProfileOption = None,
    output_format: FormatOption = "text",
):
    """
    Search all configured providers and print merged results.

    Examples:

        sourcefetch search "attention is all you need" --type title

        sourcefetch search "machine learning" -s openalex -s crossref --year-from 2020

        sourcefetch search "Vaswani" --type author --format json
    """
    _validate_sources(sources)
    _validate_format(output_format)

    filters = None
    if year_from is not None or year_to is not None or open_access:
        filters = SearchFilters(year_from=year_from, year_to=year_to, open_access_only=open_access)

    search_query = SearchQuery(query=query, type=search_type, limit=limit, filters=filters)
    asyncio.run(_search_async(search_query, sources, profile, output_format))


async def _search_async(
    query: SearchQuery,
    sources: list[str] | None,
    profile: str | None,
    output_format: str,
):
    """Async implementation of search."""
    fetcher = build_fetcher(profile, sources)
    try:
        async with fetcher:
            result = await fetcher.search(query)
    except InvalidQueryError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if output_format == "json":
        typer.echo(json.dumps(result.model_dump(mode="json", by_alias=True), indent=2))
        return

    if not result.sources:
        typer.echo("No sources found.")
        return

    typer.echo(
        f"Found {result.total_found} sources from {result.providers_succeeded}/"
        f"{len(result.providers)} providers in {result.search_time_ms}ms:\n"
    )
    for i, source in enumerate(result.sources, 1):
        _print_source(i, source)


@app.command()
def stream(
    query: Annotated[str, typer.Argument(help="Search text")],
    search_type: Annotated[
        SearchType,
        typer.Option("--type", "-t", help="How to interpret the query"),
    ] = SearchType.KEYWORD,
    sources: SourcesOption = None,
    profile: ProfileOption = None,
    output_format: FormatOption = "text",
):
    """
    Query providers one at a time, printing results as each responds.

    With --format json, prints one event per line.
    """
    _validate_sources(sources)
    _validate_format(output_format)
    asyncio.run(_stream_async(SearchQuery(query=query, type=search_type), sources, profile, output_format))


async def _stream_async(
    query: SearchQuery,
    sources: list[str] | None,
    profile: str | None,
    output_format: str,
):
    """Async implementation of stream."""
    fetcher = build_fetcher(profile, sources)
    count = 0
    try:
        async with fetcher:
            async for event in fetcher.stream(query):
                if output_format == "json":
                    typer.echo(json.dumps(event.model_dump(mode="json", by_alias=True)))
                elif isinstance(event, StartEvent):
                    typer.echo(f"Querying {event.total_providers} providers...\n")
                elif isinstance(event, ProgressEvent):
                    typer.echo(f"[{event.current}/{event.total}] {event.provider}")
                elif isinstance(event, ResultsEvent):
                    typer.echo(f"   {len(event.sources)} new sources\n")
                    for source in event.sources:
                        count += 1
                        _print_source(count, source)
    except InvalidQueryError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if output_format == "text":
        typer.echo(f"Done: {count} unique sources.")


@app.command()
def resolve(
    identifier: Annotated[str, typer.Argument(help="DOI, with or without https://doi.org/")],
    profile: ProfileOption = None,
    output_format: FormatOption = "text",
):
    """
    Resolve a DOI to a single source.

    Examples:

        sourcefetch resolve 10.48550/arXiv.1706.03762
    """
    _validate_format(output_format)
    asyncio.run(_resolve_async(identifier, profile, output_format))


async def _resolve_async(identifier: str, profile: str | None, output_format: str):
    """Async implementation of resolve."""
    fetcher = build_fetcher(profile, None)
    try:
        async with fetcher:
            source = await fetcher.resolve(identifier)
    except InvalidQueryError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if source is None:
        typer.echo(f"No source found for {identifier}", err=True)
        raise typer.Exit(1)

    if output_format == "json":
        typer.echo(json.dumps(source.model_dump(mode="json", by_alias=True), indent=2))
    else:
        _print_source(1, source)


@app.command()
def providers(profile: ProfileOption = None):
    """List supported providers and whether the profile enables them."""
    config = load_config(profile)
    enabled = set(config.fetcher.providers)

    typer.echo("Providers:\n")
    for name, adapter_class in PROVIDER_CLASSES.items():
        marker = "*" if name in enabled else " "
        keyed = " (key configured)" if config.fetcher.api_keys.get(name) else ""
        typer.echo(f"  {marker} {name.value:<16} {adapter_class.label}{keyed}")
    typer.echo("\n  * enabled in this profile")


@app.command()
def profiles():
    """List available configuration profiles."""
    with open(DEFAULT_CONFIG_PATH) as f:
        data = yaml.safe_load(f)

    typer.echo("Available profiles:\n")
    for name, profile in data.get("profiles", {}).items():
        fetcher = (profile or {}).get("fetcher") or {}
        providers = fetcher.get("providers") or [p.value for p in ProviderName]

        typer.echo(f"  {name}")
        typer.echo(f"    Providers: {', '.join(providers)}")
        typer.echo()


@app.command()
def serve(
    host: Annotated[str, typer.Option("--host", help="Bind address")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", help="Bind port")] = 8000,
    profile: ProfileOption = None,
):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from .api import create_app

    uvicorn.run(create_app(profile=profile), host=host, port=port)


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
