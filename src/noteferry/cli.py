"""Command-line interface for NoteFerry."""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional

import click
import structlog
import uvicorn

from noteferry import __version__
from noteferry.config import Config, find_config_file
from noteferry.container import NoteFerryContainer
from noteferry.errors import ExtractionFailed
from noteferry.extractor.models import ExtractionOptions
from noteferry.observability import configure_logging
from noteferry.output.formatter import OutputFormat, format_output
from noteferry.utils.share_text import extract_share_url

logger = structlog.get_logger(__name__)


def load_config(config_path: Optional[Path]) -> Config:
    path = config_path or find_config_file()
    return Config.from_yaml(path) if path else Config()


def _emit_failure(payload: dict[str, Any]) -> None:
    click.echo(json.dumps(payload, ensure_ascii=False, indent=2), err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", type=click.Path(exists=True), help="Configuration file path")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level (overrides the configuration file)",
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], log_level: Optional[str]) -> None:
    """NoteFerry - save web content to note apps."""
    ctx.ensure_object(dict)
    loaded = load_config(Path(config) if config else None)
    if log_level:
        loaded.monitoring.log_level = log_level
    configure_logging(loaded.monitoring)
    ctx.obj["config"] = loaded
    ctx.obj["config_path"] = Path(config) if config else None


@cli.command()
@click.argument("url")
@click.option(
    "--format",
    "output_format",
    default=OutputFormat.RAW.value,
    type=click.Choice([fmt.value for fmt in OutputFormat]),
    help="Output format",
)
@click.option("--html-file", type=click.Path(exists=True, dir_okay=False), help="Parse this HTML instead of fetching")
@click.option("--ai", "use_ai", is_flag=True, help="Enhance the result with AI")
@click.option("--smart", is_flag=True, help="Use AI first for platforms that benefit from it")
@click.option("--force-browser", is_flag=True, help="Render with the headless browser when available")
@click.option("--timeout-ms", default=10000, show_default=True, help="Per-request timeout in milliseconds")
@click.pass_context
def extract(
    ctx: click.Context,
    url: str,
    output_format: str,
    html_file: Optional[str],
    use_ai: bool,
    smart: bool,
    force_browser: bool,
    timeout_ms: int,
) -> None:
    """Extract one URL (or share text containing one)."""
    share = extract_share_url(url)
    if not share.success or share.url is None:
        _emit_failure({"success": False, "category": "validation", "error": share.error})
        return

    options = ExtractionOptions(
        timeout_ms=timeout_ms,
        preloaded_html=Path(html_file).read_text(encoding="utf-8") if html_file else None,
        force_headless_browser=force_browser,
    )

    async def run_extraction() -> Any:
        container = NoteFerryContainer(ctx.obj["config"], ctx.obj["config_path"])
        async with container.lifecycle():
            orchestrator = container.orchestrator
            if use_ai:
                return await orchestrator.extract_with_ai(share.url, options)
            if smart:
                return await orchestrator.smart_extract(share.url, options)
            return await orchestrator.extract(share.url, options)

    try:
        content = asyncio.run(run_extraction())
    except ExtractionFailed as e:
        _emit_failure({"success": False, **e.to_dict()})
        return

    result = format_output(content, output_format)
    if isinstance(result, str):
        click.echo(result)
    else:
        click.echo(json.dumps(result, ensure_ascii=False, indent=2))


@cli.command()
@click.option("--host", default=None, help="Host to bind to")
@click.option("--port", default=None, type=int, help="Port to bind to")
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int]) -> None:
    """Start the HTTP API."""
    from noteferry.web.main import create_app

    config: Config = ctx.obj["config"]
    host = host or config.server.host
    port = port or config.server.port
    click.echo(f"Starting NoteFerry API at http://{host}:{port}")
    uvicorn.run(create_app(config=config), host=host, port=port, log_level=config.monitoring.log_level.lower())


@cli.command()
@click.pass_context
def env(ctx: click.Context) -> None:
    """Show the detected environment and capabilities."""
    container = NoteFerryContainer(ctx.obj["config"], ctx.obj["config_path"])
    click.echo(json.dumps(container.get_health_status(), indent=2))


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
