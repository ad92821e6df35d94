"""Waymark CLI - Main Entry Point.

The `waymark` command inspects and serves Waymark applications.

Commands:
    routes   - Print the compiled route table
    serve    - Run the app with uvicorn
    version  - Show version information
"""

from __future__ import annotations

import importlib
import logging
import os
import sys
from typing import Any

import click

from . import __version__


def load_app(target: str) -> Any:
    """
    Import ``module:attribute`` and return the attribute.

    Raises:
        click.BadParameter: On a malformed target or a missing module/attribute
    """
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise click.BadParameter(f"expected 'module:attribute', got {target!r}", param_hint="APP")

    if os.getcwd() not in sys.path:
        sys.path.insert(0, os.getcwd())

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"cannot import {module_name!r}: {e}", param_hint="APP") from e

    try:
        return getattr(module, attr)
    except AttributeError:
        raise click.BadParameter(f"{module_name!r} has no attribute {attr!r}", param_hint="APP") from None


@click.group()
@click.version_option(version=__version__, prog_name="waymark")
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.pass_context
def cli(ctx, verbose: bool):
    """Waymark - decorator-driven controllers for ASGI."""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        )


@cli.command('routes')
@click.argument('app')
@click.pass_context
def routes_cmd(ctx, app: str):
    """Print the route table of APP (module:attribute)."""
    application = load_app(app)
    table = application.routes()

    if not table:
        click.echo("No routes registered.")
        return

    method_width = max(len(r["method"]) for r in table)
    path_width = max(len(r["path"]) for r in table)
    for route in table:
        line = f"{route['method'].ljust(method_width)}  {route['path'].ljust(path_width)}  {route['name'] or '-'}"
        if route["middleware"]:
            line += f"  [{', '.join(route['middleware'])}]"
        click.echo(line.rstrip())


@cli.command('serve')
@click.argument('app')
@click.option('--host', default=None, help='Bind address (default: from config)')
@click.option('--port', type=int, default=None, help='Bind port (default: from config)')
@click.option('--reload', is_flag=True, help='Restart on code changes')
@click.option('--log-level', default=None, help='Log level (default: from config)')
def serve_cmd(app: str, host: str, port: int, reload: bool, log_level: str):
    """Serve APP (module:attribute) with uvicorn."""
    import uvicorn

    application = load_app(app)
    config = getattr(application, "config", None)
    host = host or getattr(config, "host", "127.0.0.1")
    port = port or getattr(config, "port", 8000)
    level = (log_level or getattr(config, "log_level", "INFO")).upper()

    logging.basicConfig(
        level=getattr(logging, level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )
    click.echo(f"Serving {app} on http://{host}:{port}")
    # reload needs the import string so uvicorn can re-import the app
    uvicorn.run(app if reload else application, host=host, port=port, reload=reload, log_level=level.lower())


@cli.command('version')
def version_cmd():
    """Show version information."""
    click.echo(f"waymark {__version__}")


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
