"""
Index commands for relaygate.

Reads the metadata index the pre-receive hook maintains.
"""

import json
from pathlib import Path

import click

from ..cli_utils import handle_errors, load_command_config, parse_filters, resolve_git_dir
from ..exit_codes import UsageError
from ..services.index_query import DEFAULT_PAGE_SIZE, TEXT_KEY, load_index_items, query_index


@click.group('index')
def index_cmd():
    """Metadata index commands."""
    pass


@index_cmd.command('query')
@click.option('--git-dir', help='Git directory holding the index (default: GIT_DIR)')
@click.option('--branch', default=None, help='Branch to list, or "all" (default: configured default branch)')
@click.option('--filter', 'filters', multiple=True, help='Field equality filter key=value (repeatable)')
@click.option('--text', help='Case-insensitive substring search across text fields')
@click.option('--page', type=click.IntRange(min=0), default=0, show_default=True, help='Zero-based page number')
@click.option('--page-size', type=click.IntRange(min=1), default=DEFAULT_PAGE_SIZE, show_default=True,
              help='Entries per page')
@click.option('--pretty', is_flag=True, help='Display as a table instead of JSON')
@click.pass_context
@handle_errors
def query_cmd(ctx, git_dir, branch, filters, text, page, page_size, pretty):
    """Query index entries.

    By default, outputs a single JSON object:
    {"items": [...], "total": N, "page": P, "page_size": S, "branch": B}

    \b
    Examples:
        relaygate index query --branch all
        relaygate index query --filter title=Heat --pretty
        relaygate index query --text noir --page 1 --page-size 10
    """
    git_dir = resolve_git_dir(git_dir)
    if not git_dir:
        raise UsageError("missing required context (GIT_DIR)")

    debug = bool(ctx.obj and ctx.obj.get('debug'))
    config = load_command_config(git_dir, debug=debug)

    conditions = parse_filters(filters)
    if text:
        conditions[TEXT_KEY] = text

    items = load_index_items(Path(git_dir) / config['index']['filename'])
    result = query_index(
        items,
        branch=branch or config['pipeline']['default_branch'],
        filters=conditions,
        page=page,
        page_size=page_size,
    )

    if pretty:
        from ..render import render_index_table
        render_index_table(result)
    else:
        click.echo(json.dumps(result.to_dict(), ensure_ascii=False))
