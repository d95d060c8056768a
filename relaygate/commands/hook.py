"""
Hook commands for relaygate.

``relaygate pre-commit`` and ``relaygate pre-receive`` run the commit gate
for one invocation. The context comes from the environment (GIT_DIR,
OLD_COMMIT, NEW_COMMIT, BRANCH), optionally a JSON context document, and
command-line overrides, in increasing order of precedence.
"""

import json
import os
import sys

import click

from ..cli_utils import handle_errors, load_command_config, read_context_document, resolve_git_dir
from ..domain.context import HookKind, InvocationContext
from ..services.pipeline import PipelineOrchestrator


def hook_options(func):
    """Options shared by both hook commands."""
    options = [
        click.option('--context', 'context_file', type=click.File('r'),
                     help='JSON context document (use - for stdin)'),
        click.option('--git-dir', help='Git directory (overrides GIT_DIR)'),
        click.option('--old', 'old_rev', help='Previous revision (overrides OLD_COMMIT)'),
        click.option('--new', 'new_rev', help='Proposed revision (overrides NEW_COMMIT)'),
        click.option('--branch', help='Branch name (overrides BRANCH)'),
        click.option('--json', 'as_json', is_flag=True, help='Print the result as JSON on stdout'),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def run_hook(kind, ctx, context_file, git_dir, old_rev, new_rev, branch, as_json):
    document = read_context_document(context_file)
    debug = bool(ctx.obj and ctx.obj.get('debug'))
    config = load_command_config(resolve_git_dir(git_dir, document), debug=debug)

    context = InvocationContext.from_sources(
        os.environ,
        document,
        default_branch=config['pipeline']['default_branch'],
        git_dir=git_dir,
        old_rev=old_rev,
        new_rev=new_rev,
        branch=branch,
    )

    result = PipelineOrchestrator(config).run(context, kind)

    if as_json:
        click.echo(json.dumps(result.to_dict(), ensure_ascii=False))
    elif result.accepted:
        click.echo(result.message)
    else:
        click.echo(result.message, err=True)
    sys.exit(result.exit_code)


@click.command('pre-commit')
@hook_options
@click.pass_context
@handle_errors
def pre_commit_cmd(ctx, context_file, git_dir, old_rev, new_rev, branch, as_json):
    """Validate a local commit. Failures are final."""
    run_hook(HookKind.PRE_COMMIT, ctx, context_file, git_dir, old_rev, new_rev, branch, as_json)


@click.command('pre-receive')
@hook_options
@click.pass_context
@handle_errors
def pre_receive_cmd(ctx, context_file, git_dir, old_rev, new_rev, branch, as_json):
    """Validate a pushed revision. A verified signature overrides a failed validation."""
    run_hook(HookKind.PRE_RECEIVE, ctx, context_file, git_dir, old_rev, new_rev, branch, as_json)
