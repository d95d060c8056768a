"""
Check command for relaygate.

Runs only the reference policy (whitelist and metadata schema) over a
revision range. Nothing is written and no signatures are consulted, so
it is safe to run from CI or by hand before pushing.
"""

import os
import sys

import click

from ..cli_utils import handle_errors, load_command_config, resolve_git_dir
from ..domain.context import InvocationContext
from ..domain.verdict import ValidationVerdict
from ..infra.git_client import GitClient
from ..infra.tree_reader import TreeReader
from ..sandbox.api import PolicyApi
from ..services import reference_policy
from ..services.changeset import extract_changes


@click.command('check')
@click.option('--git-dir', help='Git directory (default: GIT_DIR)')
@click.option('--old', 'old_rev', help='Previous revision (default: empty tree)')
@click.option('--new', 'new_rev', required=True, help='Revision to check')
@click.pass_context
@handle_errors
def check_cmd(ctx, git_dir, old_rev, new_rev):
    """Check a revision range against the reference policy.

    \b
    Examples:
        relaygate check --git-dir .git --old HEAD~1 --new HEAD
        relaygate check --new HEAD      # everything in HEAD
    """
    debug = bool(ctx.obj and ctx.obj.get('debug'))
    config = load_command_config(resolve_git_dir(git_dir), debug=debug)

    context = InvocationContext.from_sources(
        os.environ,
        default_branch=config['pipeline']['default_branch'],
        git_dir=git_dir,
        old_rev=old_rev,
        new_rev=new_rev,
    )
    git = GitClient(context.git_dir, timeout=config['git']['timeout_seconds'])
    reader = TreeReader(git, context.new_rev)
    changes = extract_changes(context, git)

    api = PolicyApi(
        [change.to_dict() for change in changes],
        read_file=reader.read,
        whitelist=config['whitelist']['patterns'],
        metadata_filenames=config['metadata']['filenames'],
    )
    verdict = ValidationVerdict.from_result(reference_policy.validate(api))

    if verdict.ok:
        click.echo(f"check passed ({len(changes)} change(s))")
        sys.exit(0)
    click.echo(verdict.message, err=True)
    sys.exit(1)
