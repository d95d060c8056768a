#!/usr/bin/env python3

import click

from relaygate.commands.hook import pre_commit_cmd, pre_receive_cmd
from relaygate.commands.check import check_cmd
from relaygate.commands.index import index_cmd
from relaygate.commands.config import config_cmd


@click.group()
@click.version_option(package_name='relaygate')
@click.option('--debug', is_flag=True, help='Verbose logging with timestamps')
@click.pass_context
def cli(ctx, debug):
    """relaygate - Commit gate for git-backed content repositories.

    Validates proposed changes against a path whitelist, a metadata
    schema and the repository's own sandboxed validation program, and
    keeps a JSON index of the metadata documents in the tree.
    """
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug


# Hooks
cli.add_command(pre_commit_cmd)
cli.add_command(pre_receive_cmd)

# Tools
cli.add_command(check_cmd)
cli.add_command(index_cmd)
cli.add_command(config_cmd)


def main():
    cli()

if __name__ == "__main__":
    main()
