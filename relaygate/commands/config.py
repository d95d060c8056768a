import click
from relaygate.config import load_config
from relaygate.cli_utils import handle_errors, resolve_git_dir
import json


@click.group("config")
def config_cmd():
    """Configuration commands."""
    pass


@config_cmd.command("show")
@click.option("--git-dir", help="Git directory whose relaygate.* file applies (default: GIT_DIR)")
@click.option("--pretty", is_flag=True, help="Display as formatted JSON instead of single-line JSON")
@click.option("--path", is_flag=True, help="Show the config file path being used")
@handle_errors
def show_config(git_dir, pretty, path):
    """Show the effective configuration with all merges applied.

    By default, outputs single-line JSON.
    Use --pretty for human-readable formatted output.
    Use --path to see which config file is being used.
    """
    from relaygate.config import get_config_path

    git_dir = resolve_git_dir(git_dir)

    if path:
        config_path = get_config_path(git_dir)
        print(json.dumps({"config_path": str(config_path) if config_path else None}))
        return

    config = load_config(git_dir)

    if pretty:
        print(json.dumps(config, indent=2, ensure_ascii=False))
    else:
        print(json.dumps(config, ensure_ascii=False))
