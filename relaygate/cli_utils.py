"""
Common CLI utilities and decorators for consistent command behavior.
"""

import json
import logging
import os
import sys
from functools import wraps
from typing import Any, Dict, Optional, Tuple

import click

from .config import configure_logging, load_config
from .exit_codes import (
    INTERRUPTED, UsageError,
    get_exit_code_for_exception, CommandError
)

logger = logging.getLogger(__name__)


def handle_errors(func):
    """
    Decorator that provides standard error behavior for hook commands:
    - Errors go to stderr as one plain line (git shows it to the pusher)
    - CommandError subclasses exit with their own code
    - Anything unexpected maps through get_exit_code_for_exception
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except KeyboardInterrupt:
            click.echo("Interrupted by user", err=True)
            sys.exit(INTERRUPTED)
        except click.ClickException:
            # Click exceptions already have their exit code
            raise
        except CommandError as e:
            click.echo(str(e), err=True)
            sys.exit(e.exit_code)
        except Exception as e:
            logger.debug("Unexpected failure", exc_info=True)
            click.echo(f"relaygate: {e}", err=True)
            sys.exit(get_exit_code_for_exception(e))

    return wrapper


def read_context_document(stream) -> Optional[Dict[str, Any]]:
    """
    Parse the JSON context document from an open stream.

    An empty stream means no document.

    Raises:
        UsageError: if the stream holds something other than a JSON object
    """
    if stream is None:
        return None
    text = stream.read()
    if not text.strip():
        return None
    try:
        document = json.loads(text)
    except ValueError as e:
        raise UsageError(f"context is not valid JSON: {e}") from e
    if not isinstance(document, dict):
        raise UsageError("context must be a JSON object")
    return document


def resolve_git_dir(option: Optional[str], document: Optional[Dict[str, Any]] = None) -> Optional[str]:
    """Git directory from the command line, then the context document, then GIT_DIR."""
    if option:
        return option
    for key in ('git_dir', 'repo_path'):
        if document and document.get(key):
            return str(document[key])
    return os.environ.get('GIT_DIR') or None


def load_command_config(git_dir: Optional[str], debug: bool = False) -> Dict[str, Any]:
    """Load configuration for ``git_dir`` and apply its logging settings."""
    config = load_config(git_dir)
    configure_logging(config, debug=debug)
    return config


def parse_filters(expressions: Tuple[str, ...]) -> Dict[str, Any]:
    """Turn repeated ``--filter key=value`` options into a filter dict."""
    from .services.index_query import parse_filter

    filters: Dict[str, Any] = {}
    for expression in expressions:
        try:
            key, value = parse_filter(expression)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="'--filter'")
        filters[key] = value
    return filters
