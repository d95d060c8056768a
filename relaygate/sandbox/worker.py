"""
Validation sandbox worker.

Runs in its own interpreter, started by ``SandboxValidator`` with an empty
environment and a scratch working directory. It receives the program and
the staged changes over stdin, runs the program's entry point, and reports
a verdict over stdout. File contents are fetched from the host on demand.

The program's source is checked before it is compiled. Attribute names
starting with an underscore, frame and traceback attributes, and the
string formatting methods (which walk attributes by name) are refused,
so nothing the program can see leads back to module globals. ``getattr``
and ``hasattr`` apply the same rule at run time, and an allowlisted
``import`` hands out a view of the module's public attributes, with
submodules left out, instead of the module itself.

Before the program's first statement runs, the modules that start
processes or do raw I/O are dropped from ``sys.modules`` and an audit hook
is installed that refuses file access, process creation, sockets, native
code, code compilation, frame introspection and any import. The program's
builtins are reduced to a safe subset; ``print`` and ``log`` forward to
the host.
"""

import ast
import builtins
import importlib
import inspect
import sys
import types

from . import protocol
from .api import PolicyApi
from ..domain.verdict import ValidationVerdict

SAFE_BUILTINS = (
    'abs', 'all', 'any', 'ascii', 'bin', 'bool', 'bytearray', 'bytes', 'callable',
    'chr', 'dict', 'dir', 'divmod', 'enumerate', 'filter', 'float', 'format',
    'frozenset', 'hash', 'hex', 'id', 'int', 'isinstance',
    'issubclass', 'iter', 'len', 'list', 'map', 'max', 'min', 'next', 'object',
    'oct', 'ord', 'pow', 'property', 'range', 'repr', 'reversed', 'round', 'set',
    'slice', 'sorted', 'staticmethod', 'classmethod', 'str', 'sum', 'super',
    'tuple', 'type', 'zip', '__build_class__',
    'ArithmeticError', 'AssertionError', 'AttributeError', 'Exception',
    'ImportError', 'IndexError', 'KeyError', 'LookupError', 'NotImplementedError',
    'PermissionError', 'RuntimeError', 'StopIteration', 'TypeError',
    'UnicodeDecodeError', 'UnicodeError', 'ValueError', 'ZeroDivisionError',
    'NotImplemented', 'Ellipsis',
)

# Public names that still reach frames or resolve attribute paths from strings
UNSAFE_ATTRIBUTES = frozenset({
    'format', 'format_map',
    'gi_frame', 'gi_code', 'cr_frame', 'cr_code', 'ag_frame', 'ag_code',
    'tb_frame', 'f_back', 'f_globals', 'f_locals', 'f_builtins', 'f_code',
})

# Module members hidden from views, as (module, name)
UNSAFE_MEMBERS = frozenset({
    ('string', 'Formatter'),
})

UNSAFE_MODULES = (
    'subprocess', '_posixsubprocess', 'os', 'posix', 'nt', '_io',
    'importlib', 'importlib.util', 'importlib.machinery',
    'ctypes', '_ctypes', 'socket', '_socket', 'runpy',
)

BLOCKED_EVENTS = frozenset({
    'open',
    'import',
    'compile',
    'builtins.input',
    'builtins.breakpoint',
    'object.__getattr__',
    'sys._getframe',
    'sys._current_frames',
    'sys.settrace',
    'sys.setprofile',
    'function.__new__',
    'code.__new__',
})

BLOCKED_PREFIXES = (
    'os.', 'subprocess.', 'socket.', 'ctypes.', 'shutil.', 'pty.', 'fcntl.',
    'mmap.', 'urllib.', 'http.', 'ftplib.', 'smtplib.', 'poplib.', 'imaplib.',
    'nntplib.', 'telnetlib.', 'webbrowser.', 'sqlite3.', 'winreg.', '_winapi.',
    'msvcrt.', 'resource.', 'signal.', 'syslog.', 'glob.', 'tempfile.',
    'marshal.', 'pickle.', 'shelve.', 'ensurepip.', 'pdb.',
)

ENTRY_POINT = 'validate'
LEGACY_ENTRY_POINT = 'default'
LEGACY_RESULT = 'validation_result'


class SandboxUsageError(Exception):
    """The program broke the sandbox contract (e.g. returned an awaitable)."""


def is_unsafe_attribute(name):
    name = str.__str__(name)
    return name.startswith('_') or name in UNSAFE_ATTRIBUTES


def check_source(tree):
    """
    Refuse attribute access that could leave the sandbox.

    Raises:
        SandboxUsageError: naming the first offending attribute and its line
    """
    for node in ast.walk(tree):
        if isinstance(node, ast.Attribute):
            names = (node.attr,)
        elif isinstance(node, ast.MatchClass):
            names = tuple(node.kwd_attrs)
        else:
            continue
        for name in names:
            if is_unsafe_attribute(name):
                raise SandboxUsageError(
                    f"line {node.lineno}: access to {name!r} is not permitted in the validation sandbox"
                )


def guarded_getattr(obj, name, *default):
    if isinstance(name, str) and is_unsafe_attribute(name):
        raise AttributeError(f"access to {str.__str__(name)!r} is not permitted in the validation sandbox")
    return getattr(obj, name, *default)


def guarded_hasattr(obj, name):
    if isinstance(name, str) and is_unsafe_attribute(name):
        return False
    return hasattr(obj, name)


def make_audit_hook():
    """
    Build the audit hook and the function that disarms it.

    Only the worker's main frame holds the disarm function.
    """
    state = {'armed': True}

    def hook(event, args):
        if not state['armed']:
            return
        if event in BLOCKED_EVENTS or event.startswith(BLOCKED_PREFIXES):
            raise PermissionError(f"{event} is not permitted in the validation sandbox")

    def disarm():
        state['armed'] = False

    return hook, disarm


def module_view(module):
    """Public, non-module attributes of ``module`` as a plain namespace."""
    public = {}
    for name in dir(module):
        if is_unsafe_attribute(name) or (module.__name__, name) in UNSAFE_MEMBERS:
            continue
        value = getattr(module, name)
        if isinstance(value, types.ModuleType):
            continue
        public[name] = value
    return types.SimpleNamespace(**public)


def load_module_views(names):
    """Import the allowlisted modules now, while imports are still possible."""
    views = {}
    for name in names:
        try:
            module = importlib.import_module(name)
        except ImportError:
            continue
        views[name] = module_view(module)
    return views


def drop_unsafe_modules():
    for name in UNSAFE_MODULES:
        sys.modules.pop(name, None)


def make_importer(views):
    def restricted_import(name, globals=None, locals=None, fromlist=(), level=0):
        if level != 0 or name not in views:
            raise ImportError(f"import of {name!r} is not allowed in the validation sandbox")
        return views[name]

    return restricted_import


def make_builtins(channel, views):
    """The reduced builtins namespace the program runs with."""
    namespace = {name: getattr(builtins, name) for name in SAFE_BUILTINS if hasattr(builtins, name)}

    def console_print(*args, sep=' ', end='\n', **_ignored):
        text = sep.join(str(arg) for arg in args) + (end if end != '\n' else '')
        channel.send({'op': protocol.LOG, 'level': 'info', 'message': text})

    def log(message, level='info'):
        channel.send({'op': protocol.LOG, 'level': str(level), 'message': str(message)})

    namespace['print'] = console_print
    namespace['log'] = log
    namespace['getattr'] = guarded_getattr
    namespace['hasattr'] = guarded_hasattr
    namespace['__import__'] = make_importer(views)
    return namespace


def resolve_entry_point(namespace, legacy_exports=False):
    """
    Find what to run in the executed program's namespace.

    Returns a callable, a precomputed verdict mapping, or None when the
    program exports nothing recognizable.
    """
    target = namespace.get(ENTRY_POINT)
    if callable(target):
        return target
    if not legacy_exports:
        return None

    target = namespace.get(LEGACY_ENTRY_POINT)
    if callable(target):
        return target

    precomputed = namespace.get(LEGACY_RESULT)
    if isinstance(precomputed, dict):
        return precomputed
    return None


def describe(exc):
    return str(exc) or type(exc).__name__


def request_file(channel, path):
    channel.send({'op': protocol.READ_FILE, 'path': path})
    reply = channel.receive()
    if reply is None:
        raise RuntimeError("host closed the sandbox channel")
    if reply.get('op') != protocol.FILE:
        raise protocol.ProtocolError(f"expected a file reply, got {reply.get('op')!r}")
    return protocol.decode_bytes(reply.get('data'))


def compile_program(source, filename):
    """
    Parse, check and compile the program.

    Raises:
        SyntaxError, ValueError: the source does not compile
        SandboxUsageError: the source reaches for a refused attribute
    """
    tree = ast.parse(source, filename, 'exec')
    check_source(tree)
    return compile(tree, filename, 'exec')


def run_program(code, request, channel, views):
    """
    Execute the compiled program and its entry point; returns a verdict.

    Runs with the audit hook armed, so nothing here may compile code or
    import modules.
    """
    filename = request.get('filename', 'validation.py')
    api = PolicyApi(
        request.get('changes', ()),
        read_file=lambda path: request_file(channel, path),
        whitelist=request.get('whitelist', ()),
        metadata_filenames=request.get('metadata_filenames', ('meta.yaml', 'meta.yml')),
    )
    namespace = {
        '__builtins__': make_builtins(channel, views),
        '__name__': 'validation',
    }

    exec(code, namespace)

    target = resolve_entry_point(namespace, request.get('legacy_exports', False))
    if target is None:
        return ValidationVerdict.accept()
    if isinstance(target, dict):
        return ValidationVerdict.from_result(target)

    result = target(api)
    if inspect.isawaitable(result):
        close = getattr(result, 'close', None)
        if callable(close):
            close()
        raise SandboxUsageError(f"{filename} returned an awaitable; async validation is not supported")
    return ValidationVerdict.from_result(result)


def main():
    channel = protocol.Channel(sys.stdin.buffer, sys.stdout.buffer, protocol.HOST_OPS)
    # Anything else that writes to stdout must not corrupt the channel
    sys.stdout = sys.stderr

    request = channel.receive()
    if request is None or request.get('op') != protocol.LOAD:
        return 2

    views = load_module_views(request.get('allowed_modules', ()))
    try:
        code = compile_program(request['source'], request.get('filename', 'validation.py'))
    except (SyntaxError, ValueError, SandboxUsageError) as exc:
        channel.send({'op': protocol.ERROR, 'message': describe(exc)})
        return 0

    drop_unsafe_modules()
    hook, disarm = make_audit_hook()
    sys.addaudithook(hook)
    try:
        verdict = run_program(code, request, channel, views)
    except (Exception, SystemExit) as exc:
        disarm()
        channel.send({'op': protocol.ERROR, 'message': describe(exc)})
        return 0

    disarm()
    channel.send({'op': protocol.VERDICT, **verdict.to_dict()})
    return 0


if __name__ == '__main__':
    sys.exit(main())
