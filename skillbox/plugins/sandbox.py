"""Restricted execution environment for plugin scripts.

A script is plain Python source stored in ``manifest.code``. Before it runs,
the source is parsed and rejected when it imports modules, touches
underscore names or attributes, reads frame, code or traceback internals
(``gi_frame``, ``f_back``, ``tb_frame`` and the like), calls ``str.format``
or declares ``global``/``nonlocal``. It then executes in a fresh namespace
whose builtins are a curated table and whose only other globals are the host capabilities:

    sleep, set_timeout, clear_timeout   timers
    Buffer                              bytes/base64 helpers
    fetch                               async HTTP through PluginHttpClient
    console                             log/info/warn/error, routed to logging
    parameters, config                  the call's parameters and resolved config
    fal                                 fal.ai client when ``api_key`` is configured, else None

Timers still pending when the entry function returns are cancelled. There is
no wall-clock limit; a script that never returns keeps its execution pending.
"""

import ast
import asyncio
import base64
import builtins
import inspect
import logging
from types import MappingProxyType, SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import fal_client

from skillbox.plugins.errors import PluginRuntimeError, SandboxViolationError
from skillbox.plugins.http import FetchResponse, PluginHttpClient

logger = logging.getLogger(__name__)

SAFE_BUILTIN_NAMES = (
    "abs", "all", "any", "bool", "bytes", "chr", "dict", "divmod", "enumerate",
    "filter", "float", "format", "frozenset", "int", "isinstance", "iter", "len",
    "list", "map", "max", "min", "next", "ord", "pow", "range", "repr", "reversed",
    "round", "set", "slice", "sorted", "str", "sum", "tuple", "zip",
    "Exception", "ArithmeticError", "KeyError", "IndexError", "LookupError",
    "RuntimeError", "TimeoutError", "TypeError", "ValueError", "StopIteration",
    "True", "False", "None",
)

# Class statements compile to a __build_class__ call
SAFE_BUILTINS = MappingProxyType({
    **{name: getattr(builtins, name) for name in SAFE_BUILTIN_NAMES},
    "__build_class__": builtins.__build_class__,
})

FAL_METHODS = ("run", "submit", "subscribe", "stream", "upload", "upload_image", "upload_file")

# Frame, code and traceback internals lead back to host globals.
# format/format_map resolve "{0.attr}" fields at runtime.
BLOCKED_ATTRIBUTES = frozenset({
    "gi_frame", "gi_code", "gi_yieldfrom",
    "cr_frame", "cr_code", "cr_await", "cr_origin",
    "ag_frame", "ag_code", "ag_await",
    "f_back", "f_globals", "f_locals", "f_builtins", "f_code", "f_trace",
    "tb_frame", "tb_next",
    "format", "format_map",
})


# ============================================================================
# Source checks
# ============================================================================

def _blocked_attribute(name: str) -> bool:
    return name.startswith("_") or name in BLOCKED_ATTRIBUTES


def _violation(node: ast.AST) -> Optional[str]:
    if isinstance(node, (ast.Import, ast.ImportFrom)):
        return "imports are not allowed"
    if isinstance(node, (ast.Global, ast.Nonlocal)):
        return "global and nonlocal declarations are not allowed"
    if isinstance(node, ast.Name) and node.id.startswith("_"):
        return f"access to '{node.id}' is not allowed"
    if isinstance(node, ast.Attribute) and _blocked_attribute(node.attr):
        return f"access to attribute '{node.attr}' is not allowed"
    if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)) and node.name.startswith("_"):
        return f"definition of '{node.name}' is not allowed"
    if isinstance(node, ast.arg) and node.arg.startswith("_"):
        return f"argument '{node.arg}' is not allowed"
    if isinstance(node, ast.MatchClass) and any(_blocked_attribute(a) for a in node.kwd_attrs):
        return "matching on restricted attributes is not allowed"
    return None


def check_script(source: str, filename: str = "<plugin>") -> ast.Module:
    """Parse plugin source and reject constructs outside the sandbox policy.

    Raises:
        SandboxViolationError: On syntax errors or disallowed constructs
    """
    try:
        tree = ast.parse(source, filename=filename, mode="exec")
    except SyntaxError as e:
        raise SandboxViolationError(f"Invalid plugin script: {e.msg} (line {e.lineno})") from e

    for node in ast.walk(tree):
        reason = _violation(node)
        if reason:
            line = getattr(node, "lineno", "?")
            raise SandboxViolationError(f"Plugin script rejected: {reason} (line {line})")

    return tree


# ============================================================================
# Capabilities
# ============================================================================

class ScriptConsole:
    """``console`` capability: forwards script output to a logger."""

    def __init__(self, plugin_name: str):
        self._logger = logging.getLogger(f"skillbox.sandbox.{plugin_name}")

    @staticmethod
    def _join(args) -> str:
        return " ".join(str(a) for a in args)

    def log(self, *args: Any) -> None:
        self._logger.info(self._join(args))

    info = log

    def debug(self, *args: Any) -> None:
        self._logger.debug(self._join(args))

    def warn(self, *args: Any) -> None:
        self._logger.warning(self._join(args))

    def error(self, *args: Any) -> None:
        self._logger.error(self._join(args))


class Buffer:
    """``Buffer`` capability: conversions between text, bytes and base64."""

    @staticmethod
    def from_string(text: str, encoding: str = "utf-8") -> bytes:
        return text.encode(encoding)

    @staticmethod
    def to_string(data: bytes, encoding: str = "utf-8") -> str:
        return data.decode(encoding)

    @staticmethod
    def from_base64(text: str) -> bytes:
        return base64.b64decode(text)

    @staticmethod
    def to_base64(data: bytes) -> str:
        return base64.b64encode(data).decode("ascii")

    @staticmethod
    def concat(chunks: List[bytes]) -> bytes:
        return b"".join(chunks)


class Timers:
    """``set_timeout``/``clear_timeout`` on the running event loop. Delays are in milliseconds.

    One instance per script run. ``close()`` cancels whatever is still
    pending once the run is over.
    """

    def __init__(self, plugin_name: str = "plugin"):
        self.plugin_name = plugin_name
        self.handles = set()
        self.tasks = set()

    def set_timeout(self, callback: Callable, delay_ms: float = 0, *args: Any) -> asyncio.TimerHandle:
        loop = asyncio.get_running_loop()

        def fire():
            self.handles.discard(handle)
            try:
                result = callback(*args)
            except Exception as e:
                logger.error(f"Timer callback of plugin {self.plugin_name} failed: {e}")
                return
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self.tasks.add(task)
                task.add_done_callback(self._task_done)

        handle = loop.call_later(max(delay_ms, 0) / 1000, fire)
        self.handles.add(handle)
        return handle

    def clear_timeout(self, handle: Optional[asyncio.TimerHandle]) -> None:
        if handle is not None:
            handle.cancel()
            self.handles.discard(handle)

    def _task_done(self, task: asyncio.Future) -> None:
        self.tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Timer callback of plugin {self.plugin_name} failed: {task.exception()}")

    def close(self) -> None:
        for handle in self.handles:
            handle.cancel()
        for task in self.tasks:
            task.cancel()
        self.handles.clear()
        self.tasks.clear()


def make_fetch(http: PluginHttpClient) -> Callable:
    """Build the ``fetch`` capability on top of the shared HTTP client."""

    async def fetch(
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        body: Any = None,
        timeout: Optional[float] = None,
    ) -> FetchResponse:
        return await http.request(
            method, url, headers=headers, params=params, json_body=json, data=body, timeout=timeout
        )

    return fetch


def build_fal_client(config: Dict[str, Any]) -> Optional[SimpleNamespace]:
    """Configure the fal.ai client from ``config['api_key']``.

    Returns None when no key is configured or the client cannot be built.
    """
    api_key = config.get("api_key")
    if not api_key:
        logger.warning("No API key configured for fal.ai client")
        return None

    try:
        client = fal_client.AsyncClient(key=api_key)
        methods = {name: getattr(client, name) for name in FAL_METHODS if hasattr(client, name)}
        logger.debug(f"fal.ai client configured with methods: {sorted(methods)}")
        return SimpleNamespace(**methods)
    except Exception as e:
        logger.error(f"Failed to set up fal.ai client: {e}")
        return None


# ============================================================================
# Execution
# ============================================================================

def build_globals(
    plugin_name: str,
    parameters: Dict[str, Any],
    config: Dict[str, Any],
    http: PluginHttpClient,
    timers: Timers,
) -> Dict[str, Any]:
    """Assemble the script namespace: curated builtins plus the host capabilities."""
    return {
        "__builtins__": dict(SAFE_BUILTINS),
        "__name__": f"plugin_{plugin_name}",
        "sleep": asyncio.sleep,
        "set_timeout": timers.set_timeout,
        "clear_timeout": timers.clear_timeout,
        "Buffer": Buffer,
        "fetch": make_fetch(http),
        "console": ScriptConsole(plugin_name),
        "parameters": parameters,
        "config": config,
        "fal": build_fal_client(config),
    }


async def run_script(
    source: str,
    function_name: str,
    parameters: Dict[str, Any],
    config: Dict[str, Any],
    http: PluginHttpClient,
    plugin_name: str = "plugin",
) -> Any:
    """Run a plugin script and call its entry function with the parameters.

    Raises:
        SandboxViolationError: If the source is rejected
        PluginRuntimeError: If the entry function is missing
        Exception: Whatever the script itself raises
    """
    tree = check_script(source, filename=f"<plugin:{plugin_name}>")
    timers = Timers(plugin_name)
    namespace = build_globals(plugin_name, parameters, config, http, timers)

    try:
        exec(compile(tree, f"<plugin:{plugin_name}>", "exec"), namespace)

        entry = namespace.get(function_name)
        if not callable(entry):
            raise PluginRuntimeError(f"Function {function_name} not found in plugin code")

        result = entry(parameters)
        if inspect.isawaitable(result):
            result = await result
        return result
    finally:
        # Timers and callbacks never outlive the run
        timers.close()
