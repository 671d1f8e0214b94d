"""Runtime strategies, one per executable RuntimeType.

Every strategy has the signature ``(manifest, function, parameters, context)``
and returns the raw result data.
"""

from typing import Dict

from skillbox.plugins.manifest import RuntimeType
from skillbox.plugins.runtimes.api_call import execute_api_call
from skillbox.plugins.runtimes.base import ExecutionContext, RuntimeStrategy
from skillbox.plugins.runtimes.script import execute_script
from skillbox.plugins.runtimes.webhook import execute_webhook

RUNTIMES: Dict[RuntimeType, RuntimeStrategy] = {
    RuntimeType.API_CALL: execute_api_call,
    RuntimeType.PYTHON: execute_script,
    RuntimeType.WEBHOOK: execute_webhook,
}

__all__ = [
    "ExecutionContext",
    "RuntimeStrategy",
    "RUNTIMES",
    "execute_api_call",
    "execute_script",
    "execute_webhook",
]
