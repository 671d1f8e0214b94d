"""Parameter validation against a plugin function's declared schema."""

import math
from typing import Any, Callable, Dict, List

from skillbox.plugins.manifest import ParameterSpec, PluginFunction

KEYWORD_ALIASES = ("keyword", "seed_keyword", "query", "q")


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a valid number parameter
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


TYPE_CHECKS: Dict[str, Callable[[Any], bool]] = {
    "string": lambda v: isinstance(v, str),
    "number": _is_number,
    "boolean": lambda v: isinstance(v, bool),
    "array": lambda v: isinstance(v, list),
    "object": lambda v: isinstance(v, dict),
    "enum": lambda v: isinstance(v, str),
}


def _check_parameter(name: str, value: Any, spec: ParameterSpec) -> List[str]:
    check = TYPE_CHECKS.get(spec.type)
    if check is not None and not check(value):
        return [f"Parameter '{name}' has invalid type. Expected: {spec.type}"]

    errors = []
    if spec.type == "enum" and spec.values and value not in spec.values:
        allowed = ", ".join(str(v) for v in spec.values)
        errors.append(f"Parameter '{name}' must be one of: {allowed}")

    if spec.type == "number":
        if spec.min is not None and value < spec.min:
            errors.append(f"Parameter '{name}' must be >= {spec.min:g}")
        if spec.max is not None and value > spec.max:
            errors.append(f"Parameter '{name}' must be <= {spec.max:g}")

    return errors


def validate_parameters(function: PluginFunction, parameters: Dict[str, Any]) -> List[str]:
    """Validate call parameters against the function schema.

    Checks required-ness, type conformance, enum membership and numeric
    bounds. Unknown declared types pass the type check.

    Returns:
        Every violation found, empty when the parameters are valid
    """
    errors: List[str] = []

    if function.name == "generate_keywords":
        if not any(parameters.get(alias) for alias in KEYWORD_ALIASES):
            errors.append(
                "At least one keyword parameter (keyword, seed_keyword, query, or q) must be provided"
            )

    for name, spec in function.parameters.items():
        value = parameters.get(name)

        if value is None:
            if spec.required:
                errors.append(f"Required parameter '{name}' is missing")
            continue

        errors.extend(_check_parameter(name, value, spec))

    return errors
