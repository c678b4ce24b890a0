"""
WhatsApp template variable binding.

Clients send placeholder values as an ordered list, a {"1": ..., "2": ...}
map, or both. The request is turned into a TemplateVariables value at the
boundary and resolved exactly once by bind_variables() into a VariableSet:

    ordered ["A", "B"]  +  keyed {"2": "Z"}  ->  {"1": "A", "2": "Z"}

Rules enforced here: at least one variable, at most 30, keys are positive
decimal integers. Keys are canonicalised ("01" -> "1"), so two map keys
naming the same placeholder are rejected. Payloads are always built in
ascending numeric key order; "10" must come after "9", not after "1".
"""
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Union

MAX_VARIABLES = 30

# ACS rejects empty text values
BLANK_VALUE = " "

_DIGITS = re.compile(r"^[0-9]+$")

VariableSet = Dict[str, str]


class TemplateValidationError(ValueError):
    """Caller supplied variables (or configuration) the template can't use."""


@dataclass(frozen=True)
class Ordered:
    values: Sequence[Optional[str]]


@dataclass(frozen=True)
class Keyed:
    mapping: Mapping[str, Optional[str]]


@dataclass(frozen=True)
class Both:
    values: Sequence[Optional[str]]
    mapping: Mapping[str, Optional[str]]


TemplateVariables = Union[Ordered, Keyed, Both]


@dataclass(frozen=True)
class TemplateButton:
    """Dynamic button binding: sub-type plus the variable key (or literal) it refers to."""
    type: str
    ref: str


@dataclass
class UnifiedMessage:
    template_name: str
    variables: VariableSet = field(default_factory=dict)


def variables_from_request(
    values: Optional[Sequence[Optional[str]]],
    mapping: Optional[Mapping[str, Optional[str]]],
) -> TemplateVariables:
    """Tag whatever the request carried. Neither list nor map is a validation error."""
    if values is not None and mapping is not None:
        return Both(values, mapping)
    if values is not None:
        return Ordered(values)
    if mapping is not None:
        return Keyed(mapping)
    raise TemplateValidationError(
        "At least one variable must be supplied via variables or variablesMap"
    )


def _canonical_key(key) -> Optional[str]:
    """"01" -> "1"; None unless the key is a positive decimal integer."""
    text = str(key)
    if not _DIGITS.match(text) or int(text) == 0:
        return None
    return str(int(text))


def _filled(value: Optional[str]) -> str:
    if value is None or not str(value).strip():
        return BLANK_VALUE
    return str(value)


def bind(
    ordered: Optional[Sequence[Optional[str]]] = None,
    keyed: Optional[Mapping[str, Optional[str]]] = None,
) -> VariableSet:
    """Merge positional and keyed values; keyed entries win on collision."""
    variables: VariableSet = {}
    for i, value in enumerate(ordered or []):
        variables[str(i + 1)] = _filled(value)
    bad: List[str] = []
    duplicates: List[str] = []
    seen: Dict[str, str] = {}
    for key, value in (keyed or {}).items():
        canonical = _canonical_key(key)
        if canonical is None:
            bad.append(str(key))
            variables[str(key)] = _filled(value)
            continue
        if canonical in seen:
            duplicates.append(f"{seen[canonical]!r} and {key!r}")
        seen[canonical] = str(key)
        variables[canonical] = _filled(value)

    if not variables:
        raise TemplateValidationError(
            "At least one variable must be supplied via variables or variablesMap"
        )
    if len(variables) > MAX_VARIABLES:
        raise TemplateValidationError(
            f"Too many variables ({len(variables)}); the limit is {MAX_VARIABLES}"
        )
    if bad:
        raise TemplateValidationError(
            "VariablesMap keys must be positive integers (e.g. '1','2'); got "
            + ", ".join(repr(k) for k in bad)
        )
    if duplicates:
        raise TemplateValidationError(
            "VariablesMap keys name the same placeholder: " + "; ".join(duplicates)
        )
    return variables


def bind_variables(variables: TemplateVariables) -> VariableSet:
    if isinstance(variables, Ordered):
        return bind(ordered=variables.values)
    if isinstance(variables, Keyed):
        return bind(keyed=variables.mapping)
    return bind(ordered=variables.values, keyed=variables.mapping)


def ordered_keys(variables: VariableSet) -> List[str]:
    return sorted(variables, key=int)


def bind_unified(message: Optional[str], template_name: Optional[str]) -> UnifiedMessage:
    """Single free-text body bound to placeholder "1" of the configured template."""
    if not template_name or not template_name.strip():
        raise TemplateValidationError("Unified template name is not configured")
    text = (message or "").strip()
    if not text:
        raise TemplateValidationError("Message must not be empty")
    return UnifiedMessage(template_name=template_name.strip(), variables={"1": text})


def build_template_payload(
    name: str,
    language: str,
    variables: VariableSet,
    buttons: Optional[Sequence[TemplateButton]] = None,
) -> dict:
    """ACS MessageTemplate JSON with values and WhatsApp body bindings in numeric order."""
    keys = ordered_keys(variables)
    bindings: dict = {
        "kind": "whatsApp",
        "body": [{"refValue": k} for k in keys],
    }
    if buttons:
        # Static buttons are part of the approved template; only dynamic ones are bound
        bindings["buttons"] = [{"subType": b.type, "refValue": b.ref} for b in buttons]

    return {
        "name": name,
        "language": language,
        "values": [
            {"kind": "text", "name": k, "text": _filled(variables[k])}
            for k in keys
        ],
        "bindings": bindings,
    }
