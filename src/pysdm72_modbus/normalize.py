"""Normalize and validate user-supplied field names; aliases for the CLI wording."""

import re

from .errors import InvalidFieldError

# Lowercase words joined by underscores, e.g. baud_rate, kppa, l1_voltage
_FIELD_PATTERN = re.compile(r"^[a-z][a-z0-9]*(_[a-z0-9]+)*$")

_ALIASES: dict[str, str] = {
    "wiring_type": "system_type",
    "authorization": "kppa",
    "parity": "parity_and_stop_bit",
}


def normalize_field_name(raw: str) -> str:
    """
    Normalize a field name to canonical form.

    - Strip, lowercase, map ``-`` and spaces to ``_``.
    - Resolve aliases (``wiring-type`` -> ``system_type``).

    Raises InvalidFieldError for malformed names.
    """
    s = raw.strip()
    if not s:
        raise InvalidFieldError(raw, "Field name cannot be empty")

    name = re.sub(r"[-\s]+", "_", s.lower())
    if not _FIELD_PATTERN.match(name):
        raise InvalidFieldError(raw, f"Malformed field name: {raw!r}")

    return _ALIASES.get(name, name)
