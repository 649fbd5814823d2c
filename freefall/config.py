"""Reader for ``name = value`` configuration files."""

from __future__ import annotations

import logging
import os
from typing import Any, Mapping

__all__ = ["load_config"]

logger = logging.getLogger(__name__)


def load_config(path: str | os.PathLike[str], defaults: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``defaults`` overridden by the options found in the file at ``path``.

    Values are converted to the type of their default. Options without a
    default are ignored. ``[section]`` headers prefix the names that follow
    with ``section.``; ``#`` starts a comment. A missing file yields the
    defaults; malformed lines, bad values and repeated options raise
    ValueError.
    """
    values = dict(defaults)
    try:
        with open(path, encoding="utf-8") as handle:
            text = handle.read()
    except OSError:
        logger.warning("Warning: %s not found, using defaults.", os.fspath(path))
        return values

    seen: set[str] = set()
    prefix = ""
    for number, raw in enumerate(text.splitlines(), start=1):
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue
        if line.startswith("[") and line.endswith("]"):
            section = line[1:-1].strip()
            prefix = f"{section}." if section else ""
            continue
        name, sep, value = line.partition("=")
        name = name.strip()
        if not sep or not name:
            raise ValueError(f"line {number}: invalid config syntax: {raw.strip()!r}")
        name = prefix + name
        if name not in defaults:
            continue
        if name in seen:
            raise ValueError(f"option {name!r} is given more than once")
        seen.add(name)
        value = value.strip()
        try:
            values[name] = type(defaults[name])(value)
        except ValueError as exc:
            raise ValueError(f"invalid value {value!r} for option {name!r}") from exc
    return values