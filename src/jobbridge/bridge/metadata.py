# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Human-readable job descriptions taken from a loaded script's scope."""

import logging
from typing import Any, Mapping

logger = logging.getLogger(__name__)

PRETTY_NAME_KEY = "pretty_name"
DOC_KEY = "__doc__"


def describe(scope: Mapping[str, Any]) -> str:
    """Describe a job from its script's global scope.

    Tries, in order:
    1. pretty_name() - used if it returns a str; anything else is ignored
    2. the first line of the module docstring
    3. empty string

    Never raises.
    """
    pretty_name = scope.get(PRETTY_NAME_KEY)
    if callable(pretty_name):
        try:
            name = pretty_name()
        except Exception as e:
            logger.debug(f"pretty_name() raised {e!r}, trying __doc__")
        else:
            if isinstance(name, str):
                return name
            logger.debug(f"pretty_name() returned {type(name).__name__}, trying __doc__")

    doc = scope.get(DOC_KEY)
    if isinstance(doc, str):
        return doc.strip().split("\n", 1)[0].strip()

    return ""
