"""Per-run variable store and template resolution."""

from __future__ import annotations

import logging
import re
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

# {{name}} or {{ name }}; names may be dotted (env.API_KEY)
PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([A-Za-z_][\w.\-]*)\s*\}\}")
ENV_PREFIX = "env."


class ExecutionContext:
    """Variables visible to the steps of a single run.

    Holds values extracted from earlier responses plus a static environment
    map. A context belongs to exactly one run and is never persisted.
    """

    def __init__(
        self,
        environment: Optional[Mapping[str, str]] = None,
        extracted: Optional[Mapping[str, str]] = None,
    ):
        self._environment = dict(environment or {})
        self._extracted: dict[str, str] = dict(extracted or {})

    @property
    def extracted(self) -> dict[str, str]:
        return dict(self._extracted)

    @property
    def environment(self) -> dict[str, str]:
        return dict(self._environment)

    def lookup(self, name: str) -> Optional[str]:
        """Return the current value of a placeholder name, or None."""
        if name.startswith(ENV_PREFIX):
            return self._environment.get(name[len(ENV_PREFIX):])
        return self._extracted.get(name)

    def resolve(self, template: Optional[str]) -> Optional[str]:
        """Substitute every known placeholder in a template.

        Unknown placeholders are left in place verbatim.
        """
        if template is None:
            return None

        def replace(match: re.Match[str]) -> str:
            value = self.lookup(match.group(1))
            if value is None:
                logger.debug(f"Unresolved placeholder: {match.group(0)}")
                return match.group(0)
            return value

        return PLACEHOLDER_PATTERN.sub(replace, template)

    def resolve_headers(self, headers: Mapping[str, str]) -> dict[str, str]:
        return {name: self.resolve(value) or "" for name, value in headers.items()}

    def add_extracted(self, values: Mapping[str, str]) -> None:
        """Merge extracted values; later values replace earlier ones."""
        self._extracted.update(values)

    def __repr__(self) -> str:
        return (
            f"ExecutionContext(extracted={sorted(self._extracted)}, "
            f"environment={sorted(self._environment)})"
        )
