"""Decomposition services - turn a requirement into ordered subtasks.

The natural-language decomposition backend is an external collaborator; this
module defines its interface and a deterministic outline-based fallback used
by the CLI.
"""

import re
from typing import Protocol, runtime_checkable

from loguru import logger

from taskloop.decomposition.models import Decomposition, SubtaskSpec


@runtime_checkable
class Decomposer(Protocol):
    """Turns a requirement into ordered subtask descriptions.

    Implementations raise DecompositionError when decomposition fails; an
    empty Decomposition means the service ran but produced nothing.
    """

    def decompose(self, requirement: str) -> Decomposition: ...


# =============================================================================
# OUTLINE DECOMPOSER (keyword-free fallback)
# =============================================================================


class OutlineDecomposer:
    """
    Split a requirement written as an outline into subtasks.

    Each bullet (``-``, ``*``, ``+``) or numbered (``1.``, ``2)``) line is a
    subtask. A trailing ``(after 1, 2)`` or ``(depends on 1)`` declares
    dependencies by position. Free text before the first item becomes the
    rationale. A requirement without list items is a single subtask.

    Example:
        >>> decomposition = OutlineDecomposer().decompose(
        ...     "Harden module X\\n- Audit inputs\\n- Add validation (after 1)"
        ... )
        >>> [s.depends_on for s in decomposition.subtasks]
        [[], [1]]
    """

    ITEM_PATTERN = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+(?P<text>.+?)\s*$")
    DEPENDS_PATTERN = re.compile(
        r"\(\s*(?:after|depends on|requires)\s+(?P<ids>\d+(?:\s*(?:,|and)\s*\d+)*)\s*\)\s*$",
        re.IGNORECASE,
    )

    def decompose(self, requirement: str) -> Decomposition:
        """
        Decompose an outline requirement.

        Args:
            requirement: Requirement text.

        Returns:
            Decomposition with one subtask per list item.
        """
        if not requirement.strip():
            return Decomposition()

        subtasks: list[SubtaskSpec] = []
        preamble: list[str] = []

        for line in requirement.splitlines():
            match = self.ITEM_PATTERN.match(line)
            if match:
                subtasks.append(self._parse_item(match.group("text")))
            elif not subtasks and line.strip():
                preamble.append(line.strip())

        if not subtasks:
            logger.debug("No outline items found, using the whole requirement as one task")
            return Decomposition(subtasks=[SubtaskSpec(description=requirement.strip())])

        logger.info(f"Outline decomposed into {len(subtasks)} subtasks")
        rationale = "\n".join(preamble) if preamble else None
        return Decomposition(subtasks=subtasks, rationale=rationale)

    def _parse_item(self, text: str) -> SubtaskSpec:
        match = self.DEPENDS_PATTERN.search(text)
        if not match:
            return SubtaskSpec(description=text)

        ids = [int(i) for i in re.findall(r"\d+", match.group("ids"))]
        description = text[: match.start()].rstrip()
        return SubtaskSpec(description=description or text, depends_on=ids)
