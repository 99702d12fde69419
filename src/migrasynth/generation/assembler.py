"""
Script assembly.
"""

from dataclasses import dataclass
from typing import Iterable, List


SECTION_RULE = "-- " + "=" * 45


@dataclass(frozen=True)
class PhaseContent:
    """The SQL emitted by one phase of a script."""

    number: int
    description: str
    content: str

    @property
    def is_empty(self) -> bool:
        return not self.content.strip()


def render_section_header(position: int, description: str) -> str:
    return f"{SECTION_RULE}\n-- Phase {position}: {description}\n{SECTION_RULE}\n"


def assemble_script(
    phases: Iterable[PhaseContent], header_comment: str, abort_on_error: bool = True
) -> str:
    """Fold the phases, ordered by number, into one script.

    Empty phases are skipped and the remaining sections are numbered from 1
    in the order they appear.
    """
    parts: List[str] = [f"{header_comment}\n"]
    if abort_on_error:
        parts.append("SET XACT_ABORT ON;\n")
    parts.append("\n")

    emitted = [phase for phase in sorted(phases, key=lambda p: p.number) if not phase.is_empty]
    for position, phase in enumerate(emitted, start=1):
        parts.append(render_section_header(position, phase.description))
        parts.append("\n")
        parts.append(phase.content.rstrip("\n") + "\n")
        parts.append("\n")
    return "".join(parts).rstrip()
