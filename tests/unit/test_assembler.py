"""
Unit tests for script assembly.
"""

from migrasynth.generation import PhaseContent, assemble_script
from migrasynth.generation.assembler import SECTION_RULE, render_section_header


HEADER = "-- Generated using migrasynth, do not edit manually"


class TestAssembler:
    """Test assembly of phases into a script."""

    def test_section_rule(self):
        assert SECTION_RULE == "-- " + "=" * 45

    def test_section_header(self):
        assert render_section_header(2, "Drop Tables") == (
            f"{SECTION_RULE}\n-- Phase 2: Drop Tables\n{SECTION_RULE}\n"
        )

    def test_empty_script(self):
        assert assemble_script([], HEADER) == f"{HEADER}\nSET XACT_ABORT ON;"

    def test_without_abort_on_error(self):
        assert assemble_script([], HEADER, abort_on_error=False) == HEADER

    def test_empty_phases_are_skipped_and_numbering_is_sequential(self):
        phases = [
            PhaseContent(3, "Third", "SELECT 3;\n"),
            PhaseContent(1, "First", "SELECT 1;\n"),
            PhaseContent(2, "Second", "  \n"),
        ]
        script = assemble_script(phases, HEADER)
        assert script == (
            f"{HEADER}\n"
            "SET XACT_ABORT ON;\n"
            "\n"
            f"{SECTION_RULE}\n-- Phase 1: First\n{SECTION_RULE}\n"
            "\n"
            "SELECT 1;\n"
            "\n"
            f"{SECTION_RULE}\n-- Phase 2: Third\n{SECTION_RULE}\n"
            "\n"
            "SELECT 3;"
        )
        assert "Second" not in script

    def test_phase_content_is_empty(self):
        assert PhaseContent(0, "Nothing", "\n\n").is_empty
        assert not PhaseContent(0, "Something", "GO\n").is_empty
