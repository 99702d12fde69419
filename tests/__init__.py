"""
Test suite for migrasynth.

This package contains unit tests for all migrasynth components:
- Schema model, diff, comparison, projection and snapshot files
- T-SQL renderers
- Restoration resolution, column planning and script phases
- Migration store, configuration and CLI
"""
