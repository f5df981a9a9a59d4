"""Test suite for historian.

Test Structure:
- unit/: Unit tests for individual components, mirroring historian.core
  - pipeline/: Generation state machine and cache-first pipeline
  - scheduler/: Catalog pregeneration
  - lazy/: Scrub-driven era rendering
  - cli/: Command-line entry point
- conftest.py: Shared fixtures, including a scriptable fake generation service
"""
