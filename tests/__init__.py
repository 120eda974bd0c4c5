"""Test suite for swatchr.

Test Structure:
- unit/: Unit tests for individual components (api, batch, caching, config, io, pipeline, cli)
- integration/: Whole batch runs against temporary directories
- conftest.py: Shared fixtures, in-memory design client and downloader fakes
"""
