"""Test suite for UMI-QC.

Test organization:
- fixtures/: Synthetic count matrices and annotation tables
- unit/: Unit tests for individual modules

Run tests with:
    pytest tests/
    pytest tests/unit/ -v --tb=short
"""
