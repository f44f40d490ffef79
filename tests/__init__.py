"""
Test suite for the waste plan engine.

Run all tests: pytest
Run verbose: pytest -v
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_diversion_service.py -v
"""
