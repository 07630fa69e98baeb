"""
Test suite for the Project Explorer.

This package contains:
- unit/: parser, store, importer and model tests
- integration/: API and view tests through the Flask test client
"""
