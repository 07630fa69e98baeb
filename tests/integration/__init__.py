"""
Integration test package for the Project Explorer.

Tests use the Flask test client and demonstrate:
- CRUD operation testing for both trees
- Input validation testing
- Multipart upload testing for the importers
"""
