"""
Routes package for the Project Explorer application.

This package contains route blueprints:
- api: REST API endpoints for the project and feature trees
- views: HTML page routes for the web interface
"""
