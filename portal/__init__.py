"""
Agency Portal.

- backend/: API, database models, services, background jobs, integrations
"""
