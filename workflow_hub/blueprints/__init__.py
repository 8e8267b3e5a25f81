"""
Workflow Hub
Blueprint registry.

    auth      — /api/auth/*        login, register, logout, me
    workflow  — /api/workflows/*   workflow CRUD + nested reconciliation
    pages     — server-rendered views
"""
