"""
Directory module.

Resolves vendor/PM identity records for embedding in leads and notifications.
Lookups are auxiliary: a miss or a slow directory yields a sentinel entry
instead of failing the lead workflow.
"""
