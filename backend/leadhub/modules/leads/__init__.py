"""
Lead module.

Lead is the primary aggregate of the PM/vendor invitation workflow:
Send -> Vendor response -> PM decision -> (optional) Workspace access.
"""
