"""
Local persistence.

Components:
- overlay_store.py: pins, snoozes and manual order (JSON, atomic replace)
- cache_store.py: last live snapshot, used when ClickUp is unreachable
"""
