"""
Core subsystem (no I/O of its own).

Components:
- models.py: TaskGroup, RemoteTask, Overlay, DisplayEntity, Snapshot
- classifier.py: status label -> responsibility group (table driven)
- reconcile.py: snapshot + overlays -> display entities (lazy snooze expiry)
- view.py / search.py: per-tab ordering, filtering and fuzzy search
- state.py / engine.py: explicit app state and the operations connectors call
"""
