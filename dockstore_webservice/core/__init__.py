"""
Refresh and reconciliation engine.

- enums: canonical values for entries, versions and files
- reconciler: pure merge of a fetched snapshot into a persisted entry
- refresh: orchestration of reconciliation across a user's repositories
- checker: checker workflow registration
- entries: publish, restub, manual registration and version edits
"""
