"""Update synchronization and recovery.

This package provides the primitives for:
- Mirror: keeping a local clone of the upstream catalog
- Classification: which files and apps differ, and how risky each change is
- Filtering: administrator exclusions and the unattended safe subset
- Backup & rollback: snapshotting before mutation and restoring on failure
- Orchestration: the staged apply that ties the above together
"""
