"""Shared helpers: file system primitives, tree scanning and git access."""
