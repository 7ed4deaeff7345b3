"""ACU — App Catalog Updater.

Keeps a local application-catalog installation in step with its upstream
repository: mirrors the catalog, classifies what changed, and applies the
changes with a backup in hand so a failed update can be rolled back.
"""

__version__ = "0.3.0"
