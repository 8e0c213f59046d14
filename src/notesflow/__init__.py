"""
notesflow - note repository and query engine for a personal note-taking app.

Notes are kept as one canonical in-memory collection, persisted whole to a
key-value store after every mutation, and projected into filtered, sorted
views on demand. A debounced auto-save coordinator guards the write path
while a draft is being edited.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("notesflow")
except PackageNotFoundError:
    __version__ = "0.3.0"
