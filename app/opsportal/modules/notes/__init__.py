"""
Versioned notes.

- A note is addressed by (entity_type, entity_id, note_type); at most one row per key is current
- Editing never rewrites a row: the current row is retired and a new version replaces it
- Writers must present the version they read; stale writers get NoteVersionConflict
"""
