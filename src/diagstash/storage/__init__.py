"""Diagram storage — entity store backends + retention policy.

Layout (file backend):
    ~/.diagstash/diagrams/
    ├── diagram-1760000000000-3f2a9c1d0.md   # YAML frontmatter: every field
    └── diagram-1760000004211-a81be07c4.md   # body: "# {name}" for browsing

Retention runs after every save: unpinned diagrams older than 90 days go
first, then the oldest unpinned ones beyond the 50-diagram cap.
"""
