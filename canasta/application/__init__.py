"""Application workflows that orchestrate parsing, matching and storage."""
