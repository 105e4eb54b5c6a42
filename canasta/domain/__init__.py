"""Pure data models shared by the parsing, matching and ticket workflows."""
