"""Command-line interface for canasta.

Usage:
    canasta stores
    canasta detect <text_file>
    canasta parse <text_file> [--store KEY] [--json]
    canasta scan <image> --user USER [--store KEY]
    canasta list --user USER
    canasta show <ticket_id> --user USER
    canasta serve [--host] [--port]
"""
