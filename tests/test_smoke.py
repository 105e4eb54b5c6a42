"""Public smoke tests for basic module wiring.

Keep these minimal and free of any real-world data.
"""

from __future__ import annotations


def test_imports() -> None:
    import canasta
    import canasta.application.tickets
    import canasta.cli.main
    import canasta.runtime
    import canasta.runtime.ticket_server
    import canasta.ticket.parsers

    assert canasta is not None
    assert canasta.application.tickets is not None
    assert canasta.cli.main is not None
    assert canasta.runtime is not None
    assert canasta.runtime.ticket_server is not None
    assert canasta.ticket.parsers is not None
