"""Main entrypoint for the ``valkys`` command."""
from __future__ import annotations

from valkys.cli.app import app


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover - CLI entry
    main()
