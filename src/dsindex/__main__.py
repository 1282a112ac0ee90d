"""Console-script entry point for :mod:`dsindex`."""

from __future__ import annotations

from dsindex.cli import create_app


def main() -> None:
    """Execute the CLI application."""

    app = create_app()
    app(prog_name="dsindex")


if __name__ == "__main__":  # pragma: no cover - exercised via console script
    main()


__all__ = ["main"]
