"""Entry point for `python -m cursor_wsl_iso`."""

from cursor_wsl_iso.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
