"""Launcher entrypoint for the dashboard (default) and the capture service (`capture`)."""

from __future__ import annotations

import os
import pathlib
import sys


def _bundle_root() -> pathlib.Path:
    if getattr(sys, "frozen", False):
        return pathlib.Path(getattr(sys, "_MEIPASS"))
    return pathlib.Path(__file__).resolve().parent


def _runtime_root() -> pathlib.Path:
    if getattr(sys, "frozen", False):
        return pathlib.Path(sys.executable).resolve().parent
    return pathlib.Path(__file__).resolve().parent


def dashboard_argv(app_path: pathlib.Path, extra: list[str] | None = None) -> list[str]:
    return [
        "streamlit",
        "run",
        str(app_path),
        "--server.headless=true",
        "--browser.gatherUsageStats=false",
        *(extra or []),
    ]


def main(argv: list[str] | None = None) -> None:
    args = list(sys.argv[1:] if argv is None else argv)
    bundle_root = _bundle_root()
    runtime_root = _runtime_root()

    # Keep local persistence (.local_store) beside the executable.
    os.chdir(runtime_root)
    os.environ.setdefault("STREAMLIT_BROWSER_GATHER_USAGE_STATS", "false")

    if args and args[0] == "capture":
        from zona9.capture_service import main as capture_main

        capture_main()
        return

    from streamlit.web import cli as stcli

    sys.argv = dashboard_argv(bundle_root / "app.py", args)
    raise SystemExit(stcli.main())


if __name__ == "__main__":
    main()
