#!/usr/bin/env python3

from __future__ import annotations

import argparse
import logging
import socket
import webbrowser


def _pick_free_port(host: str) -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((host, 0))
        return int(s.getsockname()[1])


def main() -> int:
    parser = argparse.ArgumentParser(description="Run the XAUUSD Scalper Pro indicator generator.")
    parser.add_argument("--host", default="127.0.0.1", help="Bind host (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=0, help="Bind port (0 = pick a free port)")
    parser.add_argument("--no-browser", action="store_true", help="Do not open a browser tab")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload (dev only)")
    parser.add_argument("--log-level", default="info", choices=["debug", "info", "warning", "error"])
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )

    host = str(args.host)
    port = int(args.port) if int(args.port) != 0 else _pick_free_port(host)

    url = f"http://{host}:{port}/"
    if not args.no_browser:
        try:
            webbrowser.open_new_tab(url)
        except webbrowser.Error:
            logging.getLogger(__name__).warning("Could not open a browser; visit %s", url)

    import uvicorn

    uvicorn.run(
        "gui_launcher.app:app",
        host=host,
        port=port,
        reload=bool(args.reload),
        log_level=args.log_level,
    )

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
