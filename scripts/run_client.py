"""Interactive client: prints inbound messages and sends each stdin line."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path


async def run(settings) -> None:
    from sessionlink.network import ReconnectingConnection, WebSocketTransport  # type: ignore

    done = asyncio.Event()

    def _on_close(event) -> None:
        print(f"[closed] code={event.code} reason={event.reason!r}", file=sys.stderr)
        done.set()

    connection = ReconnectingConnection(
        lambda url: WebSocketTransport(
            url,
            subprotocols=settings.subprotocols,
            open_timeout=settings.open_timeout_seconds,
            close_timeout=settings.close_timeout_seconds,
        ),
        settings=settings,
        on_open=lambda: print("[open]", file=sys.stderr),
        on_message=lambda data: print(data),
        on_reconnecting=lambda attempt, limit, delay: print(
            f"[reconnecting] {attempt}/{limit} in {delay:.2f}s", file=sys.stderr
        ),
        on_reconnected=lambda: print("[reconnected]", file=sys.stderr),
        on_close=_on_close,
    )

    loop = asyncio.get_running_loop()
    try:
        while not done.is_set():
            line = await loop.run_in_executor(None, sys.stdin.readline)
            if not line:
                break
            try:
                connection.send(line.rstrip("\n"))
            except Exception as exc:  # noqa: BLE001
                print(f"[not sent] {exc}", file=sys.stderr)
    finally:
        connection.close(1000, "client exit")
        try:
            await asyncio.wait_for(done.wait(), timeout=settings.close_timeout_seconds or 10.0)
        except asyncio.TimeoutError:
            logging.getLogger(__name__).warning("Close handshake did not finish in time")


def main() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(repo_root))

    # Lazy import after adjusting sys.path
    from sessionlink.config import get_settings  # type: ignore

    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
