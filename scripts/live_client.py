#!/usr/bin/env python3
"""Interactive terminal client for a running Live server.

Speaks through the local speakers, optionally streams the microphone and
camera, and prints the transcript as it grows.

Usage:
    python scripts/live_client.py

    # Stream microphone and camera from the start
    python scripts/live_client.py --mic --camera

Commands: /mic, /camera, /look (analyze latest frame), /stop (interrupt),
/quit. Anything else is sent as a text turn.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sightline.client import LiveAgentClient, TranscriptRole
from sightline.config import get_settings
from sightline.logging_config import setup_logging

ROLE_LABELS = {
    TranscriptRole.USER: "You",
    TranscriptRole.AGENT: "Agent",
    TranscriptRole.EVENT: "*",
}


def print_new_entries(client: LiveAgentClient, printed: int) -> int:
    entries = client.transcript.entries
    for entry in entries[printed:]:
        print(f"  {ROLE_LABELS[entry.role]}: {entry.text}")
    return len(entries)


async def printer(client: LiveAgentClient) -> None:
    printed = 0
    while True:
        printed = print_new_entries(client, printed)
        await asyncio.sleep(0.2)


async def run(args: argparse.Namespace) -> None:
    settings = get_settings()
    if args.url:
        settings = settings.model_copy(update={"live_ws_url": args.url})

    client = LiveAgentClient(settings)
    client.set_auto_observe_enabled(not args.no_auto_observe)

    print("=" * 60)
    print(f"Sightline Live client -> {settings.live_ws_url}")
    print("=" * 60)
    print("Commands: /mic, /camera, /look, /stop, /quit\n")

    printer_task = asyncio.create_task(printer(client))
    await client.start_session(args.instruction)

    if args.mic:
        await client.set_mic_enabled(True)
    if args.camera:
        await client.set_camera_enabled(True)

    try:
        while True:
            line = (await asyncio.to_thread(input)).strip()
            if not line:
                continue

            command = line.lower()
            if command == "/quit":
                break
            if command == "/mic":
                await client.set_mic_enabled(not client.mic_enabled)
                print(f"  [mic {'on' if client.mic_enabled else 'off'}]")
            elif command == "/camera":
                await client.set_camera_enabled(not client.camera_enabled)
                print(f"  [camera {'on' if client.camera_enabled else 'off'}]")
            elif command == "/look":
                if not client.request_vision_feedback():
                    print("  [no fresh camera frame]")
            elif command == "/stop":
                await client.interrupt()
            else:
                client.send_text(line)

    except (EOFError, KeyboardInterrupt):
        pass

    finally:
        printer_task.cancel()
        await client.close()
        if args.dump:
            print("\n--- transcript ---")
            print_new_entries(client, 0)
        print("\nGoodbye!")


def main():
    parser = argparse.ArgumentParser(description="Talk to a Sightline Live server")
    parser.add_argument("--url", help="Channel URL (default: LIVE_WS_URL setting)")
    parser.add_argument("--instruction", help="System instruction for the session")
    parser.add_argument("--mic", action="store_true", help="Start with the microphone on")
    parser.add_argument("--camera", action="store_true", help="Start with the camera on")
    parser.add_argument(
        "--no-auto-observe",
        action="store_true",
        help="Disable proactive camera feedback",
    )
    parser.add_argument(
        "--dump",
        action="store_true",
        help="Print the full transcript on exit",
    )

    args = parser.parse_args()

    setup_logging(level="WARNING", enable_file=False)
    asyncio.run(run(args))


if __name__ == "__main__":
    main()
