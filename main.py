"""Astro Story dev launcher. Starts the API server (and optionally the MCP server) in watch mode."""

import argparse
import os
import signal
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = os.getenv("PORT", "13013")


def main():
    parser = argparse.ArgumentParser(description="Astro Story dev launcher")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Config and history directory (default: ./data)")
    parser.add_argument("--mcp", action="store_true",
                        help="Also start the contract-history MCP server (stdio)")
    args = parser.parse_args()

    # Build env for subprocesses so both servers pick up the same data dir
    env = os.environ.copy()
    if args.data_dir:
        args.data_dir.mkdir(parents=True, exist_ok=True)
        env["DATA_DIR"] = str(args.data_dir.resolve())

    procs: list[subprocess.Popen] = []

    def shutdown(*_):
        print("\nShutting down...")
        for p in procs:
            p.terminate()
        for p in procs:
            p.wait()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    print(f"Starting API on http://localhost:{PORT} ...")
    procs.append(subprocess.Popen(
        [sys.executable, "-m", "uvicorn", "astro_story.app:app", "--reload", "--host", HOST, "--port", PORT],
        cwd=ROOT, env=env,
    ))

    if args.mcp:
        print("Starting MCP server ...")
        procs.append(subprocess.Popen(
            [sys.executable, "-m", "astro_story.mcp_server"],
            cwd=ROOT, env=env,
        ))

    for p in procs:
        p.wait()


if __name__ == "__main__":
    main()
