#!/usr/bin/env python3
"""Install figma-bridge in editable mode, run its tests and the offline handoff example."""

import argparse
import os
import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent

# Only the export and extract-keys commands need these
SECRETS = ("OPENAI_API_KEY", "FIGMA_TOKEN")


def write_env(env_file: Path) -> None:
    """Create .env from .env-example, taking secrets from the current environment."""
    if env_file.exists():
        print(f"Keeping existing {env_file}")
        return
    text = (ROOT / ".env-example").read_text(encoding="utf-8")
    for key in SECRETS:
        if os.environ.get(key):
            text = "\n".join(
                f"{key}={os.environ[key]}" if line.startswith(f"{key}=") else line for line in text.splitlines()
            )
    env_file.write_text(text + "\n", encoding="utf-8")
    print(f"Created {env_file}; edit it to add any missing secrets")


def run(*args: str) -> None:
    print("$", " ".join(args))
    subprocess.run([sys.executable, *args], check=True, cwd=ROOT)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--with-browser", action="store_true", help="Also install Chromium for the export command")
    args = parser.parse_args()

    write_env(ROOT / ".env")
    run("-m", "pip", "install", "-e", ".[test]")
    if args.with_browser:
        run("-m", "playwright", "install", "chromium")
    run("-m", "pytest")
    run("examples/run_example.py")


if __name__ == "__main__":
    main()
