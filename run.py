#!/usr/bin/env python3
"""
Weather Bot launcher.
Verifies credentials and the storage backend, then serves the webhook with uvicorn.
"""

import os
import socket
import subprocess
import sys
from pathlib import Path
from urllib.parse import urlparse

from dotenv import dotenv_values

REQUIRED_ENV = ("TELEGRAM_BOT_TOKEN", "OPENWEATHER_API_KEY")
OPTIONAL_ENV = (
    "TELEGRAM_WEBHOOK_URL", "TELEGRAM_WEBHOOK_SECRET", "STORAGE_MODE", "MONGO_URI", "LOGGER", "LLM_PROVIDER",
)
HOST, PORT = "0.0.0.0", int(os.environ.get("PORT", "8000"))

COLORS = {"ok": "\033[92m", "warn": "\033[93m", "fail": "\033[91m", "info": "\033[94m"}
RESET = "\033[0m"


def say(level, message):
    print(f"{COLORS[level]}{message}{RESET}")


def load_env(path=".env"):
    """Process environment on top of the settings in `path`."""
    if not Path(path).exists():
        say("warn", "⚠️  No .env file in the project root, using the process environment only")
        return dict(os.environ)
    values = {key: value for key, value in dotenv_values(path).items() if value is not None}
    return {**values, **os.environ}


def mongo_reachable(uri):
    parsed = urlparse(uri)
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.settimeout(2)
        return sock.connect_ex((parsed.hostname or "localhost", parsed.port or 27017)) == 0


def preflight(env):
    missing = [name for name in REQUIRED_ENV if not env.get(name)]
    if missing:
        say("fail", "❌ Missing required settings: " + ", ".join(missing))
        print("Optional settings: " + ", ".join(OPTIONAL_ENV))
        return False

    if not env.get("TELEGRAM_WEBHOOK_URL"):
        say("warn", "⚠️  TELEGRAM_WEBHOOK_URL is not set; register the webhook yourself")

    if env.get("STORAGE_MODE", "local") == "mongodb":
        uri = env.get("MONGO_URI", "mongodb://localhost:27017")
        if not mongo_reachable(uri):
            say("fail", f"❌ MongoDB is not reachable at {uri}")
            print("  Start one with: docker run -d -p 27017:27017 mongo:7.0")
            return False
        say("ok", f"✅ MongoDB reachable at {uri}")
    else:
        say("info", f"📁 Local JSON storage in {env.get('LOCAL_DATA_DIR', 'data')}/")
    return True


def main():
    if not Path("weather_bot/main.py").exists():
        say("fail", "❌ Run this script from the project root (weather_bot/main.py not found)")
        sys.exit(1)

    say("info", "🌦  Starting Weather Bot...")
    if not preflight(load_env()):
        sys.exit(1)

    say("ok", f"✅ Serving webhook on http://{HOST}:{PORT}/telegram/webhook (Ctrl+C to stop)")
    try:
        subprocess.run(
            [sys.executable, "-m", "uvicorn", "weather_bot.main:app", "--host", HOST, "--port", str(PORT)],
            check=True,
        )
    except KeyboardInterrupt:
        say("warn", "\n👋 Weather bot stopped.")
    except subprocess.CalledProcessError as e:
        say("fail", f"\n❌ uvicorn exited with status {e.returncode}")
        sys.exit(1)


if __name__ == "__main__":
    main()
