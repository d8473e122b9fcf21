"""
Launch the Model Gallery API.

    python run.py                      # serve on 0.0.0.0:8000
    python run.py --port 9000 --reload
    python run.py --poll-interval 0.5 --poll-timeout 120
    python run.py --check              # print the configuration and exit

--check exits with status 1 when no Replicate token is configured.
"""
import argparse
import os
import sys
from pathlib import Path

import uvicorn

BACKEND_DIR = Path(__file__).parent.resolve() / "backend"


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Model Gallery API server")
    p.add_argument("--host", default=os.environ.get("GALLERY_HOST", "0.0.0.0"))
    p.add_argument("--port", type=int, default=int(os.environ.get("GALLERY_PORT", "8000")))
    p.add_argument("--reload", action="store_true", help="Restart on source changes")
    p.add_argument("--data-dir", help="Override DATA_DIR")
    p.add_argument("--log-level", choices=("DEBUG", "INFO", "WARNING", "ERROR"),
                   help="Minimum level written to the JSONL logs")
    p.add_argument("--poll-interval", type=float, help="Seconds between status polls")
    p.add_argument("--poll-timeout", type=float, help="Give up polling after this many seconds")
    p.add_argument("--check", action="store_true", help="Print the configuration and exit")
    return p.parse_args(argv)


def apply_overrides(args) -> None:
    """Export CLI overrides so gallery.config picks them up on import."""
    overrides = {
        "DATA_DIR": args.data_dir,
        "LOG_LEVEL": args.log_level,
        "POLL_INTERVAL_S": args.poll_interval,
        "POLL_TIMEOUT_S": args.poll_timeout,
    }
    for key, value in overrides.items():
        if value is not None:
            os.environ[key] = str(value)


def preflight() -> bool:
    """Print the effective settings; True when the upstream token is present."""
    sys.path.insert(0, str(BACKEND_DIR))
    from gallery import config

    configured = config.is_replicate_configured()
    print(f"   Replicate API:  {config.REPLICATE_API_BASE}")
    print(f"   API token:      {'set' if configured else 'MISSING'}")
    print(f"   Data dir:       {config.DATA_DIR}")
    print(f"   Log level:      {config.LOG_LEVEL}")
    print(f"   Polling:        every {config.POLL_INTERVAL_S}s, timeout {config.POLL_TIMEOUT_S}s")
    print(f"   Field keywords: {config.FIELD_HEURISTICS_FILE or 'built-in'}")
    if not configured:
        print("⚠️  REPLICATE_API_TOKEN is not set; model and prediction endpoints will return 500.")
        print("   Create one at https://replicate.com/account/api-tokens")
    return configured


def main(argv=None) -> int:
    args = parse_args(argv)
    apply_overrides(args)

    print("🚀 Model Gallery")
    configured = preflight()
    if args.check:
        return 0 if configured else 1

    print(f"\n   API:  http://localhost:{args.port}/api/")
    print(f"   Docs: http://localhost:{args.port}/docs\n")
    uvicorn.run(
        "gallery.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        app_dir=str(BACKEND_DIR),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
