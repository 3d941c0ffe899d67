import os
import subprocess
import sys
from pathlib import Path

from sqlalchemy.engine import make_url


def _env_default(name: str, value: str) -> None:
    current = os.environ.get(name)
    if current is None or current.strip() == "":
        os.environ[name] = value


def _prepare_environment() -> None:
    _env_default("APP_PORT", "8000")
    _env_default("DATABASE_URL", "sqlite+pysqlite:////data/maintenance.db")
    _env_default("FCM_SERVICE_ACCOUNT_JSON", "/app/secrets/fcm-service-account.json")
    _env_default("PUSH_MAX_WORKERS", "10")
    _env_default("SEED_DEMO_TOKENS", "false")


def _ensure_database_path() -> None:
    try:
        parsed_url = make_url(os.environ["DATABASE_URL"])
    except Exception:
        return

    if not parsed_url.drivername.startswith("sqlite"):
        return

    db_path = parsed_url.database
    if not db_path or db_path == ":memory:":
        return

    Path(db_path).parent.mkdir(parents=True, exist_ok=True)


def _run(cmd: list[str]) -> None:
    print(">", " ".join(cmd), flush=True)
    subprocess.run(cmd, check=True)


def main() -> None:
    _prepare_environment()
    _ensure_database_path()

    print("Starting standalone push dispatch service with:", flush=True)
    print(f"  DATABASE_URL={os.environ['DATABASE_URL']}", flush=True)
    fcm_path = Path(os.environ["FCM_SERVICE_ACCOUNT_JSON"])
    print(
        f"  FCM_SERVICE_ACCOUNT_JSON={fcm_path} (exists={fcm_path.exists()}) workers={os.environ['PUSH_MAX_WORKERS']}",
        flush=True,
    )

    _run([sys.executable, "-m", "alembic", "upgrade", "head"])
    if os.environ["SEED_DEMO_TOKENS"].strip().lower() in {"1", "true", "yes", "on"}:
        _run([sys.executable, "scripts/seed_demo_tokens.py"])

    os.execvp(
        "uvicorn",
        [
            "uvicorn",
            "app.main:app",
            "--host",
            "0.0.0.0",
            "--port",
            os.environ["APP_PORT"],
        ],
    )


if __name__ == "__main__":
    main()
