from __future__ import annotations

import sys
from pathlib import Path

import uvicorn


def main() -> int:
    """
    Description: Serve the careertrack API locally with uvicorn.
    Layer: L0
    Input: CAREERTRACK_* settings (host, port, database path)
    Output: exit code
    """
    root = Path(__file__).resolve().parent
    src = str(root / "src")
    if src not in sys.path:
        sys.path.insert(0, src)

    from careertrack.config import get_settings

    settings = get_settings()
    print("\n== careertrack Local Launcher ==")
    print(f"API: http://{settings.api_host}:{settings.api_port}/health  | docs: http://{settings.api_host}:{settings.api_port}/docs")
    print(f"DB : {settings.resolved_database_path()}\n")

    try:
        uvicorn.run(
            "careertrack.api.main:app",
            host=settings.api_host,
            port=settings.api_port,
            reload=settings.environment == "local",
            app_dir=src,
        )
    except KeyboardInterrupt:
        print("Stopping…")
        return 130
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
