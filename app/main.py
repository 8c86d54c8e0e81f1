import argparse
from collections.abc import Sequence
from pathlib import Path

import uvicorn

from app.api.server import create_app
from app.config.settings import Settings
from app.logging.logger import Log
from app.upload.models import Success, UploadRequest
from app.upload.orchestrator import build_orchestrator


def serve(settings: Settings) -> None:
    """Run the proxy API until interrupted."""
    app = create_app(settings)
    Log.info(f"Starting upload proxy on {settings.api_host}:{settings.api_port} ({settings.app_env})")
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level=settings.log_level.lower())


def upload(settings: Settings, path: Path, track: bool) -> int:
    """Upload one file through the orchestrator; returns a process exit code."""
    with build_orchestrator(settings) as orchestrator:
        orchestrator.select_file(UploadRequest.from_path(path))
        if orchestrator.selected_file is None:
            Log.error(f"Upload failed: {orchestrator.state}")
            return 1

        state = orchestrator.start_upload()
        if not isinstance(state, Success):
            Log.error(f"Upload failed: {state}")
            return 1
        Log.info(f"Uploaded {path.name} as {state.file_key} (tracking id {state.tracking_id})")

        if track:
            for record in orchestrator.track(background=False):
                Log.info(
                    f"Analysis {record.tracking_id}: {record.status.value} "
                    f"{record.progress_percent}%"
                )
                if record.result_summary is not None:
                    Log.info(f"Result summary: {record.result_summary}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point: load settings -> configure logging -> dispatch command."""
    parser = argparse.ArgumentParser(prog="kmlupload")
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("serve", help="run the upload proxy API")
    upload_parser = commands.add_parser("upload", help="upload a KML/KMZ file")
    upload_parser.add_argument("path", type=Path)
    upload_parser.add_argument("--track", action="store_true", help="poll analysis status")
    args = parser.parse_args(argv)

    settings = Settings()
    Log.configure(settings.log_level)

    if args.command == "upload":
        return upload(settings, args.path, args.track)
    serve(settings)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
