import argparse
import asyncio
import sys
from pathlib import Path

from widget_factory import __version__
from widget_factory.config.settings import Settings
from widget_factory.logging.logger import Log
from widget_factory.upload.file_loader import FileLoader
from widget_factory.view.console import ConsoleView
from widget_factory.worker.widget import create_widget


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="widget-factory",
        description="Upload files to a widget and wait for the processing result.",
    )
    parser.add_argument("--widget-id", required=True, help="Widget slug to upload to")
    parser.add_argument("files", nargs="+", type=Path, help="Files to upload")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


async def run(widget_id: str, paths: list[Path], settings: Settings) -> int:
    """Upload the files and block until the widget shows a result or error."""
    files = FileLoader().load_many(paths)
    view = ConsoleView()
    async with create_widget(widget_id, view, settings) as widget:
        await widget.handle_files(files)
    return 0 if view.result is not None else 1


def main(argv: list[str] | None = None) -> int:
    """Entry point: settings -> logging -> load files -> upload and track."""
    args = parse_args(argv)
    settings = Settings()
    Log.configure(settings.log_level)
    Log.info(f"Widget Factory v{__version__} starting")
    try:
        return asyncio.run(run(args.widget_id, args.files, settings))
    except (FileNotFoundError, IsADirectoryError) as exc:
        Log.error(str(exc))
        return 2
    except KeyboardInterrupt:
        Log.info("Interrupted, shutting down")
        return 130


if __name__ == "__main__":
    sys.exit(main())
