"""
Export the project's source files as a JSON manifest.

Usage:
    python manage.py export_manifest [--config export.config.json] [--out export]
"""

from pathlib import Path

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from apps.core.manifest import ManifestConfigError, build_manifest, load_config, write_manifest


class Command(BaseCommand):
    help = "Write a JSON manifest and per-file dumps of the source tree."

    def add_arguments(self, parser):
        parser.add_argument("--config", default=settings.EXPORT_CONFIG_FILE, help="Path to the JSON config.")
        parser.add_argument("--root", default=str(settings.BASE_DIR), help="Directory to export.")
        parser.add_argument("--out", default="export", help="Output directory.")

    def handle(self, *args, **options):
        try:
            config = load_config(Path(options["config"]))
            manifest = build_manifest(Path(options["root"]), config)
        except ManifestConfigError as exc:
            raise CommandError(str(exc)) from exc

        path = write_manifest(manifest, Path(options["out"]))
        counts = manifest["counts"]
        self.stdout.write(
            f"Exported {counts['files']} files ({counts['bytes']} bytes), "
            f"skipped {counts['skipped']} -> {path}"
        )
