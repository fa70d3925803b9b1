"""
Tests for the core application: the source manifest export, the
template context processor and the production settings module.
"""

import importlib
import json
import os
import sys
import tempfile
from io import StringIO
from pathlib import Path
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import RequestFactory, SimpleTestCase, TestCase, override_settings

from apps.absences.models import AbsenceRequest
from apps.notifications.models import Notification
from apps.scheduling.models import Employee
from config.settings import base as base_settings

from .context_processors import app_info
from .manifest import (
    REDACTED,
    ManifestConfigError,
    build_manifest,
    detect_language,
    is_probably_binary,
    iter_files,
    load_config,
    matches_exclude,
    write_manifest,
)

User = get_user_model()


def write_files(root: Path, files: dict) -> None:
    """Create ``files`` (relative path -> str or bytes) under ``root``."""
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")


class ManifestHelperTests(SimpleTestCase):
    """Tests for the small manifest helpers."""

    def test_detect_language(self):
        self.assertEqual(detect_language("src/app.tsx"), "tsx")
        self.assertEqual(detect_language("src/views.PY"), "python")
        self.assertEqual(detect_language("src/data.toml"), "toml")
        self.assertEqual(detect_language("src/Makefile"), "text")

    def test_is_probably_binary(self):
        self.assertTrue(is_probably_binary(b"PK\x03\x04\x00\x00"))
        self.assertFalse(is_probably_binary("äö".encode("utf-8")))
        # Only the first KiB is inspected
        self.assertFalse(is_probably_binary(b"a" * 1024 + b"\x00"))

    def test_matches_exclude(self):
        self.assertTrue(matches_exclude("a.test.ts", "**/*.test.ts"))
        self.assertTrue(matches_exclude("src/deep/a.test.ts", "**/*.test.ts"))
        self.assertTrue(matches_exclude("node_modules/pkg/index.js", "**/node_modules/**"))
        self.assertTrue(matches_exclude("src/a.ts", "src/**/*.ts"))
        self.assertFalse(matches_exclude("a.ts", "**/*.test.ts"))
        self.assertFalse(matches_exclude("lib/a.ts", "src/**/*.ts"))


class BuildManifestTests(SimpleTestCase):
    """Tests for build_manifest and write_manifest."""

    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.root = Path(tmp.name) / "project"
        write_files(self.root, {
            "src/app.py": "API_KEY = 're_abcdefghijklmnopqrstuvwx'\nprint('hello')\n",
            "src/nested/util.ts": "export const x = 1;\n",
            "src/logo.png": b"\x89PNG\r\n\x1a\n\x00\x00",
            "src/.env": "SECRET=1\n",
            "src/.cache/tmp.js": "cached\n",
            "src/skip/ignored.js": "ignored\n",
            "README.md": "outside include\n",
        })
        self.config = {
            "include": ["src/**/*"],
            "exclude": ["src/skip/*"],
            "redact": [r"re_[A-Za-z0-9_]{20,}"],
        }

    def test_collects_included_text_files(self):
        manifest = build_manifest(self.root, self.config)

        paths = [entry["path"] for entry in manifest["files"]]
        self.assertEqual(paths, ["src/app.py", "src/nested/util.ts"])
        self.assertEqual(manifest["root"], "project")
        self.assertEqual(manifest["counts"]["files"], 2)
        self.assertEqual(manifest["counts"]["skipped"], 1)

    def test_file_entry_fields(self):
        manifest = build_manifest(self.root, self.config)

        entry = manifest["files"][1]
        self.assertEqual(entry["lang"], "typescript")
        self.assertEqual(entry["size"], len("export const x = 1;\n"))
        self.assertEqual(len(entry["sha256"]), 64)
        self.assertEqual(entry["chunks"], [{"i": 0, "text": "export const x = 1;\n"}])

    def test_secrets_are_redacted(self):
        manifest = build_manifest(self.root, self.config)

        text = manifest["files"][0]["chunks"][0]["text"]
        self.assertIn(REDACTED, text)
        self.assertNotIn("re_abcdefghijklmnopqrstuvwx", text)

    def test_max_file_bytes(self):
        manifest = build_manifest(self.root, {**self.config, "maxFileBytes": 30})

        self.assertEqual([e["path"] for e in manifest["files"]], ["src/nested/util.ts"])
        self.assertEqual(manifest["counts"]["skipped"], 2)

    def test_large_files_are_chunked(self):
        write_files(self.root, {"src/big.txt": "abcdefghij"})
        config = {"include": ["src/big.txt"], "maxPreviewBytes": 5, "chunkBytes": 4}

        manifest = build_manifest(self.root, config)

        chunks = manifest["files"][0]["chunks"]
        self.assertEqual([c["text"] for c in chunks], ["abcd", "efgh", "ij"])
        self.assertEqual([c["i"] for c in chunks], [0, 1, 2])

    def test_invalid_redact_pattern(self):
        with self.assertRaises(ManifestConfigError):
            build_manifest(self.root, {"redact": ["("]})

    def test_root_level_files_match_globstar_exclude(self):
        write_files(self.root, {"a.test.ts": "test\n", "a.ts": "code\n", "src/b.test.ts": "test\n"})

        files = iter_files(self.root, ["**/*.ts"], ["**/*.test.ts"])

        self.assertEqual(files, ["a.ts", "src/nested/util.ts"])

    def test_write_manifest(self):
        manifest = build_manifest(self.root, self.config)
        out_dir = self.root.parent / "export"

        path = write_manifest(manifest, out_dir)

        self.assertEqual(path, out_dir / "code-index.json")
        self.assertEqual(json.loads(path.read_text(encoding="utf-8"))["counts"]["files"], 2)
        self.assertEqual(
            (out_dir / "files" / "src" / "nested" / "util.ts").read_text(encoding="utf-8"),
            "export const x = 1;\n",
        )


class LoadConfigTests(SimpleTestCase):
    """Tests for load_config."""

    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.dir = Path(tmp.name)

    def test_missing_file(self):
        with self.assertRaises(ManifestConfigError):
            load_config(self.dir / "missing.json")

    def test_invalid_json(self):
        path = self.dir / "config.json"
        path.write_text("{include: nope}", encoding="utf-8")

        with self.assertRaises(ManifestConfigError):
            load_config(path)

    def test_must_be_object(self):
        path = self.dir / "config.json"
        path.write_text("[]", encoding="utf-8")

        with self.assertRaises(ManifestConfigError):
            load_config(path)


class ExportManifestCommandTests(SimpleTestCase):
    """Tests for the export_manifest management command."""

    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.dir = Path(tmp.name)
        write_files(self.dir / "project", {"src/a.py": "x = 1\n", "src/b.py": "y = 2\n"})
        self.config = self.dir / "export.config.json"
        self.config.write_text(json.dumps({"include": ["src/**/*.py"]}), encoding="utf-8")

    def test_exports_files(self):
        out = StringIO()

        call_command(
            "export_manifest",
            "--config", str(self.config),
            "--root", str(self.dir / "project"),
            "--out", str(self.dir / "export"),
            stdout=out,
        )

        self.assertIn("Exported 2 files", out.getvalue())
        self.assertTrue((self.dir / "export" / "code-index.json").exists())

    def test_missing_config_raises_command_error(self):
        with self.assertRaises(CommandError):
            call_command(
                "export_manifest",
                "--config", str(self.dir / "missing.json"),
                "--root", str(self.dir / "project"),
                "--out", str(self.dir / "export"),
                stdout=StringIO(),
            )


class AppInfoContextProcessorTests(TestCase):
    """Tests for the app_info context processor."""

    def setUp(self):
        self.factory = RequestFactory()

    @override_settings(APP_VERSION="1.2.3")
    def test_anonymous_user(self):
        request = self.factory.get("/")
        request.user = AnonymousUser()

        context = app_info(request)

        self.assertEqual(context, {"app_version": "1.2.3", "pending_absences": 0, "unread_notifications": 0})

    def test_counts_for_authenticated_user(self):
        employee = Employee.objects.create(name="Aino", email="aino@example.com")
        AbsenceRequest.objects.create(employee=employee, start_date="2024-01-01", end_date="2024-01-01")
        AbsenceRequest.objects.create(
            employee=employee,
            start_date="2024-01-08",
            end_date="2024-01-08",
            status=AbsenceRequest.Status.APPROVED,
        )
        Notification.objects.create(type="absence_approved", title="A")
        request = self.factory.get("/")
        request.user = User.objects.create_user(username="testuser", password="testpass123")

        context = app_info(request)

        self.assertEqual(context["pending_absences"], 1)
        self.assertEqual(context["unread_notifications"], 1)


class ProductionSettingsTests(SimpleTestCase):
    """Tests for config.settings.production loaded against a fixed environment."""

    env = {
        "DJANGO_SECRET_KEY": "k3p8s9w2m5n7q1x4z6v0b3c5d7f9g1h2j4l6",
        "DJANGO_ALLOWED_HOSTS": "vuorot.example.com, www.vuorot.example.com",
        "DASHBOARD_URL": "https://vuorot.example.com/absences/",
    }

    def load(self, **overrides):
        module_name = "config.settings.production"
        sys.modules.pop(module_name, None)
        self.addCleanup(sys.modules.pop, module_name, None)
        with patch.dict(os.environ, {**self.env, **overrides}):
            return importlib.import_module(module_name)

    def test_keeps_base_sender_and_schedule_settings(self):
        production = self.load()

        self.assertEqual(production.DEFAULT_FROM_EMAIL, base_settings.DEFAULT_FROM_EMAIL)
        self.assertEqual(production.MAIL_QUEUE_BATCH_SIZE, base_settings.MAIL_QUEUE_BATCH_SIZE)
        self.assertEqual(production.SCHEDULE_DEFAULT_DAYS, base_settings.SCHEDULE_DEFAULT_DAYS)
        self.assertFalse(production.DEBUG)
        self.assertEqual(production.ALLOWED_HOSTS, ["vuorot.example.com", "www.vuorot.example.com"])
        self.assertEqual(production.DASHBOARD_URL, "https://vuorot.example.com/absences/")

    def test_dashboard_url_is_required(self):
        with self.assertRaisesMessage(ValueError, "DASHBOARD_URL"):
            self.load(DASHBOARD_URL="")

    def test_insecure_secret_key_is_rejected(self):
        with self.assertRaisesMessage(ValueError, "DJANGO_SECRET_KEY"):
            self.load(DJANGO_SECRET_KEY="insecure-development-key-change-me")
