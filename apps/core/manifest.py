"""
Source manifest export.

Walks a directory tree and produces a JSON manifest of its text files (size,
SHA-256, language and content chunks, with secrets redacted), plus one plain
text dump per file, so the code can be read by external tools.

Config keys (JSON, camelCase):
    include          glob patterns relative to the root (default: src/**/*)
    exclude          glob patterns to skip
    maxFileBytes     skip files larger than this
    maxPreviewBytes  files up to this size are a single chunk (default 250000)
    chunkBytes       chunk size for larger files (default 64000)
    redact           regular expressions replaced with [REDACTED]
"""

from __future__ import annotations

import fnmatch
import hashlib
import json
import logging
import re
from pathlib import Path

from django.utils import timezone

logger = logging.getLogger(__name__)

DEFAULT_INCLUDE = ["src/**/*"]
DEFAULT_MAX_PREVIEW_BYTES = 250_000
DEFAULT_CHUNK_BYTES = 64_000
REDACTED = "[REDACTED]"
MANIFEST_NAME = "code-index.json"

LANGUAGES = {
    "ts": "typescript", "tsx": "tsx", "js": "javascript", "jsx": "jsx",
    "mjs": "javascript", "cjs": "javascript",
    "css": "css", "scss": "scss", "sass": "sass", "less": "less",
    "html": "html", "md": "markdown", "json": "json", "yml": "yaml", "yaml": "yaml",
    "go": "go", "rs": "rust", "py": "python", "java": "java", "cs": "csharp",
    "php": "php", "rb": "ruby", "kt": "kotlin", "swift": "swift", "cpp": "cpp", "c": "c",
}


class ManifestConfigError(ValueError):
    """Raised for an unreadable or invalid export config."""


def load_config(path: Path) -> dict:
    if not path.exists():
        raise ManifestConfigError(f"Missing export config: {path}")
    try:
        config = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ManifestConfigError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(config, dict):
        raise ManifestConfigError(f"{path} must contain a JSON object")
    return config


def detect_language(rel_path: str) -> str:
    suffix = rel_path.rsplit(".", 1)[-1].lower() if "." in rel_path else ""
    return LANGUAGES.get(suffix, suffix or "text")


def is_probably_binary(data: bytes) -> bool:
    """A NUL byte in the first KiB means binary."""
    return b"\x00" in data[:1024]


def redact(text: str, patterns: list[re.Pattern]) -> str:
    for pattern in patterns:
        text = pattern.sub(REDACTED, text)
    return text


def _compile_patterns(raw_patterns) -> list[re.Pattern]:
    compiled = []
    for raw in raw_patterns or []:
        try:
            # Leading inline flags such as (?i) are native to Python regexes.
            compiled.append(re.compile(raw))
        except re.error as exc:
            raise ManifestConfigError(f"Invalid redact pattern {raw!r}: {exc}") from exc
    return compiled


def matches_exclude(rel: str, pattern: str) -> bool:
    """
    Glob match where ``**/`` may also stand for no directories at all, so
    ``**/*.test.ts`` excludes ``a.test.ts`` at the root as well.
    """
    candidates = {pattern, pattern.replace("/**/", "/")}
    candidates |= {c[3:] for c in candidates if c.startswith("**/")}
    return any(fnmatch.fnmatch(rel, candidate) for candidate in candidates)


def iter_files(root: Path, include: list[str], exclude: list[str]) -> list[str]:
    """Relative POSIX paths matched by ``include`` and not by ``exclude``."""
    found = set()
    for pattern in include:
        for path in root.glob(pattern):
            if path.is_symlink() or not path.is_file():
                continue
            rel = path.relative_to(root).as_posix()
            if any(part.startswith(".") for part in rel.split("/")):
                continue
            if any(matches_exclude(rel, ex) for ex in exclude):
                continue
            found.add(rel)
    return sorted(found)


def build_manifest(root: Path, config: dict) -> dict:
    root = Path(root)
    include = config.get("include") or DEFAULT_INCLUDE
    exclude = config.get("exclude") or []
    max_file_bytes = config.get("maxFileBytes")
    max_preview_bytes = config.get("maxPreviewBytes") or DEFAULT_MAX_PREVIEW_BYTES
    chunk_bytes = config.get("chunkBytes") or DEFAULT_CHUNK_BYTES
    patterns = _compile_patterns(config.get("redact"))

    manifest = {
        "generatedAt": timezone.now().isoformat(),
        "root": root.resolve().name,
        "counts": {"files": 0, "bytes": 0, "skipped": 0},
        "config": dict(config),
        "files": [],
    }
    counts = manifest["counts"]

    for rel in iter_files(root, include, exclude):
        try:
            data = (root / rel).read_bytes()
        except OSError:
            logger.warning("Skipping unreadable file %s", rel)
            counts["skipped"] += 1
            continue

        size = len(data)
        if max_file_bytes and size > max_file_bytes:
            counts["skipped"] += 1
            continue
        if is_probably_binary(data):
            counts["skipped"] += 1
            continue

        content = data.decode("utf-8", errors="replace")
        if size <= max_preview_bytes:
            chunks = [{"i": 0, "text": redact(content, patterns)}]
        else:
            chunks = [
                {"i": index, "text": redact(content[start:start + chunk_bytes], patterns)}
                for index, start in enumerate(range(0, len(content), chunk_bytes))
            ]

        manifest["files"].append({
            "path": rel,
            "size": size,
            "sha256": hashlib.sha256(content.encode("utf-8")).hexdigest(),
            "lang": detect_language(rel),
            "chunks": chunks,
        })
        counts["files"] += 1
        counts["bytes"] += size

    return manifest


def write_manifest(manifest: dict, out_dir: Path) -> Path:
    """Write the manifest JSON and a text dump per file under ``out_dir/files``."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    manifest_path = out_dir / MANIFEST_NAME
    manifest_path.write_text(json.dumps(manifest, indent=2, ensure_ascii=False), encoding="utf-8")

    for entry in manifest["files"]:
        dest = out_dir / "files" / entry["path"]
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_text("".join(chunk["text"] for chunk in entry["chunks"]), encoding="utf-8")

    return manifest_path
