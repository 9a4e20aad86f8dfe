"""Source artifacts for release candidates.

Each component in a candidate is archived straight from the tagged commit
with ``git archive`` (tar.gz and zip), and every archive gets a
``.sha512`` file holding its hex digest.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

from .models import ReleasePlan
from .shell import git

ARCHIVE_FORMATS = ("tar.gz", "zip")


def artifact_stem(
    prefix: str, repo: str, component: str, primary: str, version: str, rc: int
) -> str:
    """File name stem shared by a component's archives.

    Examples:
        ("apache", "foo", "foo", "foo", "1.2.0", 1) → "apache-foo-1.2.0-rc1-src"
        ("apache", "foo", "foo-core", "foo", "0.4.0", 2)
            → "apache-foo-foo-core-0.4.0-rc2-src"
    """
    parts = [prefix, repo] if component == primary else [prefix, repo, component]
    return "-".join([*parts, version, f"rc{rc}", "src"])


def sha512_file(path: Path) -> str:
    digest = hashlib.sha512()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1 << 20), b""):
            digest.update(chunk)
    return digest.hexdigest()


def write_checksum(path: Path) -> Path:
    """Write ``<file>.sha512`` next to path and return it."""
    checksum = path.with_name(path.name + ".sha512")
    checksum.write_text(f"{sha512_file(path)}\n")
    return checksum


def archive_component(commit: str, path: str, stem: str, out_dir: Path) -> list[Path]:
    """Archive one component directory at commit in every format.

    Returns:
        The archives followed by their checksum files.
    """
    out_dir.mkdir(parents=True, exist_ok=True)
    tree = commit if path in ("", ".") else f"{commit}:{path}"
    archives: list[Path] = []
    for fmt in ARCHIVE_FORMATS:
        dest = out_dir / f"{stem}.{fmt}"
        git("archive", f"--format={fmt}", f"--prefix={stem}/", "-o", str(dest), tree)
        archives.append(dest)
    return archives + [write_checksum(a) for a in archives]


def build_artifacts(
    plan: ReleasePlan, repo: str, prefix: str, commit: str, out_dir: Path
) -> list[Path]:
    """Archive every component entry of a candidate plan.

    Args:
        plan: The candidate plan; its rc number goes into every name.
        repo: Repository name (without owner).
        prefix: Leading name segment (``artifact_prefix``).
        commit: Tagged commit to archive.
        out_dir: Directory receiving the files.
    """
    rc = plan.rc or 1
    files: list[Path] = []
    for entry in plan.entries:
        stem = artifact_stem(prefix, repo, entry.name, plan.primary, entry.new_version, rc)
        files.extend(archive_component(commit, entry.path, stem, out_dir))
        print(f"  {entry.name}: {stem}")
    return files


def read_checksums(files: list[Path]) -> dict[str, str]:
    """Archive name → digest, from downloaded ``.sha512`` files."""
    digests: dict[str, str] = {}
    for f in files:
        if f.name.endswith(".sha512"):
            text = f.read_text().strip()
            digests[f.name.removesuffix(".sha512")] = text.split()[0] if text else ""
    return digests
