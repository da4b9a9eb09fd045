"""Shared fixtures: a throwaway course book and a fake aws/Rscript runner."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Callable

import pytest
from tenacity import wait_none

from course_ops import pipeline, render, storage
from course_ops.settings import Settings

ACCESS_KEY = "AKIATESTKEY"
SECRET_KEY = "super-secret-value"

_ENV_VARS = (
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "AWS_REGION",
    "AWS_S3_ENDPOINT",
    "BUILD_DIR",
    "COURSE_BUILD_DIR",
    "COURSE_WORKSPACE_DIR",
    "COURSE_SOURCE_DIR",
    "COURSE_BUCKET",
    "COURSE_S3_ENDPOINT_URL",
)


class FakeStorageAndRenderer:
    """Stands in for `aws s3 sync` and `Rscript`, backed by an in-memory bucket.

    ``remote`` maps an s3 prefix URI to {relative path: bytes}.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.kwargs: list[dict] = []
        self.remote: dict[str, dict[str, bytes]] = {}
        self._failures: list[tuple[Callable[[list[str]], bool], str, int | None]] = []
        self.render_output = b"<html>course</html>"

    def fail_on(
        self,
        predicate: Callable[[list[str]], bool],
        stderr: str,
        *,
        times: int | None = None,
    ) -> None:
        self._failures.append((predicate, stderr, times))

    def commands(self, tool: str) -> list[list[str]]:
        return [cmd for cmd in self.calls if cmd[0] == tool]

    def uploads(self) -> list[list[str]]:
        return [
            cmd
            for cmd in self.commands("aws")
            if not cmd[3].startswith("s3://") and cmd[4].startswith("s3://")
        ]

    def __call__(self, cmd, **kwargs) -> subprocess.CompletedProcess[str]:
        cmd = list(cmd)
        self.calls.append(cmd)
        self.kwargs.append(kwargs)

        for index, (predicate, stderr, times) in enumerate(self._failures):
            if predicate(cmd) and (times is None or times > 0):
                if times is not None:
                    self._failures[index] = (predicate, stderr, times - 1)
                raise subprocess.CalledProcessError(1, cmd, output="", stderr=stderr)

        if cmd[0] == "aws":
            self._sync(cmd[3], cmd[4], delete="--delete" in cmd)
        elif cmd[0] == "Rscript":
            self._render(Path(kwargs["cwd"]))
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    def _sync(self, source: str, destination: str, *, delete: bool = False) -> None:
        if source.startswith("s3://"):
            target = Path(destination)
            for rel, payload in self.remote.get(source, {}).items():
                path = target / rel
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_bytes(payload)
        else:
            bucket = self.remote.setdefault(destination, {})
            if delete:
                bucket.clear()
            root = Path(source)
            for path in sorted(root.rglob("*")):
                if path.is_file():
                    bucket[path.relative_to(root).as_posix()] = path.read_bytes()

    def _render(self, book_dir: Path) -> None:
        site = book_dir / "website"
        site.mkdir(parents=True, exist_ok=True)
        (site / "index.html").write_bytes(self.render_output)
        cache = book_dir / "_bookdown_files"
        cache.mkdir(parents=True, exist_ok=True)
        (cache / "index.rdb").write_bytes(b"knitr-cache")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def course_dir(tmp_path: Path) -> Path:
    source = tmp_path / "course_files"
    source.mkdir()
    (source / "_bookdown.yml").write_text(
        "book_filename: scRNAseq-course\n"
        "output_dir: website\n"
        "rmd_files:\n"
        "  - index.Rmd\n"
        "  - introduction.Rmd\n"
        "  - quality-control.Rmd\n",
        encoding="utf-8",
    )
    (source / "index.Rmd").write_text("# Analysis of single cell RNA-seq data\n")
    (source / "introduction.Rmd").write_text("# Introduction\n")
    (source / "quality-control.Rmd").write_text("# Quality control\n")
    (source / "figures").mkdir()
    (source / "figures" / "umi.png").write_bytes(b"\x89PNG")
    return source


@pytest.fixture
def settings(tmp_path: Path, course_dir: Path) -> Settings:
    return Settings(
        workspace_dir=tmp_path / "workspace",
        source_dir=course_dir,
        aws_access_key_id=ACCESS_KEY,
        aws_secret_access_key=SECRET_KEY,
        aws_region="other-v2-signature",
        s3_endpoint_url="https://s3.example.org",
    )


@pytest.fixture
def fake(monkeypatch) -> FakeStorageAndRenderer:
    runner = FakeStorageAndRenderer()
    monkeypatch.setattr(storage, "run_logged", runner)
    monkeypatch.setattr(render, "run_logged", runner)
    monkeypatch.setattr(pipeline, "ensure", lambda commands: None)
    monkeypatch.setattr(storage._run_sync.retry, "wait", wait_none())
    return runner


@pytest.fixture
def remote_inputs(fake: FakeStorageAndRenderer) -> FakeStorageAndRenderer:
    fake.remote["s3://singlecellcourse/data/"] = {
        "pancreas/muraro.rds": b"muraro",
        "tung/molecules.txt": b"molecules",
    }
    fake.remote["s3://singlecellcourse/_bookdown_files/"] = {
        "index_cache/html/__packages": b"SingleCellExperiment",
    }
    return fake

