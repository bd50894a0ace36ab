from __future__ import annotations

import gzip
from contextlib import contextmanager
from typing import TYPE_CHECKING

import pytest

from repo_dump import aggregation, cli
from repo_dump.exceptions import CompressionError

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from pytest_mock import MockerFixture

    from tests.conftest import WriteFiles

URL = "https://github.com/owner/demo"

COMMIT = {
    "last_commit_hash": "abc1234",
    "last_commit_date": "Fri May 17 09:03:07 2024 +0200",
    "last_commit_message": "Fix build",
}


class FakeClone:
    """Stand-in for `cloned_repository` serving a local directory."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.calls: list[tuple[str, str]] = []
        self.cleaned = False

    @contextmanager
    def __call__(self, url: str, branch: str) -> Iterator[Path]:
        self.calls.append((url, branch))
        try:
            yield self.root
        finally:
            self.cleaned = True


@pytest.fixture
def fake_clone(repo_dir: Path, mocker: MockerFixture) -> FakeClone:
    clone = FakeClone(repo_dir)
    mocker.patch.object(cli, "cloned_repository", side_effect=clone)
    mocker.patch.object(cli, "ensure_git_available")
    mocker.patch.object(cli, "remote_ref_exists", return_value=True)
    mocker.patch.object(cli, "read_last_commit", return_value=dict(COMMIT))
    return clone


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("OUTPUT_DIR", "TREE_DEPTH", "MISSING_FILE_POLICY", "LOG_FILE"):
        monkeypatch.delenv(f"REPO_DUMP_{key}", raising=False)


def only_artifact(out: Path) -> Path:
    texts = sorted(out.glob("*.txt"))
    assert len(texts) == 1
    return texts[0]


@pytest.mark.integration
def test_main_dumps_whole_repository(
    fake_clone: FakeClone,
    write_files: WriteFiles,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    write_files(
        {
            "README.md": "# readme\n",
            "src/a.js": "console.log(1)\n",
            ".github/workflows/ci.yml": "on: push\n",
            "node_modules/x.js": "x\n",
            "secrets/.env": "TOKEN=1\n",
            "icon.png": b"\x89PNG",
        },
    )
    out = tmp_path / "output"

    assert cli.main([URL, "--output-dir", str(out)]) == 0

    artifact = only_artifact(out)
    text = artifact.read_text(encoding="utf-8")
    assert artifact.name.startswith("demo_main_")
    assert gzip.decompress(artifact.with_name(artifact.name + ".gz").read_bytes()) == artifact.read_bytes()
    assert text.startswith(
        "Repository:          https://github.com/owner/demo\n"
        "Branch:              main\n"
        "Last Commit Date:    Fri May 17 09:03:07 2024 +0200\n"
        "Last Commit Hash:    abc1234\n"
        "Last Commit Message: Fix build\n"
        "=========================\n"
        "Directory Tree:\n.\n",
    )
    headers = [line for line in text.splitlines() if line.startswith("File: ")]
    assert headers == ["File: README.md", "File: src/a.js", "File: .github/workflows/ci.yml"]
    assert "node_modules/x.js" not in text
    assert fake_clone.calls == [(URL, "main")]
    assert fake_clone.cleaned
    assert "files=3" in capsys.readouterr().out


@pytest.mark.integration
def test_main_dumps_repository_without_selectable_files(
    fake_clone: FakeClone,
    write_files: WriteFiles,
    tmp_path: Path,
) -> None:
    write_files({"node_modules/x.js": "x\n", "logo.png": b"\x89PNG"})
    out = tmp_path / "output"

    assert cli.main([URL, "--output-dir", str(out)]) == 0

    text = only_artifact(out).read_text(encoding="utf-8")
    assert "Directory Tree:" in text
    assert "File: " not in text
    assert fake_clone.cleaned


@pytest.mark.integration
def test_main_dumps_sub_directory(
    fake_clone: FakeClone,
    write_files: WriteFiles,
    tmp_path: Path,
) -> None:
    write_files(
        {
            "README.md": "root\n",
            "src/README.md": "src docs\n",
            "src/app.py": "pass\n",
            "docs/guide.md": "guide\n",
        },
    )
    out = tmp_path / "output"

    assert cli.main([URL, "develop", "src/", "--output-dir", str(out)]) == 0

    artifact = only_artifact(out)
    text = artifact.read_text(encoding="utf-8")
    assert artifact.name.startswith("demo_develop_")
    assert text.splitlines()[:3] == [
        "Repository:          https://github.com/owner/demo",
        "Branch:              develop",
        "Directory:           src",
    ]
    assert "Last Commit" not in text
    assert [line for line in text.splitlines() if line.startswith("File: ")] == [
        "File: src/README.md",
        "File: src/app.py",
    ]
    cli.read_last_commit.assert_not_called()


@pytest.mark.integration
def test_main_dumps_single_file(
    fake_clone: FakeClone,
    write_files: WriteFiles,
    tmp_path: Path,
) -> None:
    write_files({"README.md": "root\n", "docs/guide.md": "# Guide\n"})
    out = tmp_path / "output"

    assert cli.main([URL, "main", "docs/guide.md", "--output-dir", str(out)]) == 0

    artifact = only_artifact(out)
    assert artifact.name.endswith("_guide.md.txt")
    assert artifact.read_bytes() == b"File: docs/guide.md\n\n# Guide\n"


@pytest.mark.integration
def test_main_rejects_invalid_url_before_cloning(fake_clone: FakeClone, tmp_path: Path) -> None:
    assert cli.main(["https://gitlab.com/owner/demo", "--output-dir", str(tmp_path / "output")]) == 1

    assert fake_clone.calls == []
    assert not (tmp_path / "output").exists()


@pytest.mark.integration
def test_main_reports_missing_ref(fake_clone: FakeClone, mocker: MockerFixture, tmp_path: Path) -> None:
    mocker.patch.object(cli, "remote_ref_exists", return_value=False)

    assert cli.main([URL, "nope", "--output-dir", str(tmp_path / "output")]) == 1

    assert fake_clone.calls == []


@pytest.mark.integration
def test_main_reports_missing_sub_path_and_cleans_up(
    fake_clone: FakeClone,
    write_files: WriteFiles,
    tmp_path: Path,
) -> None:
    write_files({"README.md": "root\n"})

    assert cli.main([URL, "main", "missing/", "--output-dir", str(tmp_path / "output")]) == 1

    assert fake_clone.cleaned
    assert not (tmp_path / "output").exists()


@pytest.mark.integration
def test_main_cleans_up_when_compression_fails(
    fake_clone: FakeClone,
    write_files: WriteFiles,
    mocker: MockerFixture,
    tmp_path: Path,
) -> None:
    write_files({"README.md": "root\n"})
    mocker.patch.object(
        aggregation,
        "compress_file",
        side_effect=CompressionError(path=tmp_path, message="Failed to compress the output file."),
    )

    assert cli.main([URL, "--output-dir", str(tmp_path / "output")]) == 1

    assert fake_clone.cleaned


@pytest.mark.integration
def test_main_writes_logs_to_file(
    fake_clone: FakeClone,
    write_files: WriteFiles,
    tmp_path: Path,
) -> None:
    write_files({"README.md": "root\n"})
    log_file = tmp_path / "dump.log"

    assert cli.main([URL, "--output-dir", str(tmp_path / "output"), "--log-file", str(log_file)]) == 0

    assert "Repository dump complete" in log_file.read_text(encoding="utf-8")
