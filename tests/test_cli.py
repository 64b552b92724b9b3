# %%
"""Test for the command line interface."""

from __future__ import annotations

import stat
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from aptify.apt.cli import build_parser, default_config_dir, main
from aptify.config import load_config

if TYPE_CHECKING:
    from collections.abc import Callable

CONFIG = """\
apiVersion: aptify/v1alpha1
kind: Repository
releases:
  - name: stable
    components:
      - name: main
        packages: [debs/*.deb]
"""


def test_default_config_dir(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", "/xdg")
    assert default_config_dir() == Path("/xdg/aptify")
    monkeypatch.delenv("XDG_CONFIG_HOME")
    assert default_config_dir() == Path.home() / ".config" / "aptify"


@pytest.mark.parametrize(
    ("argv", "expected"),
    [
        (["build", "-c", "aptify.yaml"], {"repository_dir": Path("repository")}),
        (
            ["serve", "-d", "repo", "--http-port", "9000", "-l", "0.0.0.0"],
            {"repository_dir": Path("repo"), "http_port": 9000, "listen": "0.0.0.0"},
        ),
        (["verify", "-d", "repo", "stable", "sid"], {"releases": ["stable", "sid"]}),
        (["init-keys", "--log-level", "debug"], {"log_level": "DEBUG", "name": None}),
        (["init-config"], {"output": Path("aptify.yaml")}),
    ],
)
def test_build_parser(argv: list[str], expected: dict) -> None:
    args = build_parser().parse_args(argv)
    for key, value in expected.items():
        assert getattr(args, key) == value


def test_parser_requires_command() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_main_reports_errors(tmp_path: Path) -> None:
    """Errors are logged and turn into a non-zero exit code."""
    argv = [
        "build",
        "-c",
        str(tmp_path / "missing.yaml"),
        "--config-dir",
        str(tmp_path / "config"),
    ]
    assert main(argv) == 1
    assert stat.S_IMODE((tmp_path / "config").stat().st_mode) == 0o700


def test_init_config(tmp_path: Path, make_deb: Callable[..., Path]) -> None:
    """The starter configuration loads and finds packages in `debs/`."""
    make_deb("hello")
    config = tmp_path / "aptify.yaml"
    argv = ["init-config", "-o", str(config), "--config-dir", str(tmp_path / "config")]
    assert main(argv) == 0

    conf = load_config(config)
    paths = conf.package_paths(conf.releases[0].components[0])
    assert [p.name for p in paths] == ["hello_1.0-1_amd64.deb"]

    config.write_text("keep me", "utf-8")
    assert main(argv) == 1
    assert config.read_text("utf-8") == "keep me"


def test_main_missing_key(
    tmp_path: Path,
    make_deb: Callable[..., Path],
    caplog: pytest.LogCaptureFixture,
) -> None:
    make_deb("hello")
    config = tmp_path / "aptify.yaml"
    config.write_text(CONFIG, "utf-8")
    argv = ["build", "-c", str(config), "--config-dir", str(tmp_path / "config")]
    assert main(argv) == 1
    assert "aptify init-keys" in caplog.text


@pytest.mark.gpg
def test_init_build_verify(
    tmp_path: Path,
    make_deb: Callable[..., Path],
    gpg_available: None,
) -> None:
    """Keys are created once, then used to build a verifiable repository."""
    make_deb("hello")
    config = tmp_path / "aptify.yaml"
    config.write_text(CONFIG, "utf-8")
    config_dir = tmp_path / "config"
    repo = tmp_path / "repo"
    init = [
        "init-keys",
        "--name",
        "cli test",
        "--key-length",
        "2048",
        "--config-dir",
        str(config_dir),
    ]
    assert main(init) == 0
    private_key = config_dir / "aptify_private.asc"
    assert stat.S_IMODE(private_key.stat().st_mode) == 0o600
    assert (config_dir / "aptify_public.asc").is_file()
    assert main(init) == 1

    common = ["-d", str(repo), "--config-dir", str(config_dir)]
    build = ["build", "-c", str(config), *common]
    assert main(build) == 0
    assert (repo / "pool/main/h/hello/hello_1.0-1_amd64.deb").is_file()

    assert main(["verify", "stable", *common]) == 0
    (repo / "dists/stable/main/binary-amd64/Packages").write_text("tampered", "utf-8")
    assert main(["verify", "stable", *common]) == 1
