from void_installer import pkglist
from void_installer.lib.xbps import strip_version


def test_strip_version():
    assert strip_version("linux6.6-6.6.52_1") == "linux6.6"
    assert strip_version("xbps-triggers-0.127_1") == "xbps-triggers"
    assert strip_version("noversion") == "noversion"


def test_list_writes_names_without_versions(tmp_path, fake_run):
    fake_run.stdout[("xbps-query", "-m")] = "base-system-0.114_2\nfirefox-133.0_1\nxbps-triggers-0.127_1\n"
    out = tmp_path / "pkgs.txt"

    names = pkglist.list_packages(str(out))

    assert names == ["base-system", "firefox", "xbps-triggers"]
    assert out.read_text() == "base-system\nfirefox\nxbps-triggers\n"


def test_restore_installs_prereqs_then_list(tmp_path, fake_run):
    src = tmp_path / "pkgs.txt"
    src.write_text("# saved\nfirefox\n\nneovim  # editor\n", encoding="utf-8")

    pkglist.restore_packages(str(src))

    assert fake_run.calls == [
        ["xbps-install", "-Sy", "xtools", "void-repo-nonfree", "void-repo-multilib", "void-repo-multilib-nonfree"],
        ["xbps-install", "-Syu"],
        ["xbps-install", "-y", "firefox", "neovim"],
    ]


def test_cli_restore_missing_file_exits_1(tmp_path, fake_run):
    rc = pkglist.main(["--log", str(tmp_path / "log"), "restore", "-i", str(tmp_path / "nope.txt")])
    assert rc == 1
    assert fake_run.calls == []
