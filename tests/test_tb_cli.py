import argparse
import logging
from pathlib import Path

import pytest

import tb_cli

UNIFORM_DEMO = ["--demo", "128", "--k", "4", "--a", "0x02000000", "--b", "0"]


def test_no_arguments_prints_usage(capsys) -> None:
    assert tb_cli.main([]) == 1
    assert "usage: tb-cli" in capsys.readouterr().out


def test_help_exits_zero(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        tb_cli.main(["--help"])
    assert excinfo.value.code == 0
    assert "--from-file" in capsys.readouterr().out


def test_demo_report(capsys) -> None:
    assert tb_cli.main(UNIFORM_DEMO) == 0
    out = capsys.readouterr().out

    assert out.startswith("Mode: demo\nRange: [0, 128) (128 samples)\n")
    assert "  a = 0x2000000\n" in out
    assert "  b = 0x0\n" in out
    assert "  k = 4 (buckets = 16)\n" in out
    assert "  sample_count = 128\n" in out
    assert "  bucket_count = 16\n" in out
    assert "  mean         = 8.0000\n" in out
    assert "  stddev       = 0.0000\n" in out
    assert "  chi2         = 0.0000\n" in out
    assert "  uniformity   = 100.0000 %\n" in out
    assert "Bucket counts" not in out


def test_show_buckets_with_limit(capsys) -> None:
    assert tb_cli.main(UNIFORM_DEMO + ["--show-buckets", "3"]) == 0
    out = capsys.readouterr().out
    assert "Bucket counts (first 3):\n  [0] = 8\n  [1] = 8\n  [2] = 8\n" in out
    assert "[3]" not in out


@pytest.mark.parametrize("extra", [["--show-buckets"], ["--show-buckets", "0"], ["--show-buckets", "99"]])
def test_show_buckets_all(capsys, extra) -> None:
    assert tb_cli.main(UNIFORM_DEMO + extra) == 0
    out = capsys.readouterr().out
    assert "Bucket counts (first 16):" in out
    assert "  [15] = 8\n" in out


def test_show_buckets_before_other_options(capsys) -> None:
    assert tb_cli.main(["--show-buckets", "--demo", "16", "--k", "1"]) == 0
    assert "Bucket counts (first 2):" in capsys.readouterr().out


def test_default_config_is_reported(capsys) -> None:
    assert tb_cli.main(["--demo", "1000"]) == 0
    out = capsys.readouterr().out
    assert "  a = 0x9E3779B1\n" in out
    assert "  b = 0x85EBCA77\n" in out
    assert "  k = 12 (buckets = 4096)\n" in out


def test_preset_and_explicit_override(capsys) -> None:
    assert tb_cli.main(["--demo", "10", "--preset", "wang"]) == 0
    out = capsys.readouterr().out
    assert "  a = 0x27D4EB2D\n" in out
    assert "  b = 0x165667B1\n" in out

    assert tb_cli.main(["--a", "ff", "--demo", "10", "--preset", "wang"]) == 0
    out = capsys.readouterr().out
    assert "  a = 0xFF\n" in out
    assert "  b = 0x165667B1\n" in out


def test_from_file(tmp_path: Path, capsys) -> None:
    path = tmp_path / "ips.txt"
    path.write_text("# test set\n0.0.0.1\n10.0.0.1\n192.168.0.1\n")

    assert tb_cli.main(["--from-file", str(path), "--k", "0"]) == 0
    out = capsys.readouterr().out
    assert out.startswith(f"Mode: from-file\nFile: {path}\n")
    assert "  sample_count = 3\n" in out
    assert "  bucket_count = 1\n" in out


@pytest.mark.parametrize(
    "argv, message",
    [
        (["--demo", "0"], "Demo count N must be > 0"),
        (["--demo", "abc"], "invalid non-negative integer"),
        (["--demo", "10", "--a", "zz"], "invalid hex value"),
        (["--demo", "10", "--b", "0x100000000"], "out of 32-bit range"),
        (["--demo", "10", "--preset", "nope"], "invalid choice"),
        (["--demo", "10", "--bogus"], "unrecognized arguments"),
        (["--k", "4"], "required"),
        (["--demo", "10", "--from-file", "x"], "not allowed with"),
    ],
)
def test_invalid_arguments(capsys, argv, message) -> None:
    assert tb_cli.main(argv) == 1
    err = capsys.readouterr().err
    assert err.startswith("Error: ")
    assert message in err
    assert "usage: tb-cli" in err


def test_bad_address_file(tmp_path: Path, capsys) -> None:
    path = tmp_path / "ips.txt"
    path.write_text("10.0.0.1\n1.2.3\n")
    assert tb_cli.main(["--from-file", str(path)]) == 1
    assert "line 2" in capsys.readouterr().err


def test_empty_address_file(tmp_path: Path, capsys) -> None:
    path = tmp_path / "ips.txt"
    path.write_text("\n# only comments\n")
    assert tb_cli.main(["--from-file", str(path)]) == 1
    assert "No valid IPv4 addresses found" in capsys.readouterr().err


def test_missing_address_file(tmp_path: Path, capsys) -> None:
    assert tb_cli.main(["--from-file", str(tmp_path / "missing.txt")]) == 1
    assert capsys.readouterr().err.startswith("Error: ")


def test_verbose_logs_progress(caplog, capsys) -> None:
    caplog.set_level(logging.INFO, logger="tb_cli")
    assert tb_cli.main(UNIFORM_DEMO + ["--verbose"]) == 0
    assert "bucketed 128 addresses" in caplog.text
    assert "config: a=0x02000000" in caplog.text


def test_parse_hex32() -> None:
    assert tb_cli.parse_hex32("0x9E3779B1") == 0x9E3779B1
    assert tb_cli.parse_hex32("0X1f") == 0x1F
    assert tb_cli.parse_hex32("ffffffff") == 0xFFFFFFFF


@pytest.mark.parametrize("text", ["0x0x1", "f_f", "+ff", " ff", "ff ", "-1", "0x", "", "0xg1"])
def test_parse_hex32_rejects_malformed(text: str) -> None:
    with pytest.raises(argparse.ArgumentTypeError, match="invalid hex value"):
        tb_cli.parse_hex32(text)


def test_malformed_hex_option_is_reported(capsys) -> None:
    assert tb_cli.main(["--demo", "10", "--a", "0x0x1"]) == 1
    assert "invalid hex value: '0x0x1'" in capsys.readouterr().err


@pytest.mark.parametrize("text", ["+5", " 5", "1_000", "²"])
def test_parse_count_rejects_malformed(text: str) -> None:
    with pytest.raises(argparse.ArgumentTypeError):
        tb_cli.parse_count(text)


def test_out_of_memory_is_reported(monkeypatch, capsys) -> None:
    def exhausted(self, start, end):
        raise MemoryError()

    monkeypatch.setattr(tb_cli.BucketEngine, "distribution_range", exhausted)
    assert tb_cli.main(["--demo", "10", "--k", "40"]) == 1
    err = capsys.readouterr().err
    assert err.startswith("Error: MemoryError")
    assert "usage: tb-cli" in err
