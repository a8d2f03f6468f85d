import json
from pathlib import Path

import cbor2
import pytest

from lockplan.cli import main


@pytest.fixture
def manifest_path(tmp_path: Path) -> Path:
    path = tmp_path / "lock.json"
    path.write_text(
        json.dumps(
            {
                "version": 1,
                "root": "app",
                "packages": [
                    {
                        "name": "app",
                        "version": "0.1.0",
                        "source": "registry+https://example.invalid/index",
                        "dependencies": ["torch-sys"],
                        "license": "BlueOak-1.0.0",
                    },
                    {
                        "name": "torch-sys",
                        "version": "0.4.0",
                        "source": "registry+https://example.invalid/index",
                        "license": "LicenseRef-Unfree",
                    },
                ],
            }
        ),
        encoding="utf-8",
    )
    return path


def test_plan_command_writes_json_plan(tmp_path: Path, manifest_path: Path) -> None:
    overrides = tmp_path / "overrides.json"
    overrides.write_text(
        json.dumps({"torch-sys": {"env": {"LIBTORCH": "/opt/libtorch"}}}),
        encoding="utf-8",
    )
    output = tmp_path / "plan.json"

    code = main(
        [
            "plan",
            str(manifest_path),
            "--allow-package",
            "torch-sys",
            "--overrides",
            str(overrides),
            "-o",
            str(output),
        ]
    )

    assert code == 0
    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["root"] == "app-0.1.0"
    assert payload["units"]["app-0.1.0"]["dependencies"] == ["torch-sys-0.4.0"]
    assert payload["units"]["torch-sys-0.4.0"]["env"] == {"LIBTORCH": "/opt/libtorch"}


def test_restricted_package_exits_with_error_code(
    tmp_path: Path,
    manifest_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    log = tmp_path / "logs" / "plan.jsonl"

    code = main(["plan", str(manifest_path), "--log", str(log)])

    assert code == 1
    err = capsys.readouterr().err
    assert err.startswith("error[E_RESTRICTED_PACKAGE]")
    assert "torch-sys" in err
    records = [json.loads(line) for line in log.read_text(encoding="utf-8").splitlines()]
    assert [record["operation"] for record in records] == ["plan_start", "gate_denied"]


def test_allow_license_flag_and_cbor_output(tmp_path: Path, manifest_path: Path) -> None:
    output = tmp_path / "plan.cbor"

    code = main(
        [
            "plan",
            str(manifest_path),
            "--allow-license",
            "LicenseRef-Unfree",
            "--format",
            "cbor",
            "-o",
            str(output),
            "-j",
            "2",
        ]
    )

    assert code == 0
    payload = cbor2.loads(output.read_bytes())
    assert payload["order"] == ["torch-sys-0.4.0", "app-0.1.0"]


def test_no_default_licenses_restricts_everything(manifest_path: Path) -> None:
    code = main(
        [
            "plan",
            str(manifest_path),
            "--no-default-licenses",
            "--allow-license",
            "LicenseRef-Unfree",
        ]
    )

    assert code == 1


def test_cargo_lock_with_license_mapping(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    lock = tmp_path / "Cargo.lock"
    lock.write_text(
        'version = 3\n\n[[package]]\nname = "hello"\nversion = "0.1.0"\n',
        encoding="utf-8",
    )
    licenses = tmp_path / "licenses.json"
    licenses.write_text(json.dumps({"hello": "MIT"}), encoding="utf-8")

    code = main(["plan", str(lock), "--licenses", str(licenses), "--toolchain", "rust"])

    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["units"]["hello-0.1.0"]["source"]["origin"] == str(tmp_path)


def test_invalid_license_mapping_is_reported(
    tmp_path: Path,
    manifest_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    licenses = tmp_path / "licenses.json"
    licenses.write_text(json.dumps({"hello": 1}), encoding="utf-8")

    code = main(["plan", str(manifest_path), "--licenses", str(licenses)])

    assert code == 1
    assert "error[E_VALIDATION]" in capsys.readouterr().err
