import json

import pandas as pd
import pytest

from inspection_capture.cli import load_ratings, main, parse_gps

from .conftest import make_jpeg


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("INSPECTION_CAPTURE_CONFIG", raising=False)


def test_parse_gps():
    assert parse_gps("-6.2, 106.8") == (-6.2, 106.8)
    for bad in ("1", "91,0", "0,181", "a,b"):
        with pytest.raises(ValueError):
            parse_gps(bad)


def test_score_command(tmp_path, capsys):
    path = tmp_path / "ratings.json"
    path.write_text(
        json.dumps(
            {
                "ratings": [
                    {"component": "aroma", "choice": 5},
                    {"component": "floor_cleanliness", "choice": 2, "note": "muddy"},
                ]
            }
        ),
        encoding="utf-8",
    )
    assert main(["score", str(path)]) == 0
    out = capsys.readouterr().out
    assert "Score: 73 (Good)" in out
    assert "Components: 2" in out
    assert "Missing required: wall_condition" in out


def test_score_command_rejects_bad_choice(tmp_path, capsys):
    path = tmp_path / "ratings.json"
    path.write_text(json.dumps([{"component": "aroma", "choice": 9}]), encoding="utf-8")
    assert main(["score", str(path)]) == 2
    assert "[error]" in capsys.readouterr().out


def test_load_ratings_accepts_plain_list(tmp_path):
    path = tmp_path / "ratings.json"
    path.write_text(json.dumps([{"component": "soap_availability", "choice": 3}]), encoding="utf-8")
    ratings = load_ratings(path)
    assert [r.choice for r in ratings] == [3]


def test_process_command_writes_outputs(tmp_path, capsys):
    image = tmp_path / "stall.jpg"
    image.write_bytes(make_jpeg((400, 300), orientation=6))
    out_dir = tmp_path / "out"

    code = main(
        [
            "process",
            str(image),
            "--location-name",
            "Stall 2",
            "--timestamp",
            "2024-06-01T09:30:00",
            "--gps",
            "-6.2,106.8",
            "--no-geocode",
            "--out",
            str(out_dir),
        ]
    )

    assert code == 0
    audit = json.loads((out_dir / "stall.audit.json").read_text(encoding="utf-8"))
    assert audit["watermark"]["lines"] == ["Stall 2", "01/06/2024 09:30:00", "-6.200000, 106.800000"]
    assert audit["orientation"] == 6
    assert (audit["width"], audit["height"]) == (300, 400)
    assert "data" not in audit

    manifest = pd.read_csv(out_dir / "manifest.csv")
    assert list(manifest["source"]) == [str(image)]
    assert bool(manifest["watermarked"].iloc[0]) is True
    assert "[manifest]" in capsys.readouterr().out


def test_process_command_skips_missing_files(tmp_path):
    code = main(
        ["process", str(tmp_path / "nope.jpg"), "--location-name", "X", "--out", str(tmp_path)]
    )
    assert code == 1


@pytest.mark.parametrize("payload", [[1, 2], ["aroma"], {"ratings": [None]}])
def test_score_command_rejects_non_object_entries(tmp_path, capsys, payload):
    path = tmp_path / "ratings.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    assert main(["score", str(path)]) == 2
    assert "[error]" in capsys.readouterr().out
