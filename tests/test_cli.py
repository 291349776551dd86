"""
CLI smoke tests: each subcommand run in-process through ``main(argv)``.
"""
import json

import pytest

from oanca_engine.cli import main

NOW = ["--now", "2026-01-31"]


@pytest.fixture
def data_files(tmp_path):
    history = tmp_path / "sales_history.jsonl"
    queries = tmp_path / "queries.jsonl"
    listings = tmp_path / "listings.jsonl"
    main(NOW + [
        "generate", "--output", str(history), "--count", "150", "--seed", "3",
        "--queries", str(queries), "--listings", str(listings),
    ])
    return history, queries, listings


class TestCli:
    def test_generate(self, capsys, data_files):
        history, queries, listings = data_files
        assert "Generated 150 sales records" in capsys.readouterr().out
        assert queries.exists() and listings.exists()

    def test_price(self, data_files, capsys):
        history, _, _ = data_files
        capsys.readouterr()
        main(NOW + ["price", "--history", str(history), "--make", "Suzuki",
                    "--model", "Jimny", "--year", "2024"])
        result = json.loads(capsys.readouterr().out)
        assert result["verdict"] == "NEED_PICS"

    def test_batch_and_replay(self, data_files, tmp_path, capsys):
        history, queries, _ = data_files
        hash_file = tmp_path / "expected_hash.txt"
        main(NOW + ["batch", "--history", str(history), "--queries", str(queries),
                    "--audit", str(tmp_path / "audit.jsonl"), "--hash-out", str(hash_file)])
        assert "BATCH OK" in capsys.readouterr().out

        main(NOW + ["replay", "--history", str(history), "--queries", str(queries),
                    "--audit", str(tmp_path / "replay.jsonl"), "--verify", str(hash_file)])
        assert "REPLAY OK" in capsys.readouterr().out

    def test_replay_mismatch_exits(self, data_files, tmp_path):
        history, queries, _ = data_files
        hash_file = tmp_path / "expected_hash.txt"
        hash_file.write_text("deadbeef\n")
        with pytest.raises(SystemExit) as exc:
            main(NOW + ["replay", "--history", str(history), "--queries", str(queries),
                        "--audit", str(tmp_path / "replay.jsonl"), "--verify", str(hash_file)])
        assert exc.value.code == 1

    def test_replicate(self, data_files, tmp_path, capsys):
        history, _, listings = data_files
        out = tmp_path / "opportunities.jsonl"
        capsys.readouterr()
        main(NOW + ["replicate", "--history", str(history), "--listings", str(listings),
                    "--output", str(out)])
        counters = json.loads(capsys.readouterr().out)
        assert set(counters) == {"listings_checked", "matched", "opportunities"}
        assert out.exists()

    def test_missing_history_exits(self, tmp_path):
        with pytest.raises(SystemExit) as exc:
            main(["price", "--history", str(tmp_path / "nope.jsonl"), "--make", "Toyota",
                  "--model", "Hilux", "--year", "2020"])
        assert exc.value.code == 1

    def test_bad_now_rejected(self):
        with pytest.raises(SystemExit) as exc:
            main(["--now", "yesterday", "generate", "--output", "x.jsonl"])
        assert exc.value.code == 2
