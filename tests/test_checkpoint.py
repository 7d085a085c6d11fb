"""
Tests for the Checkpoint Store
"""

import json

import pytest

from merge_gate.checkpoint import CHECKPOINT_VERSION, Checkpoint, CheckpointStore
from merge_gate.main import CheckSpec, CheckpointError, Verdict


def _checkpoint(**overrides):
    values = dict(
        run_id="a1b2c3d4",
        started_at=1_700_000_000.0,
        deadline=1_700_001_800.0,
        specs=(CheckSpec("build"), CheckSpec("lint", required=False)),
    )
    values.update(overrides)
    return Checkpoint(**values)


class TestCheckpointStore:
    """Tests for CheckpointStore"""

    def test_load_missing_returns_none(self, tmp_path):
        store = CheckpointStore(tmp_path / "missing.json")
        assert not store.exists()
        assert store.load() is None

    def test_save_and_load(self, tmp_path):
        """Should persist every field needed to resume a run"""
        store = CheckpointStore(tmp_path / "nested" / "checkpoint.json")
        store.save(_checkpoint(
            verdict=Verdict.FAILURE,
            reported=True,
            ticks=4,
            last_states={"build": "failure"},
        ))

        loaded = store.load()
        assert loaded.run_id == "a1b2c3d4"
        assert loaded.deadline == 1_700_001_800.0
        assert loaded.specs == (CheckSpec("build"), CheckSpec("lint", required=False))
        assert loaded.verdict == Verdict.FAILURE
        assert loaded.reported is True
        assert loaded.ticks == 4
        assert loaded.last_states == {"build": "failure"}

    def test_file_format(self, tmp_path):
        path = tmp_path / "checkpoint.json"
        CheckpointStore(path).save(_checkpoint())

        data = json.loads(path.read_text())
        assert data["version"] == CHECKPOINT_VERSION
        assert data["checks"] == [
            {"name": "build", "required": True},
            {"name": "lint", "required": False},
        ]
        assert data["verdict"] == "pending"
        assert not (tmp_path / "checkpoint.json.tmp").exists()

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "checkpoint.json"
        path.write_text("{not json")
        with pytest.raises(CheckpointError):
            CheckpointStore(path).load()

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "checkpoint.json"
        path.write_text("[1, 2, 3]")
        with pytest.raises(CheckpointError):
            CheckpointStore(path).load()

    @pytest.mark.parametrize("data", [
        {"started_at": 1.0, "deadline": 2.0, "checks": []},
        {"run_id": "x", "started_at": "soon", "deadline": 2.0, "checks": []},
        {"run_id": "x", "started_at": 1.0, "deadline": 2.0, "checks": [], "verdict": "maybe"},
    ])
    def test_malformed_checkpoint(self, tmp_path, data):
        path = tmp_path / "checkpoint.json"
        path.write_text(json.dumps(data))
        with pytest.raises(CheckpointError):
            CheckpointStore(path).load()

    def test_clear(self, tmp_path):
        store = CheckpointStore(tmp_path / "checkpoint.json")
        store.save(_checkpoint())
        store.clear()
        assert not store.exists()
        store.clear()
