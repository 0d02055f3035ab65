import json
import os
import stat
import threading
from collections import Counter
from unittest.mock import MagicMock, patch

import pytest

from agents.tagger import TagResult
from orchestrator.orchestrator import LibraryNotFoundError, TrackFixOrchestrator
from orchestrator.queue import Outcome


class FakeTagger:
    """Stands in for TaggerAgent; outcome chosen per path"""

    def __init__(self, outcome_for=None):
        self.outcome_for = outcome_for or (lambda path, dry_run: Outcome.SIMULATED if dry_run else Outcome.RECOVERED)
        self.calls = Counter()
        self.dry_calls = 0
        self._lock = threading.Lock()

    def process(self, path, dry_run=False):
        with self._lock:
            self.calls[(path, dry_run)] += 1
            if dry_run:
                self.dry_calls += 1
        return TagResult(path, self.outcome_for(path, dry_run))


def _orchestrator(make_config, library, **overrides):
    config = make_config(library__root=str(library), workers__threads=3, **overrides)
    orch = TrackFixOrchestrator(config, source=MagicMock())
    orch.tagger = FakeTagger()
    return orch


def test_discover_finds_audio_only(make_config, library):
    orch = _orchestrator(make_config, library)

    files = orch.discover()

    names = sorted(os.path.basename(f) for f in files)
    assert names == ["01 one.mp3", "02 two.FLAC", "loose.ogg", "song.m4a", "take.wav"]
    assert files == sorted(files)


def test_missing_folder_raises(make_config, tmp_path):
    config = make_config(library__root=str(tmp_path / "nope"))
    orch = TrackFixOrchestrator(config, source=MagicMock())

    with pytest.raises(LibraryNotFoundError):
        orch.run()


def test_run_visits_each_file_once_and_persists(make_config, library):
    orch = _orchestrator(make_config, library)

    summary = orch.run()

    assert summary["processed"] == 5
    assert summary["counts"]["recovered"] == 5
    assert summary["phase"] == "finished"
    assert all(count == 1 for count in orch.tagger.calls.values())
    assert len(orch.tagger.calls) == 5

    state = json.loads((library / ".trackfix_state.json").read_text(encoding="utf-8"))
    assert sorted(state) == sorted(orch.discovered)


def test_second_run_resumes(make_config, library):
    first = _orchestrator(make_config, library)
    first.run()

    (library / "new.mp3").write_bytes(b"x")
    second = _orchestrator(make_config, library)
    summary = second.run()

    assert summary["pending"] == 1
    assert summary["processed"] == 1
    assert [path for path, _ in second.tagger.calls] == [str((library / "new.mp3").resolve())]
    assert summary["state_size"] == 6


def test_persisted_set_is_superset_of_previous(make_config, library):
    state_file = library / ".trackfix_state.json"
    state_file.write_text(json.dumps(["/elsewhere/old.mp3"]), encoding="utf-8")

    _orchestrator(make_config, library).run()

    state = set(json.loads(state_file.read_text(encoding="utf-8")))
    assert "/elsewhere/old.mp3" in state
    assert len(state) == 6


def test_no_resume_ignores_and_keeps_state_file(make_config, library):
    state_file = library / ".trackfix_state.json"
    state_file.write_text(json.dumps(["/elsewhere/old.mp3"]), encoding="utf-8")

    orch = _orchestrator(make_config, library, features__resumable=False)
    summary = orch.run()

    assert summary["pending"] == 5
    assert json.loads(state_file.read_text(encoding="utf-8")) == ["/elsewhere/old.mp3"]


def test_dry_run_does_not_record_state(make_config, library):
    orch = _orchestrator(make_config, library, run__dry_run=True)

    summary = orch.run()

    assert summary["mode"] == "dry"
    assert summary["counts"]["simulated"] == 5
    assert not (library / ".trackfix_state.json").exists()


def test_renamed_file_is_recorded_under_new_name(make_config, library):
    orch = _orchestrator(make_config, library)
    renamed = str(library / "renamed.mp3")

    def process(path, dry_run=False):
        if path.endswith("one.mp3"):
            return TagResult(path, Outcome.RENAMED, new_path=renamed)
        return TagResult(path, Outcome.RECOVERED)

    orch.tagger.process = process
    orch.run()

    assert renamed in orch.processed


def test_auto_dry_real_switches_when_sample_is_clean(make_config, library):
    orch = _orchestrator(make_config, library, features__auto_dry_real=True, run__dry_run_sample=2)

    summary = orch.run()

    assert orch.switched_to_real is True
    assert orch.tagger.dry_calls == 2
    assert summary["mode"] == "real"
    assert summary["processed"] == 5
    assert summary["counts"]["recovered"] == 5


def test_auto_dry_real_aborts_on_bad_sample(make_config, library):
    orch = _orchestrator(make_config, library, features__auto_dry_real=True, run__max_failure_ratio=0.2)
    orch.tagger = FakeTagger(lambda path, dry_run: Outcome.FAILED)

    summary = orch.run()

    assert orch.switched_to_real is False
    assert summary["phase"] == "aborted"
    assert summary["mode"] == "dry"
    assert not (library / ".trackfix_state.json").exists()


@pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
def test_fix_permissions(make_config, library):
    target = library / "loose.ogg"
    target.chmod(0o600)
    orch = _orchestrator(make_config, library, permissions__mode=0o755)

    assert orch.fix_permissions() == 0
    assert stat.S_IMODE(target.stat().st_mode) == 0o755


def test_interrupted_real_run_saves_state(make_config, library):
    orch = _orchestrator(make_config, library)

    with patch("orchestrator.pool.wait", side_effect=KeyboardInterrupt):
        with pytest.raises(KeyboardInterrupt):
            orch.run()

    assert orch.stats.phase == "interrupted"
    assert orch.state_saved
    assert (library / ".trackfix_state.json").exists()


@pytest.mark.parametrize("overrides", [{"run__dry_run": True}, {"features__resumable": False}])
def test_interrupted_run_without_state_writes_nothing(make_config, library, overrides):
    orch = _orchestrator(make_config, library, **overrides)

    with patch("orchestrator.pool.wait", side_effect=KeyboardInterrupt):
        with pytest.raises(KeyboardInterrupt):
            orch.run()

    assert not orch.state_saved
    assert not (library / ".trackfix_state.json").exists()
