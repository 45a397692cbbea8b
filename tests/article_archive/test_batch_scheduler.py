import json

import pytest

from src.shared.batch import CheckpointError, DiscoveryError, ProgressStore
from src.functions.article_archive.core.config import ArchiveConfig
from src.functions.article_archive.core.contracts import ArticleItem
from src.functions.article_archive.core.errors import InvalidSessionError, RenderError
from src.functions.article_archive.core.pipelines import BatchScheduler, Finalizer, SchedulerState
from src.functions.article_archive.core.render import (
    IndexBuilder,
    RenderResult,
    has_marker,
    write_marker,
)


def _items(count, start=1):
    return [
        ArticleItem(
            id=f"a{number:02d}",
            title=f"Article {number}",
            link=f"https://mp.weixin.qq.com/s/{number}",
            publish_time=f"2024-01-{number:02d} 08:00:00" if number <= 28 else f"2024-02-{number - 28:02d} 08:00:00",
        )
        for number in range(start, start + count)
    ]


class _Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class _FakeWorkSource:
    def __init__(self, items):
        self.items = list(items)

    def list_items(self):
        return list(self.items)


class _BrokenWorkSource:
    def list_items(self):
        raise RuntimeError("archive unreadable")


class _FakeRenderer:
    """Writes real completion markers so reconciliation sees them."""

    def __init__(self, output_dir, *, failures=None, fatal_ids=(), clock=None, seconds_per_item=0.0):
        self.output_dir = output_dir
        self.failures = dict(failures or {})
        self.fatal_ids = set(fatal_ids)
        self.clock = clock
        self.seconds_per_item = seconds_per_item
        self.calls = []

    def is_complete(self, item):
        return has_marker(self.output_dir, item.id)

    def render_item(self, item, *, force=False):
        self.calls.append(item.id)
        path = self.output_dir / "articles" / item.id / "index.html"
        if not force and self.is_complete(item):
            return RenderResult(item_id=item.id, path=path, skipped=True)
        if self.clock is not None:
            self.clock.now += self.seconds_per_item
        if item.id in self.fatal_ids:
            raise InvalidSessionError()
        remaining = self.failures.get(item.id, 0)
        if remaining:
            self.failures[item.id] = remaining - 1
            raise RenderError(f"could not fetch {item.id}")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(item.title, encoding="utf-8")
        write_marker(self.output_dir, item.id)
        return RenderResult(item_id=item.id, path=path)

    def close(self):
        pass


class _RecordingStore(ProgressStore):
    """Checks the counter invariant on every save."""

    def __init__(self, filepath, fail_when_processed=None):
        super().__init__(filepath)
        self.snapshots = []
        self.fail_when_processed = fail_when_processed

    def save(self, record):
        assert record.processed_count + record.remaining_count == record.total_count
        assert 0 <= record.processed_count <= record.total_count
        assert record.cursor <= record.total_count
        if self.fail_when_processed is not None and record.processed_count == self.fail_when_processed:
            raise CheckpointError("disk full")
        super().save(record)
        self.snapshots.append(record.to_dict())


@pytest.fixture
def config(tmp_path):
    return ArchiveConfig(
        data_dir=tmp_path / "data",
        output_dir=tmp_path / "public",
        batch_size=10,
        max_retries=3,
        retry_delay=5.0,
        max_run_time=480,
    )


def _scheduler(config, work_source, renderer, *, store=None, clock=None, sleeps=None, sleep=None):
    store = store or _RecordingStore(config.progress_file)
    if sleep is None:
        sleep = sleeps.append if sleeps is not None else lambda _: None
    finalizer = Finalizer(IndexBuilder(config.output_dir), renderer)
    return BatchScheduler(
        config,
        store,
        work_source,
        renderer,
        finalizer,
        clock=clock or _Clock(),
        sleep=sleep,
    )


def test_three_invocations_drain_twenty_five_items(config):
    source = _FakeWorkSource(_items(25))
    renderer = _FakeRenderer(config.output_dir)
    scheduler = _scheduler(config, source, renderer)

    first = scheduler.run()
    assert first.processed == 10
    assert first.more_work_remains
    assert first.progress.last_processed_id == "a10"
    assert first.progress.remaining_count == 15
    assert first.state is SchedulerState.BATCH_COMPLETE
    assert not first.finalized
    assert not (config.output_dir / "index.html").exists()

    second = scheduler.run()
    assert second.progress.processed_count == 20
    assert second.progress.last_processed_id == "a20"

    third = scheduler.run()
    assert third.processed == 5
    assert third.progress.processed_count == 25
    assert third.progress.remaining_count == 0
    assert not third.more_work_remains
    assert third.finalized
    assert third.state is SchedulerState.DONE

    assert renderer.calls == [item.id for item in source.items]
    index_html = (config.output_dir / "index.html").read_text(encoding="utf-8")
    assert index_html.count("articles/a") == 25
    assert (config.output_dir / "sitemap.xml").exists()

    on_disk = json.loads(config.progress_file.read_text(encoding="utf-8"))
    assert on_disk["processedCount"] == 25
    assert on_disk["remainingCount"] == 0
    assert on_disk["lastProcessedId"] == "a25"


def test_run_after_completion_is_a_no_op(config):
    source = _FakeWorkSource(_items(3))
    renderer = _FakeRenderer(config.output_dir)
    scheduler = _scheduler(config, source, renderer)
    scheduler.run()
    renderer.calls.clear()

    again = scheduler.run()

    assert again.processed == 0
    assert renderer.calls == []
    assert not again.more_work_remains
    assert again.state is SchedulerState.DONE


def test_transient_failures_are_retried_with_fixed_delay(config):
    sleeps = []
    renderer = _FakeRenderer(config.output_dir, failures={"a07": 2})
    scheduler = _scheduler(config, _FakeWorkSource(_items(10)), renderer, sleeps=sleeps)

    result = scheduler.run()

    assert result.processed == 10
    assert result.failed == 0
    assert renderer.calls.count("a07") == 3
    assert sleeps == [5.0, 5.0]
    assert not config.failures_file.exists()


def test_poison_item_is_deferred_and_retried_on_later_runs(config):
    sleeps = []
    store = _RecordingStore(config.progress_file)
    renderer = _FakeRenderer(config.output_dir, failures={"a12": 100})
    scheduler = _scheduler(config, _FakeWorkSource(_items(25)), renderer, store=store, sleeps=sleeps)

    scheduler.run()
    second = scheduler.run()

    assert second.failed == 1
    assert second.processed == 9
    assert renderer.calls.count("a12") == 4
    assert second.progress.processed_count == 19
    assert second.progress.deferred_ids == ["a12"]
    assert second.progress.cursor == 20
    assert second.progress.last_processed_id == "a20"
    failures = json.loads(config.failures_file.read_text(encoding="utf-8"))
    assert failures[0]["item_id"] == "a12"
    assert failures[0]["attempts"] == 4

    third = scheduler.run()
    assert renderer.calls.count("a12") == 8
    assert third.progress.processed_count == 24
    assert third.progress.remaining_count == 1
    assert third.more_work_remains
    assert not third.finalized

    renderer.failures["a12"] = 0
    fourth = scheduler.run()
    assert fourth.processed == 1
    assert fourth.progress.deferred_ids == []
    assert fourth.progress.processed_count == 25
    assert fourth.progress.last_processed_id == "a25"
    assert fourth.finalized
    assert not fourth.more_work_remains


def test_time_limit_stops_before_next_item(config):
    clock = _Clock()
    config.max_run_time = 250
    renderer = _FakeRenderer(config.output_dir, clock=clock, seconds_per_item=100)
    scheduler = _scheduler(config, _FakeWorkSource(_items(10)), renderer, clock=clock)

    result = scheduler.run()

    assert result.timed_out
    assert result.state is SchedulerState.SUSPENDED_ON_TIMEOUT
    assert result.processed == 3
    assert result.more_work_remains
    assert renderer.calls == ["a01", "a02", "a03"]
    assert ProgressStore(config.progress_file).load().processed_count == 3


def test_markers_ahead_of_checkpoint_are_reconciled(config):
    renderer = _FakeRenderer(config.output_dir)
    for item_id in ("a01", "a02", "a03"):
        write_marker(config.output_dir, item_id)
    scheduler = _scheduler(config, _FakeWorkSource(_items(25)), renderer)

    result = scheduler.run()

    assert result.reconciled == 3
    assert result.processed == 10
    assert renderer.calls[0] == "a04"
    assert result.progress.processed_count == 13
    assert result.progress.last_processed_id == "a13"


def test_crash_between_render_and_checkpoint_does_not_render_twice(config):
    source = _FakeWorkSource(_items(12))
    renderer = _FakeRenderer(config.output_dir)
    crashing = _scheduler(config, source, renderer, store=_RecordingStore(config.progress_file, fail_when_processed=3))

    with pytest.raises(CheckpointError):
        crashing.run()
    assert ProgressStore(config.progress_file).load().processed_count == 2

    resumed = _scheduler(config, source, renderer)
    result = resumed.run()

    assert result.reconciled == 1
    assert renderer.calls.count("a03") == 1
    assert result.progress.processed_count == 12
    assert not result.more_work_remains


def test_authentication_failure_aborts_without_retry(config):
    sleeps = []
    renderer = _FakeRenderer(config.output_dir, fatal_ids={"a05"})
    scheduler = _scheduler(config, _FakeWorkSource(_items(10)), renderer, sleeps=sleeps)

    with pytest.raises(InvalidSessionError):
        scheduler.run()

    assert sleeps == []
    assert renderer.calls.count("a05") == 1
    saved = ProgressStore(config.progress_file).load()
    assert saved.processed_count == 4
    assert saved.deferred_ids == []


def test_discovery_failure_records_nothing(config):
    renderer = _FakeRenderer(config.output_dir)
    scheduler = _scheduler(config, _BrokenWorkSource(), renderer)

    with pytest.raises(DiscoveryError):
        scheduler.run()

    saved = ProgressStore(config.progress_file).load()
    assert saved.total_count == 0
    assert saved.processed_count == 0
    assert renderer.calls == []


def test_new_items_extend_total_after_completion(config):
    source = _FakeWorkSource(_items(5))
    renderer = _FakeRenderer(config.output_dir)
    scheduler = _scheduler(config, source, renderer)
    scheduler.run()

    source.items.extend(_items(3, start=6))
    result = scheduler.run()

    assert result.progress.total_count == 8
    assert result.processed == 3
    assert renderer.calls[-3:] == ["a06", "a07", "a08"]
    assert result.finalized


def test_item_backfilled_behind_cursor_is_rendered(config):
    config.batch_size = 2
    all_items = _items(5)
    source = _FakeWorkSource([item for item in all_items if item.id != "a02"])
    renderer = _FakeRenderer(config.output_dir)
    scheduler = _scheduler(config, source, renderer)
    first = scheduler.run()
    assert renderer.calls == ["a01", "a03"]
    assert first.progress.cursor == 2

    # An older article shows up in the middle of the list
    source.items = list(all_items)
    second = scheduler.run()

    assert renderer.calls == ["a01", "a03", "a04", "a05", "a02"]
    assert has_marker(config.output_dir, "a02")
    assert second.progress.total_count == 5
    assert second.progress.processed_count == 5
    assert second.progress.deferred_ids == []
    assert second.progress.last_processed_id == "a05"
    assert second.finalized
    assert not second.more_work_remains


def test_deferred_retries_cannot_starve_the_frontier(config):
    clock = _Clock()
    config.max_run_time = 60
    config.batch_size = 5
    poison = {f"a{number:02d}": 1000 for number in range(1, 6)}
    renderer = _FakeRenderer(config.output_dir, failures=poison, clock=clock, seconds_per_item=1)

    def advance(seconds):
        clock.now += seconds

    scheduler = _scheduler(config, _FakeWorkSource(_items(20)), renderer, clock=clock, sleep=advance)

    first = scheduler.run()
    assert first.timed_out
    assert first.progress.deferred_ids == ["a01", "a02", "a03", "a04"]

    second = scheduler.run()
    assert second.processed == 4
    assert second.progress.processed_count == 4
    assert "a05" in renderer.calls
    # The retried poison item went to the back of the queue
    assert second.progress.deferred_ids == ["a02", "a03", "a04", "a05", "a01"]

    for _ in range(8):
        last = scheduler.run()

    assert last.progress.processed_count == 15
    assert sorted(last.progress.deferred_ids) == ["a01", "a02", "a03", "a04", "a05"]
    assert all(has_marker(config.output_dir, f"a{number:02d}") for number in range(6, 21))
    assert last.more_work_remains
    assert not last.finalized


def test_removed_deferred_item_is_dropped_from_total(config):
    source = _FakeWorkSource(_items(6))
    renderer = _FakeRenderer(config.output_dir, failures={"a03": 100})
    config.batch_size = 4
    scheduler = _scheduler(config, source, renderer)
    first = scheduler.run()
    assert first.progress.deferred_ids == ["a03"]

    source.items = [item for item in source.items if item.id != "a03"]
    second = scheduler.run()

    assert second.progress.total_count == 5
    assert second.progress.deferred_ids == []
    assert second.progress.processed_count == 5
    assert renderer.calls[-2:] == ["a05", "a06"]
    assert not second.more_work_remains


def test_shrunken_work_list_raises_checkpoint_error(config):
    source = _FakeWorkSource(_items(10))
    renderer = _FakeRenderer(config.output_dir)
    config.batch_size = 5
    scheduler = _scheduler(config, source, renderer)
    scheduler.run()

    source.items = source.items[:8]

    with pytest.raises(CheckpointError):
        scheduler.run()


def test_empty_work_list_finalizes_immediately(config):
    renderer = _FakeRenderer(config.output_dir)
    scheduler = _scheduler(config, _FakeWorkSource([]), renderer)

    result = scheduler.run()

    assert result.state is SchedulerState.DONE
    assert result.finalized
    assert not result.more_work_remains
    assert "<p>0 articles</p>" in (config.output_dir / "index.html").read_text(encoding="utf-8")


def test_incremental_index_publishes_completed_items_only(config):
    config.incremental_index = True
    renderer = _FakeRenderer(config.output_dir)
    scheduler = _scheduler(config, _FakeWorkSource(_items(25)), renderer)

    result = scheduler.run()

    assert result.finalized
    assert result.more_work_remains
    assert scheduler.last_finalize.article_count == 10
    assert scheduler.last_finalize.excluded_count == 15


def test_render_single_forces_rerender_without_touching_progress(config):
    source = _FakeWorkSource(_items(3))
    renderer = _FakeRenderer(config.output_dir)
    scheduler = _scheduler(config, source, renderer)
    scheduler.run()
    before = config.progress_file.read_text(encoding="utf-8")

    result = scheduler.render_single("a02")

    assert not result.skipped
    assert renderer.calls.count("a02") == 2
    assert config.progress_file.read_text(encoding="utf-8") == before


def test_render_single_unknown_id_raises_key_error(config):
    scheduler = _scheduler(config, _FakeWorkSource(_items(3)), _FakeRenderer(config.output_dir))

    with pytest.raises(KeyError):
        scheduler.render_single("missing")
