"""Tests for ReconciliationPlanner (full-sync planning)."""

from tree_mirror.mirror.models import (
    LocalRecord,
    ManifestEntry,
    Overlay,
    PlannedDownload,
)
from tree_mirror.mirror.planner import ReconciliationPlanner


def _entry(path: str, h: str) -> ManifestEntry:
    return ManifestEntry(path=path, content_hash=h)


def _local(path: str, h: str, overlay: Overlay = Overlay.ENABLED) -> LocalRecord:
    directory, _, name = path.rpartition("/")
    actual = path
    if overlay == Overlay.DISABLED:
        actual = f"{directory}/-{name}" if directory else f"-{name}"
    return LocalRecord(
        canonical_path=path, actual_path=actual, content_hash=h, overlay=overlay
    )


class TestScenarios:
    """Decision table for a single path."""

    def test_up_to_date_file_needs_nothing(self):
        """Same hash, enabled: no action."""
        plan = ReconciliationPlanner().plan(
            [_entry("a.txt", "h1")], [_local("a.txt", "h1")]
        )
        assert plan.downloads == []
        assert plan.deletes == []
        assert plan.is_empty

    def test_changed_disabled_file_stays_disabled(self):
        """Different hash, disabled: re-download disabled."""
        plan = ReconciliationPlanner().plan(
            [_entry("a.txt", "h2")], [_local("a.txt", "h1", Overlay.DISABLED)]
        )
        assert plan.downloads == [
            PlannedDownload(path="a.txt", overlay=Overlay.DISABLED)
        ]
        assert plan.deletes == []

    def test_removed_upstream_is_deleted(self):
        plan = ReconciliationPlanner().plan([], [_local("a.txt", "h1")])
        assert plan.downloads == []
        assert plan.deletes == ["a.txt"]

    def test_missing_locally_downloads_enabled(self):
        plan = ReconciliationPlanner().plan([_entry("dir/new.txt", "h")], [])
        assert plan.downloads == [PlannedDownload(path="dir/new.txt")]

    def test_disabled_unchanged_is_untouched(self):
        """An unchanged disabled file is neither downloaded nor deleted."""
        plan = ReconciliationPlanner().plan(
            [_entry("a.txt", "h1")], [_local("a.txt", "h1", Overlay.DISABLED)]
        )
        assert plan.is_empty

    def test_local_only_disabled_file_deleted_by_actual_path(self):
        plan = ReconciliationPlanner().plan(
            [], [_local("dir/a.txt", "h1", Overlay.DISABLED)]
        )
        assert plan.deletes == ["dir/-a.txt"]


class TestPlanShape:
    """Ordering, exclusions and idempotence."""

    def test_sorted_output(self):
        plan = ReconciliationPlanner().plan(
            [_entry("z.txt", "1"), _entry("a.txt", "2")],
            [_local("y.txt", "3"), _local("b.txt", "4")],
        )
        assert [d.path for d in plan.downloads] == ["a.txt", "z.txt"]
        assert plan.deletes == ["b.txt", "y.txt"]
        assert plan.total == 4

    def test_excluded_paths_ignored_on_both_sides(self):
        plan = ReconciliationPlanner().plan(
            [_entry(".github/workflow.yml", "1"), _entry("user-customs/a.png", "2")],
            [_local("user-customs/b.png", "3")],
        )
        assert plan.is_empty

    def test_idempotent_after_application(self):
        """Planning again against the applied state yields an empty plan."""
        manifest = [_entry("a.txt", "h2"), _entry("b.txt", "h3")]
        local = [_local("a.txt", "h1", Overlay.DISABLED), _local("c.txt", "h4")]
        planner = ReconciliationPlanner()
        plan = planner.plan(manifest, local)

        remote = {e.path: e.content_hash for e in manifest}
        applied = [
            _local(d.path, remote[d.path], d.overlay) for d in plan.downloads
        ]
        assert planner.plan(manifest, applied).is_empty

    def test_remote_file_with_dash_name(self):
        """A remote '-x.txt' found locally as-is is not re-downloaded."""
        local = LocalRecord(
            canonical_path="x.txt",
            actual_path="-x.txt",
            content_hash="h1",
            overlay=Overlay.DISABLED,
        )
        plan = ReconciliationPlanner().plan([_entry("-x.txt", "h1")], [local])
        assert plan.is_empty
