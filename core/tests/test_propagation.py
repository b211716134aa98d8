"""Tests for per-thread isolation and explicit handoff between threads."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

from narrativetrace import ContextScope, NoopNarrativeContext, TracingLevel


def run_in_thread(target):
    """Run ``target`` on a new thread and return what it returned."""
    box = {}

    def runner():
        box["value"] = target()

    thread = threading.Thread(target=runner)
    thread.start()
    thread.join()
    return box["value"]


class TestThreadIsolation:
    def test_threads_have_independent_stacks(self, context):
        context.end_call_success(context.begin_call("Main", "run"))

        def worker():
            context.end_call_success(context.begin_call("Worker", "run"))
            return context.capture_trace()

        worker_trace = run_in_thread(worker)
        main_trace = context.capture_trace()

        assert [f.type_name for f in worker_trace.walk()] == ["Worker"]
        assert [f.type_name for f in main_trace.walk()] == ["Main"]

    def test_open_frame_not_visible_to_other_thread(self, context):
        handle = context.begin_call("Main", "run")

        depth = run_in_thread(context.current_depth)

        assert depth == 0
        context.end_call_success(handle)


class TestHandoff:
    def test_restored_calls_nest_under_anchor(self, context):
        root = context.begin_call("OrderService", "place_order")
        snapshot = context.snapshot()

        def worker():
            with snapshot.restore():
                handle = context.begin_call("Warehouse", "reserve", [("sku", "B-12")])
                context.end_call_success(handle, True)

        run_in_thread(lambda: worker())
        context.end_call_success(root)

        (order,) = context.capture_trace().roots
        (reserve,) = order.children
        assert reserve.qualified_name == "Warehouse.reserve"
        assert reserve.depth == 1
        assert reserve.parent_sequence == order.sequence
        assert reserve.sequence > order.sequence
        assert snapshot.anchor_sequence == order.sequence

    def test_handoff_continues_sequence_numbering(self, context):
        first = context.begin_call("A", "first")
        context.end_call_success(first)
        second = context.begin_call("A", "second")
        snapshot = context.snapshot()

        def worker():
            context.end_call_success(context.begin_call("B", "remote"))

        run_in_thread(lambda: snapshot.wrap(worker)())
        context.end_call_success(second)

        trace = context.capture_trace()
        remote = next(f for f in trace.walk() if f.method_name == "remote")
        assert remote.sequence > max(f.sequence for f in trace.walk() if f.type_name == "A")

    def test_snapshot_at_top_level(self, context):
        snapshot = context.snapshot()

        run_in_thread(lambda: snapshot.wrap(
            lambda: context.end_call_success(context.begin_call("Job", "run"))
        )())

        (job,) = context.capture_trace().roots
        assert job.qualified_name == "Job.run"
        assert snapshot.anchor_sequence is None

    def test_scope_close_restores_previous_binding(self, context):
        origin = context.begin_call("Origin", "run")
        snapshot = context.snapshot()

        def worker():
            context.end_call_success(context.begin_call("Local", "before"))
            scope = snapshot.restore()
            inside = context.current_frame()
            scope.close()
            scope.close()
            return inside, scope.closed, context.capture_trace()

        inside, closed, local_trace = run_in_thread(worker)
        context.end_call_success(origin)

        assert inside == "Origin.run"
        assert closed is True
        assert [f.qualified_name for f in local_trace.walk()] == ["Local.before"]
        assert [f.qualified_name for f in context.capture_trace().walk()] == ["Origin.run"]

    def test_concurrent_workers_share_one_tree(self, context):
        root = context.begin_call("Indexer", "reindex")
        snapshot = context.snapshot()

        def index_shelf(shelf):
            handle = context.begin_call("Indexer", "index_shelf", [("shelf", shelf)])
            context.end_call_success(handle, shelf)
            return shelf

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(snapshot.wrap(index_shelf), range(8)))
        context.end_call_success(root)

        (reindex,) = context.capture_trace().roots
        assert results == list(range(8))
        assert len(reindex.children) == 8
        sequences = [c.sequence for c in reindex.children]
        assert len(set(sequences)) == 8
        assert min(sequences) > reindex.sequence
        assert sorted(c.result for c in reindex.children) == sorted(str(i) for i in range(8))

    def test_calls_after_anchor_pruned_attach_to_surviving_ancestor(self, config, context):
        config.set_level(TracingLevel.SUMMARY)
        borrow = context.begin_call("Lending", "borrow")
        reindex = context.begin_call("Catalog", "reindex")
        snapshot = context.snapshot()
        first_done = threading.Event()
        anchor_closed = threading.Event()

        def worker():
            with snapshot.restore():
                context.end_call_success(context.begin_call("Worker", "first"))
                first_done.set()
                anchor_closed.wait(timeout=5)
                depth = context.current_depth()
                context.end_call_success(context.begin_call("Worker", "second"))
                return depth

        thread_result = {}
        thread = threading.Thread(target=lambda: thread_result.update(depth=worker()))
        thread.start()
        assert first_done.wait(timeout=5)
        context.end_call_success(reindex)
        anchor_closed.set()
        thread.join()
        context.end_call_success(borrow)

        trace = context.capture_trace()
        assert [f.qualified_name for f in trace.walk()] == [
            "Lending.borrow",
            "Worker.first",
            "Worker.second",
        ]
        (root,) = trace.roots
        assert [c.parent_sequence for c in root.children] == [root.sequence, root.sequence]
        assert thread_result["depth"] == 1

    def test_failure_after_anchor_pruned_stays_visible(self, config, context):
        config.set_level(TracingLevel.ERRORS)
        borrow = context.begin_call("Lending", "borrow")
        reindex = context.begin_call("Catalog", "reindex")
        snapshot = context.snapshot()
        context.end_call_success(reindex)

        def worker():
            handle = context.begin_call("Worker", "second")
            context.end_call_error(handle, "Timeout", "index busy")

        run_in_thread(snapshot.wrap(worker))
        context.end_call_success(borrow)

        (root,) = context.capture_trace().roots
        assert root.qualified_name == "Lending.borrow"
        (second,) = root.children
        assert second.qualified_name == "Worker.second"
        assert second.failed

    def test_noop_snapshot_restores_nothing(self):
        context = NoopNarrativeContext()

        scope = context.snapshot().restore()

        assert isinstance(scope, ContextScope)
        scope.close()
        assert scope.closed
