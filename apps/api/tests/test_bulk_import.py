"""
Tests for modules/exports_imports/service.py -- CSV validation, plan review, finalize and export.
"""

import pytest

from conftest import run
from modelforge.modules.exports_imports import service
from modelforge.modules.exports_imports.service import (
    ImportPlanRegistry,
    PlanStateError,
    build_plan,
    export_models_csv,
    finalize,
    parse_csv,
    select_duplicates,
    select_row,
)

HEADER = "name,game system,army,quantity,status\n"


def _plan(orch, body, header=HEADER):
    return build_plan(orch, header + body)


# ------------------------------------------------------------------
# Parsing
# ------------------------------------------------------------------


class TestParseCsv:
    def test_headers_are_normalised(self):
        rows = parse_csv(" Name ,GAME SYSTEM,Army,Quantity,Status\nA,B,C,1,Primed\n")
        assert rows == [{"name": "A", "game system": "B", "army": "C", "quantity": "1", "status": "Primed"}]

    def test_short_rows_pad_with_empty(self):
        rows = parse_csv(HEADER + "A,B\n")
        assert rows[0]["army"] == ""

    def test_empty_input(self):
        assert parse_csv("") == []


# ------------------------------------------------------------------
# Row validation
# ------------------------------------------------------------------


class TestValidation:
    def test_missing_fields(self, orch):
        plan = _plan(orch, "Intercessor,,  ,,Painted\n")
        row = plan.rows[0]
        assert row.status == "ERROR"
        assert row.error_message == "Missing required fields: game system, army, quantity."
        assert row.selected is False
        assert row.row_number == 2

    def test_blank_rows_are_skipped_but_keep_numbering(self, orch, seeded):
        plan = _plan(orch, " , , , , \nIntercessor,Warhammer 40000,Space Marines,abc,Painted\n")
        assert len(plan.rows) == 1
        assert plan.rows[0].row_index == 1
        assert plan.rows[0].row_number == 3

    @pytest.mark.parametrize("quantity", ["0", "-3", "abc", "2.5", "1e3"])
    def test_bad_quantity(self, orch, seeded, quantity):
        plan = _plan(orch, f'Intercessor,"Warhammer 40,000",Space Marines,{quantity},Painted\n')
        row = plan.rows[0]
        assert row.status == "ERROR"
        assert row.error_message == f'Invalid quantity: "{quantity}". Must be > 0.'

    def test_bad_quantity_and_status_accumulate(self, orch):
        plan = _plan(orch, "X,Kill Team,Veterans,0,Finished\n")
        assert plan.rows[0].error_message == 'Invalid quantity: "0". Must be > 0. Invalid status: "Finished".'

    def test_status_case_insensitive(self, orch):
        plan = _plan(orch, "X,Kill Team,Veterans,2,ready to game\n")
        assert plan.rows[0].status == "NEW"
        assert plan.rows[0].data["status"] == "Ready to Game"

    def test_references_queued_even_for_error_rows(self, orch):
        plan = _plan(orch, "X,Kill Team,Veterans,0,Painted\n")
        assert plan.rows[0].status == "ERROR"
        assert plan.game_systems_to_create == ["Kill Team"]
        assert [(a.name, a.game_system_name) for a in plan.armies_to_create] == [("Veterans", "Kill Team")]

    def test_queues_are_case_insensitive(self, orch):
        plan = _plan(orch, "A,Kill Team,Veterans,1,Primed\nB,kill team,VETERANS,1,Primed\n")
        assert plan.game_systems_to_create == ["Kill Team"]
        assert len(plan.armies_to_create) == 1

    def test_duplicate_needs_shared_army(self, orch, seeded):
        body = (
            'Intercessor,"Warhammer 40,000",Space Marines,5,Painted\n'
            'Intercessor,"Warhammer 40,000",Orks,5,Painted\n'
        )
        plan = _plan(orch, body)
        assert [r.status for r in plan.rows] == ["DUPLICATE", "NEW"]
        assert plan.needs_review is True

    def test_clean_file_needs_no_review(self, orch, seeded):
        plan = _plan(orch, 'Hellblaster,"warhammer 40,000",space marines,5,Primed\n')
        assert plan.rows[0].status == "NEW"
        assert plan.needs_review is False


# ------------------------------------------------------------------
# Finalize
# ------------------------------------------------------------------


THREE_ROWS = (
    'Hellblaster,"Warhammer 40,000",Space Marines,5,Primed\n'
    "Goliath Forge Boss,Necromunda,Goliaths,1,Assembled\n"
    'Intercessor,"Warhammer 40,000",Space Marines,10,Painted\n'
)


class TestFinalize:
    def test_three_row_scenario_duplicates_deselected(self, orch, seeded):
        plan = _plan(orch, THREE_ROWS)
        assert plan.game_systems_to_create == ["Necromunda"]
        assert [(a.name, a.game_system_name) for a in plan.armies_to_create] == [("Goliaths", "Necromunda")]
        assert [r.status for r in plan.rows] == ["NEW", "NEW", "DUPLICATE"]

        select_duplicates(plan, False)
        summary = run(finalize(orch, plan))
        assert (summary.imported, summary.skipped_duplicates, summary.errors) == (2, 1, 0)

        necro = orch.game_system_by_name("necromunda")
        assert necro is not None
        goliaths = orch.army_by_name(necro.id, "Goliaths")
        boss = next(m for m in orch.state.models if m.name == "Goliath Forge Boss")
        assert boss.game_system_id == necro.id
        assert boss.army_ids == [goliaths.id]
        assert len(orch.state.models) == 5

    def test_three_row_scenario_duplicates_kept(self, orch, seeded):
        plan = _plan(orch, THREE_ROWS)
        summary = run(finalize(orch, plan))
        assert (summary.imported, summary.skipped_duplicates, summary.errors) == (3, 0, 0)
        assert len(orch.state.models) == 6

    def test_reimport_with_duplicates_deselected_creates_nothing(self, orch, seeded):
        first = _plan(orch, THREE_ROWS)
        run(finalize(orch, first))
        count = len(orch.state.models)

        second = _plan(orch, THREE_ROWS)
        assert all(r.status == "DUPLICATE" for r in second.rows)
        select_duplicates(second, False)
        summary = run(finalize(orch, second))
        assert summary.imported == 0
        assert summary.skipped_duplicates == 3
        assert len(orch.state.models) == count

    def test_error_rows_never_committed(self, orch, seeded):
        plan = _plan(orch, 'Bad,"Warhammer 40,000",Orks,0,Primed\nAlso Bad,"Warhammer 40,000",Orks,2,Dusty\n')
        summary = run(finalize(orch, plan))
        assert summary.imported == 0
        assert summary.errors == 2
        assert len(orch.state.models) == 3

    def test_failed_reference_creation_demotes_row(self, flaky_orch, flaky_store):
        plan = _plan(flaky_orch, "Boss,Necromunda,Goliaths,1,Primed\n")
        flaky_store.fail_ops.add("add")
        summary = run(finalize(flaky_orch, plan))
        assert summary.imported == 0
        assert summary.errors == 1
        assert summary.error_rows[0].error_message == "Failed to find/create game system: Necromunda"

    def test_missing_army_after_creation_demotes_row(self, orch, seeded):
        plan = _plan(orch, 'Boss,"Warhammer 40,000",Goliaths,1,Primed\n')
        plan.armies_to_create = []
        summary = run(finalize(orch, plan))
        assert summary.error_rows[0].error_message == "Failed to find/create one or more armies for Boss"

    def test_reference_creation_is_silent(self, orch):
        plan = _plan(orch, "Boss,Necromunda,Goliaths,1,Primed\n")
        run(finalize(orch, plan))
        messages = [n.message for n in orch.notifier.active()]
        assert messages == ["Import complete: 1 imported, 0 duplicates skipped, 0 errors."]

    def test_failed_bulk_add_counts_rows_as_errors(self, flaky_orch, flaky_store):
        plan = _plan(flaky_orch, "Boss,Necromunda,Goliaths,1,Primed\nJuve,Necromunda,Goliaths,2,Assembled\n")
        flaky_store.fail_ops.add("bulk_add")
        summary = run(finalize(flaky_orch, plan))
        assert (summary.imported, summary.skipped_duplicates, summary.errors) == (0, 0, 2)
        assert {r.error_message for r in summary.error_rows} == {"Bulk add failed"}
        messages = [(n.type, n.message) for n in flaky_orch.notifier.active()]
        assert messages == [("error", "An error occurred during bulk import.")]
        assert flaky_orch.state.models == []

    def test_critical_error_returns_partial_summary(self, orch, seeded, monkeypatch):
        async def boom(*a, **kw):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(orch, "bulk_add_models", boom)
        plan = _plan(orch, THREE_ROWS + "Oops,,,,\n")
        summary = run(finalize(orch, plan))
        assert summary.imported == 0
        assert summary.errors == 1
        assert orch.notifier.active()[-1].message == "A critical error occurred during import."


# ------------------------------------------------------------------
# Review edits / registry
# ------------------------------------------------------------------


class TestReviewAndRegistry:
    def test_error_row_cannot_be_selected(self, orch):
        plan = _plan(orch, "X,Kill Team,Veterans,0,Painted\n")
        with pytest.raises(PlanStateError):
            select_row(plan, 0, True)

    def test_toggle_single_duplicate(self, orch, seeded):
        plan = _plan(orch, THREE_ROWS)
        row = select_row(plan, 2, False)
        assert row.selected is False
        assert plan.rows[2].selected is False

    def test_commit_twice_rejected(self, orch, seeded):
        registry = ImportPlanRegistry()
        plan = registry.add(_plan(orch, THREE_ROWS))
        committed = run(service.commit(orch, registry, plan.plan_id))
        assert committed.status == "committed"
        assert committed.summary.imported == 3
        with pytest.raises(PlanStateError):
            run(service.commit(orch, registry, plan.plan_id))

    def test_only_recent_committed_plans_are_kept(self, orch):
        registry = ImportPlanRegistry(keep_committed=3)
        ids = []
        for i in range(10):
            plan = registry.add(_plan(orch, f"Model {i},Kill Team,Veterans,1,Painted\n"))
            run(service.commit(orch, registry, plan.plan_id))
            ids.append(plan.plan_id)
        pending = registry.add(_plan(orch, "Later,Kill Team,Veterans,1,Painted\n"))

        assert len(registry) == 4
        assert registry.get(ids[-1]).status == "committed"
        assert registry.get(pending.plan_id).status == "pending"
        with pytest.raises(service.PlanNotFoundError):
            registry.get(ids[0])

    def test_cancel_removes_plan(self, orch):
        registry = ImportPlanRegistry()
        plan = registry.add(_plan(orch, "X,Kill Team,Veterans,1,Painted\n"))
        registry.cancel(plan.plan_id)
        with pytest.raises(service.PlanNotFoundError):
            registry.get(plan.plan_id)


# ------------------------------------------------------------------
# Export
# ------------------------------------------------------------------


class TestExport:
    def test_header_and_missing_refs(self, orch, seeded):
        run(orch.delete_army(seeded["orks"].id))
        text = export_models_csv(orch)
        lines = text.splitlines()
        assert lines[0] == "name,game system,army,quantity,status"
        assert 'Ork Boy,"Warhammer 40,000",N/A,20,Primed' in lines

    def test_multiple_armies_joined(self, orch, seeded):
        run(orch.update_model(seeded["m1"].id, {"army_ids": [seeded["sm"].id, seeded["orks"].id]}))
        text = export_models_csv(orch, search="inter")
        assert text.splitlines()[1] == 'Intercessor,"Warhammer 40,000","Space Marines, Orks",10,Painted'

    def test_export_then_reimport_round_trip(self, orch, seeded, notifier):
        from modelforge.modules.collection.service import DataOrchestrator
        from modelforge.modules.store.memory_store import MemoryStore

        text = export_models_csv(orch)
        fresh = DataOrchestrator(MemoryStore(), notifier)
        plan = build_plan(fresh, text)
        summary = run(finalize(fresh, plan))
        assert summary.errors == 0

        def tuples(o):
            out = set()
            for m in o.state.models:
                gs = o.find_game_system(m.game_system_id).name
                armies = tuple(sorted(o.find_army(a).name for a in m.army_ids))
                out.add((m.name, gs, armies, m.quantity, m.status))
            return out

        assert tuples(fresh) == tuples(orch)
