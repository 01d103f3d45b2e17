from __future__ import annotations

import asyncio
import csv
import io
import re
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Sequence, Tuple

from modelforge.core.ids import new_ulid
from modelforge.core.observability import current_request_id, emit, now_iso
from modelforge.modules.collection.queries import filter_models, norm
from modelforge.modules.collection.schemas import DEFAULT_COLOR_SCHEME, MODEL_STATUSES, ArmyOut, GameSystemOut, ModelOut
from modelforge.modules.collection.service import DataOrchestrator

from .schemas import ImportPlanOut, ImportRowOut, ImportSummaryOut, NewArmyOut


REQUIRED_FIELDS: Tuple[str, ...] = ("name", "game system", "army", "quantity", "status")
EXPORT_HEADER: Tuple[str, ...] = ("name", "game system", "army", "quantity", "status")
MISSING_REF = "N/A"
KEEP_COMMITTED_PLANS = 20

_QUANTITY_RE = re.compile(r"\d+")


class PlanNotFoundError(LookupError):
    pass


class PlanStateError(ValueError):
    pass


# =========
# CSV parsing
# =========

def parse_csv(text: str) -> List[Dict[str, str]]:
    """
    Parse CSV text into dict rows keyed by lower-cased, trimmed header names.
    Blank lines are dropped by the reader; short rows pad with "".
    """
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    if reader.fieldnames is None:
        return []
    reader.fieldnames = [(h or "").strip().lower() for h in reader.fieldnames]
    rows: List[Dict[str, str]] = []
    for raw in reader:
        rows.append({k: (v if isinstance(v, str) else "") for k, v in raw.items() if k is not None})
    return rows


def _split_armies(raw: str) -> List[str]:
    names: List[str] = []
    seen = set()
    for part in raw.split(","):
        n = part.strip()
        if n and norm(n) not in seen:
            seen.add(norm(n))
            names.append(n)
    return names


# =========
# Validation
# =========

def _systems_named(game_systems: Sequence[GameSystemOut], name: str) -> List[GameSystemOut]:
    key = norm(name)
    return [gs for gs in game_systems if norm(gs.name) == key]


def _row_out(index: int, row: Dict[str, str], status: str, **kw: Any) -> ImportRowOut:
    return ImportRowOut(row_index=index, row_number=index + 2, row=dict(row), status=status, **kw)


def validate_rows(
    rows: Sequence[Dict[str, str]],
    game_systems: Sequence[GameSystemOut],
    armies: Sequence[ArmyOut],
    models: Sequence[ModelOut],
) -> Tuple[List[ImportRowOut], List[str], List[NewArmyOut]]:
    """
    Classify each data row as NEW / DUPLICATE / ERROR against the current reference data.

    Unknown game systems and armies are queued for creation as soon as a row names them,
    before its quantity and status are checked.
    """
    results: List[ImportRowOut] = []
    systems_to_create: Dict[str, str] = {}
    armies_to_create: Dict[str, NewArmyOut] = {}

    for index, row in enumerate(rows):
        if all(not (v or "").strip() for v in row.values()):
            continue

        values = {f: (row.get(f) or "").strip() for f in REQUIRED_FIELDS}
        army_names = _split_armies(values["army"])
        if not army_names:
            values["army"] = ""
        missing = [f for f in REQUIRED_FIELDS if not values[f]]
        if missing:
            results.append(_row_out(index, row, "ERROR", error_message=f"Missing required fields: {', '.join(missing)}."))
            continue

        system_name = values["game system"]
        matching_systems = _systems_named(game_systems, system_name)
        if not matching_systems:
            systems_to_create.setdefault(norm(system_name), system_name)
        system_ids = {gs.id for gs in matching_systems}

        resolved_army_ids: List[str] = []
        for army_name in army_names:
            found = next(
                (a for a in armies if a.game_system_id in system_ids and norm(a.name) == norm(army_name)),
                None,
            )
            if found is not None:
                resolved_army_ids.append(found.id)
            else:
                key = f"{norm(army_name)}|{norm(system_name)}"
                armies_to_create.setdefault(key, NewArmyOut(name=army_name, game_system_name=system_name))

        raw_quantity = row.get("quantity") or ""
        raw_status = row.get("status") or ""
        problems: List[str] = []
        quantity = int(values["quantity"]) if _QUANTITY_RE.fullmatch(values["quantity"]) else 0
        if quantity < 1:
            problems.append(f'Invalid quantity: "{raw_quantity}". Must be > 0.')
        status = next((s for s in MODEL_STATUSES if s.lower() == values["status"].lower()), None)
        if status is None:
            problems.append(f'Invalid status: "{raw_status}".')
        if problems:
            results.append(_row_out(index, row, "ERROR", error_message=" ".join(problems)))
            continue

        name_key = norm(values["name"])
        duplicate = any(
            norm(m.name) == name_key and any(a in resolved_army_ids for a in m.army_ids)
            for m in models
        )
        notes = (row.get("painting notes") or "").strip()
        data = {
            "name": values["name"],
            "quantity": quantity,
            "status": status,
            "description": "",
            "painting_notes": notes or None,
        }
        results.append(_row_out(index, row, "DUPLICATE" if duplicate else "NEW", selected=True, data=data))

    return results, list(systems_to_create.values()), list(armies_to_create.values())


def needs_review(plan: ImportPlanOut) -> bool:
    return bool(
        plan.game_systems_to_create
        or plan.armies_to_create
        or any(r.status in ("DUPLICATE", "ERROR") for r in plan.rows)
    )


def build_plan(orch: DataOrchestrator, csv_text: str) -> ImportPlanOut:
    rows = parse_csv(csv_text)
    state = orch.state
    results, systems, armies = validate_rows(rows, state.game_systems, state.armies, state.models)
    plan = ImportPlanOut(
        plan_id=new_ulid(),
        status="pending",
        created_at=now_iso(),
        needs_review=False,
        game_systems_to_create=systems,
        armies_to_create=armies,
        rows=results,
    )
    plan.needs_review = needs_review(plan)
    emit(
        "info",
        "import.plan.created",
        f"{len(results)} rows validated",
        current_request_id(),
        __name__,
        plan_id=plan.plan_id,
        new=sum(1 for r in results if r.status == "NEW"),
        duplicate=sum(1 for r in results if r.status == "DUPLICATE"),
        error=sum(1 for r in results if r.status == "ERROR"),
        needs_review=plan.needs_review,
    )
    return plan


# =========
# Review edits
# =========

def select_row(plan: ImportPlanOut, row_index: int, selected: bool) -> ImportRowOut:
    for r in plan.rows:
        if r.row_index == row_index:
            if r.status == "ERROR" and selected:
                raise PlanStateError(f"row {r.row_number} has errors and cannot be imported")
            r.selected = selected
            return r
    raise PlanNotFoundError(f"row {row_index} not in plan {plan.plan_id}")


def select_duplicates(plan: ImportPlanOut, selected: bool) -> int:
    n = 0
    for r in plan.rows:
        if r.status == "DUPLICATE":
            r.selected = selected
            n += 1
    return n


# =========
# Plan registry
# =========

class ImportPlanRegistry:
    """
    In-process plans keyed by plan id.
    pending -> committing -> committed; cancel only while pending.
    Only the most recent `keep_committed` committed plans are retained.
    """

    def __init__(self, keep_committed: int = KEEP_COMMITTED_PLANS) -> None:
        self._plans: Dict[str, ImportPlanOut] = {}
        self._committed: Deque[str] = deque()
        self.keep_committed = keep_committed

    def __len__(self) -> int:
        return len(self._plans)

    def add(self, plan: ImportPlanOut) -> ImportPlanOut:
        self._plans[plan.plan_id] = plan
        return plan

    def get(self, plan_id: str) -> ImportPlanOut:
        plan = self._plans.get(plan_id)
        if plan is None:
            raise PlanNotFoundError(plan_id)
        return plan

    def editable(self, plan_id: str) -> ImportPlanOut:
        plan = self.get(plan_id)
        if plan.status != "pending":
            raise PlanStateError(f"plan is {plan.status}")
        return plan

    def begin_commit(self, plan_id: str) -> ImportPlanOut:
        plan = self.editable(plan_id)
        plan.status = "committing"
        return plan

    def finish_commit(self, plan: ImportPlanOut, summary: ImportSummaryOut) -> ImportPlanOut:
        plan.summary = summary
        plan.status = "committed"
        self._committed.append(plan.plan_id)
        while len(self._committed) > self.keep_committed:
            self._plans.pop(self._committed.popleft(), None)
        return plan

    def cancel(self, plan_id: str) -> ImportPlanOut:
        plan = self.editable(plan_id)
        plan.status = "cancelled"
        del self._plans[plan_id]
        return plan


# =========
# Finalize
# =========

async def _create_references(orch: DataOrchestrator, plan: ImportPlanOut) -> None:
    await asyncio.gather(
        *(
            orch.add_game_system({"name": name, "color_scheme": DEFAULT_COLOR_SCHEME}, notify=False)
            for name in plan.game_systems_to_create
        )
    )
    # armies resolve their system against the merged (existing + just created) list
    pending = []
    for army in plan.armies_to_create:
        gs = orch.game_system_by_name(army.game_system_name)
        if gs is not None:
            pending.append(orch.add_army({"name": army.name, "game_system_id": gs.id}, notify=False))
    await asyncio.gather(*pending)


def _demote(r: ImportRowOut, message: str) -> ImportRowOut:
    return r.model_copy(update={"status": "ERROR", "error_message": message, "selected": False, "data": None})


async def finalize(orch: DataOrchestrator, plan: ImportPlanOut) -> ImportSummaryOut:
    """
    Create queued references, re-resolve every importable row, then submit one bulk add.
    Never raises: a critical failure yields one error notification and the partial summary.
    """
    summary = ImportSummaryOut()
    try:
        await _create_references(orch, plan)

        to_add: List[Dict[str, Any]] = []
        submitted: List[ImportRowOut] = []
        for r in plan.rows:
            if r.status == "ERROR":
                summary.error_rows.append(r)
                continue
            if not r.selected:
                if r.status == "DUPLICATE":
                    summary.skipped_duplicates += 1
                continue

            system_name = (r.row.get("game system") or "").strip()
            gs = orch.game_system_by_name(system_name)
            if gs is None:
                summary.error_rows.append(_demote(r, f"Failed to find/create game system: {system_name}"))
                continue
            army_ids: List[str] = []
            for army_name in _split_armies(r.row.get("army") or ""):
                a = orch.army_by_name(gs.id, army_name)
                if a is None:
                    break
                army_ids.append(a.id)
            else:
                to_add.append({**(r.data or {}), "game_system_id": gs.id, "army_ids": army_ids})
                submitted.append(r)
                continue
            summary.error_rows.append(
                _demote(r, f"Failed to find/create one or more armies for {(r.row.get('name') or '').strip()}")
            )

        added = await orch.bulk_add_models(to_add, notify=False) if to_add else []
        if added is None:
            summary.error_rows.extend(_demote(r, "Bulk add failed") for r in submitted)
            summary.errors = len(summary.error_rows)
            orch.notifier.error("An error occurred during bulk import.")
        else:
            summary.imported = len(added)
            summary.errors = len(summary.error_rows)
            orch.notifier.success(
                f"Import complete: {summary.imported} imported, "
                f"{summary.skipped_duplicates} duplicates skipped, {summary.errors} errors."
            )
    except Exception as e:
        summary.errors = len(summary.error_rows)
        emit("error", "import.finalize.failed", str(e), current_request_id(), __name__,
             plan_id=plan.plan_id, error_type=type(e).__name__)
        orch.notifier.error("A critical error occurred during import.")
    emit("info", "import.finalize", "import finished", current_request_id(), __name__, plan_id=plan.plan_id,
         imported=summary.imported, skipped_duplicates=summary.skipped_duplicates, errors=summary.errors)
    return summary


async def commit(orch: DataOrchestrator, registry: ImportPlanRegistry, plan_id: str) -> ImportPlanOut:
    plan = registry.begin_commit(plan_id)
    summary = await finalize(orch, plan)
    return registry.finish_commit(plan, summary)


# =========
# Export
# =========

def export_models_csv(
    orch: DataOrchestrator,
    game_system_id: Optional[str] = None,
    army_id: Optional[str] = None,
    search: Optional[str] = None,
) -> str:
    state = orch.state
    models = filter_models(state.models, game_system_id=game_system_id, army_id=army_id, search=search)
    buf = io.StringIO()
    w = csv.writer(buf)
    w.writerow(EXPORT_HEADER)
    for m in models:
        gs = orch.find_game_system(m.game_system_id)
        army_names = ", ".join(a.name for a in state.armies if a.id in m.army_ids)
        w.writerow([m.name, gs.name if gs else MISSING_REF, army_names or MISSING_REF, m.quantity, m.status])
    return buf.getvalue()
