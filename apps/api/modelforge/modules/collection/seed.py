from __future__ import annotations

from typing import Dict, List

from modelforge.core.observability import emit

from .service import DataOrchestrator

SEED_GAME_SYSTEMS: List[str] = ["Warhammer 40,000", "Age of Sigmar", "Marvel Crisis Protocol"]

# (army, game system)
SEED_ARMIES = [
    ("Space Marines", "Warhammer 40,000"),
    ("Orks", "Warhammer 40,000"),
    ("Stormcast Eternals", "Age of Sigmar"),
    ("Avengers", "Marvel Crisis Protocol"),
    ("Uncanny X-Men", "Marvel Crisis Protocol"),
]

SEED_MODELS = [
    {
        "name": "Primaris Intercessor",
        "game_system": "Warhammer 40,000",
        "armies": ["Space Marines"],
        "description": "The backbone of any Space Marine force, Primaris Intercessors are versatile and reliable infantry units.",
        "quantity": 10,
        "status": "Ready to Game",
        "image_url": "https://via.placeholder.com/300x200.png?text=Intercessor",
        "painting_notes": "Base: Macragge Blue\nShade: Nuln Oil\nHighlight: Calgar Blue",
    },
    {
        "name": "Ork Boy",
        "game_system": "Warhammer 40,000",
        "armies": ["Orks"],
        "description": "Ork Boyz are the rank-and-file infantry of an Ork army. What they lack in skill, they make up for in sheer numbers and enthusiasm for a good scrap.",
        "quantity": 20,
        "status": "Primed",
        "image_url": "https://via.placeholder.com/300x200.png?text=Ork+Boy",
        "painting_notes": "",
    },
    {
        "name": "Wolverine",
        "game_system": "Marvel Crisis Protocol",
        "armies": ["Avengers", "Uncanny X-Men"],
        "description": "He's the best there is at what he does, but what he does isn't very nice. A mutant with a healing factor and adamantium claws.",
        "quantity": 1,
        "status": "Painted",
        "image_url": "https://via.placeholder.com/300x200.png?text=Wolverine",
        "painting_notes": "Suit: Averland Sunset\nStripes: Abaddon Black\nClaws: Leadbelcher",
    },
]


async def seed_if_empty(orch: DataOrchestrator) -> bool:
    """Populate sample data when there are no game systems. Returns True if anything was seeded."""
    if orch.state.game_systems:
        emit("info", "seed.skipped", "store already contains data", None, __name__)
        return False

    systems: Dict[str, str] = {}
    for name in SEED_GAME_SYSTEMS:
        gs = await orch.add_game_system({"name": name}, notify=False)
        if gs is None:
            return False
        systems[name] = gs.id

    armies: Dict[str, str] = {}
    for army_name, system_name in SEED_ARMIES:
        a = await orch.add_army({"name": army_name, "game_system_id": systems[system_name]}, notify=False)
        if a is None:
            return False
        armies[army_name] = a.id

    items = []
    for m in SEED_MODELS:
        fields = {k: v for k, v in m.items() if k not in ("game_system", "armies")}
        fields["game_system_id"] = systems[m["game_system"]]
        fields["army_ids"] = [armies[a] for a in m["armies"]]
        items.append(fields)
    added = await orch.bulk_add_models(items, notify=False)
    if added is None:
        return False
    emit("info", "seed.done", "sample data seeded", None, __name__,
         game_systems=len(systems), armies=len(armies), models=len(added))
    return True
