"""
Sample Board Generator — writes a realistic board snapshot for demos.

Run: python scripts/sample_board.py [num_blocks] > board.json
Then: python main.py board.json markdown
"""

import json
import random
import sys
from datetime import datetime, timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from frizy.data import codec
from frizy.data.models import Priority, Status, WorkItem


def build_board(num_blocks: int = 24) -> dict:
    # ── Lanes & titles ──────────────────────────────────────────────────
    lanes_titles = {
        "vision": ["Ship a context-aware AI pair programmer", "Zero-setup onboarding"],
        "goals": ["Beta launch in Q3", "Realtime collaboration", "MCP integration"],
        "current": ["Fix drag-and-drop flicker", "Context scoring weights", "Session rollover",
                    "Insight capture modal", "Export to markdown"],
        "next": ["Pricing page", "Keyboard shortcuts", "Team workspaces"],
        "context": ["Supabase schema notes", "Design system tokens", "API rate limits"],
    }
    tags_pool = ["frontend", "backend", "ai", "ux", "infra", "bug", "research"]

    now = datetime.now()
    titles = [(lane, t) for lane, ts in lanes_titles.items() for t in ts]
    blocks = []
    for i in range(num_blocks):
        lane, title = titles[i % len(titles)]
        created = now - timedelta(days=random.randint(5, 60))
        worked = None
        if random.random() < 0.75:
            worked = now - timedelta(hours=random.uniform(1, 24 * 20))
        item = WorkItem(
            id=f"block-{i + 1:03d}",
            title=title if i < len(titles) else f"{title} (follow-up {i // len(titles)})",
            content="\n".join(
                f"Step {n + 1}: {random.choice(['investigate', 'implement', 'review', 'document'])} "
                f"{random.choice(['the edge cases', 'the happy path', 'error handling', 'tests'])}."
                for n in range(random.randint(1, 6))
            ),
            lane=lane,
            status=random.choice(list(Status)),
            priority=random.choice(list(Priority)),
            effort=round(random.uniform(1, 8), 1),
            progress=random.choice([0, 10, 25, 50, 75, 90, 100]),
            last_worked_at=worked,
            session_touch_count=random.randint(0, 12),
            tags=random.sample(tags_pool, random.randint(0, 3)),
            created_at=created,
            updated_at=worked or created,
        )
        blocks.append(codec.work_item_to_dict(item))

    return {
        "project": {
            "id": "frizy-demo",
            "name": "Frizy Demo",
            "description": "Kanban board for an AI-assisted side project.",
        },
        "blocks": blocks,
        "important": [b["id"] for b in random.sample(blocks, 2)],
        "overrides": {blocks[-1]["id"]: "exclude"},
    }


if __name__ == "__main__":
    count = int(sys.argv[1]) if len(sys.argv) > 1 else 24
    print(json.dumps(build_board(count), indent=2))
