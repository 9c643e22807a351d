"""
Frizy core — headless context export.
Entry point: reads a board snapshot and prints the compacted context.

Run: python main.py board.json [json|markdown|txt]
"""

import json
import logging
import sys
from pathlib import Path

# Ensure frizy is importable
sys.path.insert(0, str(Path(__file__).resolve().parent))

from frizy.data import codec
from frizy.data.models import ProjectInfo
from frizy.services.context_export import ExportFormat
from frizy.services.context_service import ContextManager


def setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stderr),
            logging.FileHandler("frizy.log", encoding="utf-8"),
        ],
    )


def load_board(path: Path):
    """A board snapshot is {"project": {...}, "blocks": [...], "config": {...}}."""
    data = json.loads(path.read_text(encoding="utf-8"))
    project_data = data.get("project") or {}
    project = ProjectInfo(
        id=project_data.get("id", ""),
        name=project_data.get("name", ""),
        description=project_data.get("description", ""),
    )
    items = codec.work_items_from_list(data.get("blocks", []))
    config = codec.config_from_dict(data["config"]) if data.get("config") else None
    return project, items, config, data


def main() -> None:
    setup_logging()
    logger = logging.getLogger(__name__)

    if len(sys.argv) < 2:
        print(__doc__.strip(), file=sys.stderr)
        sys.exit(2)

    path = Path(sys.argv[1])
    fmt = ExportFormat(sys.argv[2]) if len(sys.argv) > 2 else ExportFormat.MARKDOWN

    project, items, config, data = load_board(path)
    logger.info("Loaded %d blocks from %s", len(items), path)

    manager = ContextManager(project.id or path.stem, project=project)
    if config is not None:
        manager.config = config
    for block_id in data.get("important", []):
        manager.mark_block_important(block_id)
    for block_id, override in (data.get("overrides") or {}).items():
        manager.set_block_override(block_id, override)

    manager.generate_context(items)
    print(manager.export_context(fmt))


if __name__ == "__main__":
    main()


# ---------------------------------------------------------------------------
# Explanation (for interviews)
# ---------------------------------------------------------------------------
# What this file does:
#   The smallest possible host: loads a board snapshot from JSON, runs the
#   compactor with the user's stars and overrides, prints the export.
#
# Key points:
#   - Logging goes to stderr and frizy.log so stdout stays a clean export
#     you can pipe into a file or the clipboard.
#   - sys.path manipulation: imports work whether you run from the repo
#     root or another directory.
