"""
Help tags generation.

A plugin may ship help files in its `doc/` directory. The tags index maps
every `*tag*` anchor found in `doc/*.txt` to the file defining it.
"""

import re
from pathlib import Path

TAG_PATTERN = re.compile(r"\*([^\s*|]+)\*")


def collect_tags(doc_dir: Path) -> list[tuple[str, str]]:
    """Collect (tag, file name) pairs from help files."""
    res = []
    for help_file in sorted(doc_dir.glob("*.txt")):
        text = help_file.read_text(encoding="utf-8", errors="replace")
        for tag in TAG_PATTERN.findall(text):
            res.append((tag, help_file.name))
    return res


def regenerate_helptags(plugin_dir: Path) -> bool:
    """
    Completely redo the help tags index of a plugin.

    Args:
        plugin_dir: Plugin directory

    Returns:
        True if index was written, False if there are no help files
    """
    doc_dir = plugin_dir / "doc"
    tags_path = doc_dir / "tags"
    tags_path.unlink(missing_ok=True)

    if not doc_dir.is_dir() or not any(doc_dir.iterdir()):
        return False

    tags = collect_tags(doc_dir)
    if not tags:
        return False

    lines = sorted(f"{tag}\t{file}\t/*{tag}*" for tag, file in dict(tags).items())
    tags_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return True
