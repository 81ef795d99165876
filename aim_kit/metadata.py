from __future__ import annotations

from pathlib import Path
from typing import Dict, Union


def load_class_names(metadata_path: Union[str, Path]) -> Dict[int, str]:
    """
    Read the label set from a model metadata file.

    Supports the Ultralytics-style `names:` block, either as a mapping

        names:
          0: vase
          1: watch

    or as a single inline list (`names: ['vase', 'watch']`). Other keys are
    ignored. Parsed by hand so that PyYAML is not required.
    """

    path = Path(metadata_path)
    if not path.exists():
        raise FileNotFoundError(f"Metadata file not found: {path}")

    names: Dict[int, str] = {}
    in_names = False

    with path.open("r", encoding="utf-8") as f:
        for raw in f:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue

            if line.startswith("names:"):
                inline = line[len("names:"):].strip()
                if inline.startswith("[") and inline.endswith("]"):
                    items = [s.strip().strip("'").strip('"') for s in inline[1:-1].split(",")]
                    return {i: label for i, label in enumerate(items) if label}
                in_names = True
                continue

            if not in_names:
                continue
            # A new top-level key ends the block.
            if not raw[:1].isspace():
                break
            if ":" not in line:
                continue
            left, right = line.split(":", 1)
            left = left.strip()
            if not left.isdigit():
                continue
            names[int(left)] = right.strip().strip("'").strip('"')

    return names
