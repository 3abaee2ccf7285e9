from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, List, Union


def extract_floats(text: str) -> List[float]:
    """
    Extract floats/ints/scientific-notation numbers from arbitrary text.
    """
    pattern = r"[-+]?(?:\d*\.\d+|\d+)(?:[eE][-+]?\d+)?"
    return [float(x) for x in re.findall(pattern, text)]


def _require_yaml():
    try:
        import yaml  # type: ignore
    except ImportError as e:
        raise ImportError(
            "YAML support requires PyYAML. Install with: pip install pyyaml"
        ) from e
    return yaml


def load_data(path: Union[str, Path]) -> Any:
    """
    Load a file into a Python object based on file extension.

    - .json -> parsed dict/list
    - .yaml/.yml -> parsed dict/list (requires PyYAML)
    - otherwise -> raw text (str)

    Contents are not interpreted here; camera/config readers do that.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    suf = path.suffix.lower()

    if suf == ".json":
        return json.loads(path.read_text(encoding="utf-8", errors="ignore"))

    if suf in (".yaml", ".yml"):
        yaml = _require_yaml()
        return yaml.safe_load(path.read_text(encoding="utf-8", errors="ignore"))

    return path.read_text(encoding="utf-8", errors="ignore")


def dump_data(obj: Any, path: Union[str, Path]) -> None:
    """Write a dict/list as .json or .yaml depending on the extension."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    suf = path.suffix.lower()

    if suf in (".yaml", ".yml"):
        yaml = _require_yaml()
        path.write_text(yaml.safe_dump(obj, sort_keys=False), encoding="utf-8")
        return
    if suf == ".json":
        path.write_text(json.dumps(obj, indent=2), encoding="utf-8")
        return

    raise ValueError(f"Unsupported output format: {suf} (use .json or .yaml)")
