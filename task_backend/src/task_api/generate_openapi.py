"""
Utility script to generate and write the OpenAPI schema for the FastAPI app.

This script imports the FastAPI application instance and serializes its OpenAPI
schema so that API clients and documentation tools can consume a stable contract
without running the server.

Usage:
    task-api-openapi [OUTPUT_PATH]
    python -m task_api.generate_openapi [OUTPUT_PATH]

Notes:
- The script ensures the 'tasks' and 'health' tags are present in the OpenAPI tags metadata.
- Default output path is interfaces/openapi.json relative to the current directory.
"""
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from .main import app, openapi_tags

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT = Path("interfaces") / "openapi.json"


def _ensure_tags(schema: Dict[str, Any]) -> None:
    """
    Ensure the OpenAPI schema contains the expected tags metadata. Existing tag
    definitions are kept as they are.
    """
    existing_tags: List[Dict[str, Any]] = schema.get("tags", []) or []
    existing_names = {t.get("name") for t in existing_tags if isinstance(t, dict)}
    for tag in openapi_tags:
        if tag.get("name") not in existing_names:
            existing_tags.append(tag)
    if existing_tags:
        schema["tags"] = existing_tags


# PUBLIC_INTERFACE
def generate_openapi(output_path: Union[str, Path] = DEFAULT_OUTPUT) -> Path:
    """Write the OpenAPI schema to `output_path`, creating directories as needed, and return the path."""
    schema = app.openapi()
    _ensure_tags(schema)

    out_path = Path(output_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("w", encoding="utf-8") as f:
        json.dump(schema, f, indent=2, ensure_ascii=False)
    logger.info("Wrote OpenAPI schema to %s", out_path)
    return out_path


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="task-api-openapi", description="Write the API's OpenAPI schema.")
    parser.add_argument("output", nargs="?", default=str(DEFAULT_OUTPUT), help="Destination JSON file")
    args = parser.parse_args(argv)
    print(f"Wrote OpenAPI schema to: {generate_openapi(args.output)}")


if __name__ == "__main__":
    main()
