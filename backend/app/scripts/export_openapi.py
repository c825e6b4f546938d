from __future__ import annotations

import argparse
import json
from pathlib import Path

from backend.app.main import app

DEFAULT_OUTPUT_PATH = Path("openapi") / "openapi.json"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Write the Channel Keyword Monitor OpenAPI schema to disk.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=DEFAULT_OUTPUT_PATH,
        help=f"Schema destination (default: {DEFAULT_OUTPUT_PATH}).",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    schema_path: Path = args.output
    schema_path.parent.mkdir(parents=True, exist_ok=True)
    schema_path.write_text(json.dumps(app.openapi(), indent=2), encoding="utf-8")
    print(f"Wrote OpenAPI schema to {schema_path}")


if __name__ == "__main__":
    main()
