"""Export the OpenAPI schema for the mobile client."""

import json
from pathlib import Path

from backend.app.main import create_app


def main() -> None:
    """Export schema to docs/schemas/."""
    schemas_dir = Path("docs/schemas")
    schemas_dir.mkdir(parents=True, exist_ok=True)

    schema = create_app().openapi()
    schema_path = schemas_dir / "openapi.json"
    with open(schema_path, "w") as f:
        json.dump(schema, f, indent=2)
    print(f"Exported OpenAPI schema to {schema_path}")


if __name__ == "__main__":
    main()
