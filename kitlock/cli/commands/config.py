"""Config management commands."""

import json
import sys
from pathlib import Path

import cyclopts

app = cyclopts.App(name="config", help="Manage kitlock configuration")

TEMPLATE = """\
# kitlock configuration
# Point KITLOCK_CONFIG_FILE at this file; KITLOCK_* env vars override it.

# How registries are reached: "registry" (built-in HTTP client) or "crane"
image_tool:
  kind: registry
  # crane_path: crane
  # timeout: 30.0
  # insecure_registries: ["localhost:5000"]

paths:
  lockfile: Kitlock.lock
  extract_dir: build/kits

# Logging (defaults to INFO on stderr; KITLOCK_LOG_FILE logs to a file)
# logging:
#   level: "DEBUG"
"""


DEFAULT_CONFIG_NAME = "kitlock.yaml"


@app.command
def init(path: Path = Path(DEFAULT_CONFIG_NAME)) -> None:
    """Create a new config file from template.

    Args:
        path: Path for the config file. Defaults to ./kitlock.yaml
    """
    if path.is_dir():
        print(f"Error: {path} is a directory, not a file path", file=sys.stderr)
        sys.exit(1)

    if path.exists():
        print(f"Error: {path} already exists (refusing to overwrite)", file=sys.stderr)
        sys.exit(1)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(TEMPLATE)
    print(f"Created config at {path}")
    print(f"Use it with: export KITLOCK_CONFIG_FILE={path}")


@app.command
def validate(path: Path = Path(DEFAULT_CONFIG_NAME)) -> None:
    """Validate a config file.

    Args:
        path: Path to the config file. Defaults to ./kitlock.yaml
    """
    import yaml
    from pydantic import ValidationError

    from kitlock.config import Config

    if not path.exists():
        print(f"Error: {path} not found", file=sys.stderr)
        sys.exit(1)

    try:
        data = yaml.safe_load(path.read_text()) or {}
        Config.model_validate(data)
        print(f"✓ {path} is valid")
    except (yaml.YAMLError, ValidationError) as e:
        print(f"✗ {path} is invalid: {e}", file=sys.stderr)
        sys.exit(1)


@app.command
def show() -> None:
    """Show current effective config."""
    import yaml
    from pydantic import ValidationError
    from pydantic_settings import SettingsError

    from kitlock.config import Config

    try:
        config = Config()
    except (yaml.YAMLError, ValidationError, SettingsError) as e:
        print(f"✗ current configuration is invalid: {e}", file=sys.stderr)
        sys.exit(1)
    print(json.dumps(config.model_dump(mode="json"), indent=2, default=str))
