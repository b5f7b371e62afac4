"""The project configuration file (``.blast.yml``).

    default_environment: default
    environments:
      default:
        connections:
          gcp-default:
            type: bigquery
            project_id: my-project
            service_account_file: /secrets/gcp.json
"""

from __future__ import annotations
from pathlib import Path
from typing import Annotated, Dict, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from blast.core.errors import ConfigError


class BigQueryConnection(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["bigquery"]
    project_id: str
    service_account_json: Optional[str] = None
    service_account_file: Optional[str] = None
    location: Optional[str] = None


class SnowflakeConnection(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    type: Literal["snowflake"]
    account: str
    username: str
    password: Optional[str] = None
    region: Optional[str] = None
    role: Optional[str] = None
    database: Optional[str] = None
    schema_: Optional[str] = Field(default=None, alias="schema")
    warehouse: Optional[str] = None


ConnectionDefinition = Annotated[
    Union[BigQueryConnection, SnowflakeConnection],
    Field(discriminator="type"),
]


class Environment(BaseModel):
    model_config = ConfigDict(extra="forbid")

    connections: Dict[str, ConnectionDefinition] = Field(default_factory=dict)


class Config(BaseModel):
    model_config = ConfigDict(extra="forbid")

    default_environment: str = "default"
    environments: Dict[str, Environment] = Field(
        default_factory=lambda: {"default": Environment()}
    )

    def select_environment(self, name: str | None = None) -> Environment:
        name = name or self.default_environment
        if name not in self.environments:
            available = ", ".join(sorted(self.environments)) or "none"
            raise ConfigError(f"environment '{name}' not found, available environments: {available}")
        return self.environments[name]

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.model_dump(mode="json", by_alias=True, exclude_none=True), sort_keys=False)


def load_from_file(path: str | Path) -> Config:
    try:
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in config file '{path}'") from e

    try:
        config = Config.model_validate(data or {})
    except ValidationError as e:
        raise ConfigError(f"invalid config file '{path}': {e}") from e

    if config.default_environment not in config.environments:
        raise ConfigError(f"default environment '{config.default_environment}' not found in '{path}'")
    return config


def load_or_create(path: str | Path) -> Config:
    """Load the config file, writing a default one first if it is missing."""
    path = Path(path)
    if path.exists():
        config = load_from_file(path)
    else:
        config = Config()
        path.write_text(config.to_yaml(), encoding="utf-8")

    ensure_config_is_in_gitignore(path)
    return config


def ensure_config_is_in_gitignore(path: str | Path) -> None:
    """Add the config file name to the sibling .gitignore, since it holds secrets."""
    path = Path(path)
    gitignore = path.parent / ".gitignore"
    name = path.name

    if not gitignore.exists():
        gitignore.write_text(name + "\n", encoding="utf-8")
        return

    content = gitignore.read_text(encoding="utf-8")
    if any(line.strip() == name for line in content.splitlines()):
        return

    with gitignore.open("a", encoding="utf-8") as f:
        f.write(("\n" if content and not content.endswith("\n") else "") + name + "\n")
