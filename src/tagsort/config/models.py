"""Configuration models describing tagsort settings."""

from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tagsort.files.tags import MAX_TAGS, is_valid_tag


class TagsortBaseModel(BaseModel):
    """Shared configuration for tagsort Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class TransactionSettings(TagsortBaseModel):
    """Defaults applied to every transaction run.

    Attributes:
        dry_run: Simulate runs without touching the filesystem.
        verbose: Narrate each prepare/commit/rollback step.
        force: Overwrite files that already exist in the target directory.
        default_action: Action assigned to every indexed file.
    """

    dry_run: bool = False
    verbose: bool = False
    force: bool = False
    default_action: Literal["copy", "move", "delete", "ignore"] = "copy"


class TaggingSettings(TagsortBaseModel):
    """Tags added to every indexed file in addition to those given on the CLI.

    Attributes:
        default_tags: Tags applied on every run.
    """

    default_tags: List[str] = Field(default_factory=list, max_length=MAX_TAGS)

    @field_validator("default_tags")
    @classmethod
    def _validate_tags(cls, value: List[str]) -> List[str]:
        invalid = [tag for tag in value if not is_valid_tag(tag)]
        if invalid:
            raise ValueError(f"invalid tags: {', '.join(repr(tag) for tag in invalid)}")
        return value


class LoggingSettings(TagsortBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"


class CLIOptions(TagsortBaseModel):
    """CLI behavior defaults and presentation preferences.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        summary_default: Whether commands only print summary lines by default.
    """

    quiet_default: bool = False
    summary_default: bool = False


class TagsortConfig(TagsortBaseModel):
    """Top-level configuration struct for tagsort.

    Attributes:
        transaction: Transaction defaults.
        tagging: Tagging defaults.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    transaction: TransactionSettings = Field(default_factory=TransactionSettings)
    tagging: TaggingSettings = Field(default_factory=TaggingSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "TagsortBaseModel",
    "TransactionSettings",
    "TaggingSettings",
    "LoggingSettings",
    "CLIOptions",
    "TagsortConfig",
]
