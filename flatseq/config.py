"""
Mapping configuration models and YAML I/O for flatseq.

A mapping file declares one or more record streams.  Each stream names
its physical format, the reader options for that format, and a tree of
groups and records describing the allowed record sequence::

    streams:
      - name: payments
        format: csv
        min_occurs: 1
        children:
          - name: batch
            type: group
            min_occurs: 1
            max_occurs: 3
            children:
              - name: header
                min_occurs: 1
                max_occurs: 1
                identify: [{position: 0, literal: "H"}]
              - name: detail
                identify: [{position: 0, literal: "D"}]
              - name: trailer
                min_occurs: 1
                max_occurs: 1
                identify: [{position: 0, literal: "T"}]
    output:
      output_dir: outputs/payments
      output_format: parquet

Key models:
- MappingConfig: Top-level config (streams + output).
- StreamConfig: One stream layout; the root of a parser tree.
- NodeConfig: A record or group (recursive).
- CriterionConfig: One identification test (literal or regex).
- ReaderConfig: Reader/writer options; only options set in the file are
  passed on, so unset options keep each reader's own defaults.
- OutputConfig: Export directory and format.

Key functions:
- load_config(path) -> MappingConfig: Load and validate from YAML.
- save_config(config, path): Serialize to YAML.
- build_tree(stream) -> ParserTree: Build the immutable parser tree.

Why Pydantic + YAML:
- Pydantic gives strict validation and clear error messages for
  hand-written layouts (bad bounds, records with children, etc.).
- YAML is easy to edit and diff when a file format changes.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from flatseq.exceptions import ConfigValidationError
from flatseq.nodes import ROOT, Criterion, ParserTree, TreeBuilder

logger = logging.getLogger(__name__)

Occurs = int | Literal["unbounded"]


def _upper_bound(value: Occurs) -> int | None:
    return None if value == "unbounded" else value


class CriterionConfig(BaseModel):
    """Identification test on the field at ``position``."""

    model_config = ConfigDict(extra="forbid")

    position: int = Field(..., ge=0, description="0-based field position")
    literal: str | None = Field(None, description="Exact field value")
    regex: str | None = Field(None, description="Pattern the whole field must match")

    @model_validator(mode="after")
    def _check_one_test(self) -> CriterionConfig:
        if (self.literal is None) == (self.regex is None):
            raise ValueError(
                f"Criterion at position {self.position} needs exactly one of "
                "'literal' or 'regex'"
            )
        if self.regex is not None:
            try:
                re.compile(self.regex)
            except re.error as exc:
                raise ValueError(f"Invalid regex {self.regex!r}: {exc}") from exc
        return self

    def to_criterion(self) -> Criterion:
        if self.literal is not None:
            return Criterion(self.position, literal=self.literal)
        return Criterion.regex(self.position, self.regex)


class NodeConfig(BaseModel):
    """A record or group in a stream layout."""

    model_config = ConfigDict(extra="forbid")

    name: str
    type: Literal["record", "group"] = "record"
    min_occurs: int = Field(0, ge=0)
    max_occurs: Occurs = "unbounded"
    order: int | None = Field(
        None,
        description="Sibling rank; defaults to declared position. "
        "Equal orders make siblings alternatives.",
    )
    identify: list[CriterionConfig] = Field(default_factory=list)
    columns: list[str] = Field(
        default_factory=list, description="Names of the record's fields"
    )
    children: list[NodeConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_shape(self) -> NodeConfig:
        if self.type == "record" and self.children:
            raise ValueError(f"Record '{self.name}' cannot have children")
        if self.type == "group":
            if self.identify or self.columns:
                raise ValueError(
                    f"Group '{self.name}' cannot declare 'identify' or 'columns'"
                )
            if not self.children:
                raise ValueError(f"Group '{self.name}' has no children")
        return self


class ReaderConfig(BaseModel):
    """Reader and writer options for a stream's format."""

    model_config = ConfigDict(extra="forbid")

    delimiter: str | None = None
    quote: str | None = None
    escape: str | None = None
    line_continuation: str | None = None
    multiline: bool | None = None
    whitespace_allowed: bool | None = None
    unquoted_quotes_allowed: bool | None = None
    widths: list[int] | None = None
    always_quote: bool | None = None
    line_separator: str | None = None
    padding: str | None = None

    def options(self) -> dict[str, Any]:
        """Options explicitly set in the mapping file."""
        return self.model_dump(exclude_unset=True)


class StreamConfig(BaseModel):
    """A named stream layout: format, reader options and the record tree."""

    model_config = ConfigDict(extra="forbid")

    name: str
    format: Literal["csv", "delimited", "fixedlength"]
    description: str = ""
    min_occurs: int = Field(0, ge=0)
    max_occurs: Occurs = 1
    reader: ReaderConfig = Field(default_factory=ReaderConfig)
    children: list[NodeConfig] = Field(..., min_length=1)


class OutputConfig(BaseModel):
    """Output settings for ``ingest()``."""

    output_dir: str = Field("outputs/", description="Directory for output files")
    output_format: Literal["csv", "parquet"] = Field(
        "parquet", description="Output format"
    )


class MappingConfig(BaseModel):
    """Top-level mapping file model."""

    streams: list[StreamConfig] = Field(..., min_length=1)
    output: OutputConfig = Field(default_factory=OutputConfig)

    @model_validator(mode="after")
    def _check_unique_streams(self) -> MappingConfig:
        names = [s.name for s in self.streams]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate stream names: {duplicates}")
        return self

    def get_stream(self, name: str | None = None) -> StreamConfig:
        """Return the stream called *name*.

        If *name* is ``None`` the mapping must declare exactly one stream.

        Raises:
            ConfigValidationError: If the stream cannot be resolved.
        """
        if name is None:
            if len(self.streams) != 1:
                raise ConfigValidationError(
                    "Mapping declares several streams; pass a stream name. "
                    f"Available streams: {[s.name for s in self.streams]}"
                )
            return self.streams[0]
        for stream in self.streams:
            if stream.name == name:
                return stream
        raise ConfigValidationError(
            f"Stream '{name}' not found in mapping. "
            f"Available streams: {[s.name for s in self.streams]}"
        )


def load_config(path: str | Path) -> MappingConfig:
    """Load and validate a mapping file into a MappingConfig model.

    Raises:
        FileNotFoundError: If the mapping file does not exist.
        ConfigValidationError: If the file is empty.
        pydantic.ValidationError: If the YAML content fails schema validation.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Mapping file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    if raw is None:
        raise ConfigValidationError(f"Mapping file is empty: {path}")
    config = MappingConfig.model_validate(raw)
    logger.info("Loaded mapping from %s (%d stream(s))", path, len(config.streams))
    return config


def save_config(config: MappingConfig, path: str | Path) -> None:
    """Serialize a MappingConfig to YAML.

    Only values that were set (in the source file or in code) are written,
    so a load -> save round trip keeps the file minimal.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="json", exclude_unset=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write("# flatseq mapping\n\n")
        yaml.dump(
            data,
            f,
            allow_unicode=True,
            default_flow_style=False,
            sort_keys=False,
        )
    logger.info("Saved mapping to %s", path)


def build_tree(stream: StreamConfig) -> ParserTree:
    """Build the immutable parser tree for a stream layout.

    Raises:
        GrammarError: If the layout breaks a structural rule that the
            models cannot check on their own (e.g. duplicate sibling names).
    """
    builder = TreeBuilder(
        stream.name,
        min_occurs=stream.min_occurs,
        max_occurs=_upper_bound(stream.max_occurs),
    )
    for child in stream.children:
        _add_node(builder, child, ROOT)
    tree = builder.build()
    logger.debug(
        "Built parser tree '%s': %d nodes, %d record types",
        tree.name, len(tree), len(tree.records),
    )
    return tree


def _add_node(builder: TreeBuilder, node: NodeConfig, parent: int) -> None:
    if node.type == "record":
        builder.record(
            node.name,
            parent=parent,
            min_occurs=node.min_occurs,
            max_occurs=_upper_bound(node.max_occurs),
            order=node.order,
            criteria=[c.to_criterion() for c in node.identify],
            field_names=node.columns,
        )
        return
    index = builder.group(
        node.name,
        parent=parent,
        min_occurs=node.min_occurs,
        max_occurs=_upper_bound(node.max_occurs),
        order=node.order,
    )
    for child in node.children:
        _add_node(builder, child, index)
