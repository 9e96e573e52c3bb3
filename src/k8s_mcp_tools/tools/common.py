"""Argument helpers shared by the tool handlers."""

import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Optional, Union

import yaml

from k8s_mcp_tools.errors import ValidationError
from k8s_mcp_tools.logging_utils import get_logger

logger = get_logger("tools.common")

BoolLike = Union[bool, str, None]


def parse_bool(value: BoolLike, field_name: str = "value", default: bool = False) -> bool:
    """Interpret a boolean parameter, accepting the strings "true" and "false"."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    trimmed = value.strip().lower()
    if trimmed == "":
        return default
    if trimmed == "true":
        return True
    if trimmed == "false":
        return False
    raise ValidationError(field_name, f"invalid boolean value {value!r}")


def append_flag(args: list[str], flag: str, value: Optional[str]) -> list[str]:
    if value:
        args.extend([flag, value])
    return args


def append_bool_flag(args: list[str], flag: str, value: BoolLike) -> list[str]:
    """Append ``flag`` for true, ``flag=false`` for false and nothing when unset."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return args
    if parse_bool(value, flag):
        args.append(flag)
    else:
        args.append(f"{flag}=false")
    return args


def parse_comma_separated(csv: Optional[str]) -> list[str]:
    if not csv:
        return []
    return [part.strip() for part in csv.split(",") if part.strip()]


def append_csv_args(args: list[str], flag: str, csv: Optional[str]) -> list[str]:
    for value in parse_comma_separated(csv):
        args.extend([flag, value])
    return args


def validate_manifest(manifest: str, field_name: str = "manifest") -> None:
    """Require ``manifest`` to be non-empty, parseable YAML."""
    if not manifest.strip():
        raise ValidationError(field_name, "must not be empty")
    try:
        documents = [doc for doc in yaml.safe_load_all(manifest) if doc is not None]
    except yaml.YAMLError as e:
        raise ValidationError(field_name, f"is not valid YAML: {e}") from e
    for doc in documents:
        if not isinstance(doc, dict):
            raise ValidationError(field_name, "every document must be a mapping")


@contextmanager
def temporary_manifest(manifest: str, prefix: str = "k8s-manifest-") -> Iterator[str]:
    """Write ``manifest`` to an owner-only temporary file and remove it afterwards."""
    fd, path = tempfile.mkstemp(prefix=prefix, suffix=".yaml")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(manifest)
        yield path
    finally:
        try:
            os.remove(path)
        except OSError as e:
            logger.error(f"Failed to remove temporary manifest {path}: {e}")
