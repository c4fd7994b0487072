"""Desired-state spec loading and persisted state records.

SECURITY: All file reads enforce size limits. Input validation is performed
at the boundary by the pydantic models.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ValidationError

from .config import MAX_SPEC_FILE_SIZE_BYTES, MAX_STATE_FILE_SIZE_BYTES
from .models import HookRecord, LifecycleHookSpec

logger = logging.getLogger(__name__)

SPEC_KIND = "LifecycleHook"


class SpecLoadError(Exception):
    """Raised when spec loading or validation fails."""

    pass


class StateStoreError(Exception):
    """Raised when the persisted state record cannot be read or written."""

    pass


def _read_yaml_mapping(path: Path, max_size: int, error_cls: type[Exception]) -> dict[str, Any]:
    # SECURITY: Check file size before reading to prevent DoS
    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise error_cls(f"Failed to stat {path}: {e}") from e

    if file_size > max_size:
        raise error_cls(f"File exceeds maximum size of {max_size} bytes: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise error_cls(f"Failed to read {path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise error_cls(f"Invalid YAML in {path}: {e}") from e

    if raw_data is None:
        return {}
    if not isinstance(raw_data, dict):
        raise error_cls(f"File must contain a YAML mapping: {path}")
    return raw_data


def _format_validation_error(path: Path, error: ValidationError) -> str:
    lines = []
    for err in error.errors():
        loc = ".".join(str(x) for x in err["loc"])
        lines.append(f"  - {loc}: {err['msg']}")
    return f"Validation failed for {path}:\n" + "\n".join(lines)


def load_spec(spec_path: Path) -> LifecycleHookSpec:
    """Load and validate a lifecycle hook spec from YAML.

    Both a flat mapping and a Kubernetes-style wrapper
    (apiVersion, kind, metadata, spec) are accepted.

    Raises:
        SpecLoadError: If the spec cannot be loaded or fails validation.
    """
    if not spec_path.exists():
        raise SpecLoadError(f"Spec file not found: {spec_path}")

    raw_data = _read_yaml_mapping(spec_path, MAX_SPEC_FILE_SIZE_BYTES, SpecLoadError)

    if "apiVersion" in raw_data and "spec" in raw_data:
        kind = raw_data.get("kind")
        if kind is not None and kind != SPEC_KIND:
            raise SpecLoadError(f"Unsupported kind '{kind}' in {spec_path}, expected {SPEC_KIND}")
        spec_data = raw_data.get("spec")
        if not isinstance(spec_data, dict):
            raise SpecLoadError(f"Spec section must be a mapping: {spec_path}")
    else:
        spec_data = raw_data

    try:
        spec = LifecycleHookSpec.model_validate(spec_data)
    except ValidationError as e:
        raise SpecLoadError(_format_validation_error(spec_path, e)) from e

    logger.info("Loaded lifecycle hook spec from %s", spec_path)
    return spec


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


class StateStore:
    """YAML file holding the HookRecord between invocations.

    A missing file means the hook has never been created.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> HookRecord:
        """Load the record, or an empty one when no state file exists.

        Raises:
            StateStoreError: The file is unreadable or invalid.
        """
        if not self._path.exists():
            return HookRecord()

        raw_data = _read_yaml_mapping(self._path, MAX_STATE_FILE_SIZE_BYTES, StateStoreError)
        try:
            return HookRecord.model_validate(raw_data)
        except ValidationError as e:
            raise StateStoreError(_format_validation_error(self._path, e)) from e

    def save(self, record: HookRecord) -> None:
        """Write the record atomically (temp file + rename).

        Raises:
            StateStoreError: The file cannot be written.
        """
        content = yaml.safe_dump(_dump(record), sort_keys=False)
        directory = self._path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=f".{self._path.name}.")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(content)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StateStoreError(f"Failed to write state file {self._path}: {e}") from e

        logger.info(
            "Saved lifecycle hook state",
            extra={"path": str(self._path), "identity": record.identity or None},
        )
