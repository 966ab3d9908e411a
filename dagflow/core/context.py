"""Context helpers: cloning, read-only snapshots and patch merging.

MERGE SEMANTICS:
Merging is shallow. Each top-level field present in the patch replaces the
field in the context; nested dicts/lists/models are replaced wholesale and
are never merged field by field.

    {"user": {"name": "John", "age": 30}} + {"user": {"name": "Jane"}}
    -> {"user": {"name": "Jane"}}
"""

from __future__ import annotations

import copy
import dataclasses
from collections.abc import Mapping, MutableMapping
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel


def clone_context(context: Any) -> Any:
    """Deep copy the caller's initial context so the run never mutates it."""
    if isinstance(context, BaseModel):
        return context.model_copy(deep=True)
    return copy.deepcopy(context)


def snapshot(context: Any) -> Any:
    """Read-only view handed to the nodes of one batch.

    Dict contexts are wrapped in a MappingProxyType so top-level writes fail
    loudly. Other shapes are passed as-is; nodes must treat them as
    read-only.
    """
    if isinstance(context, dict):
        return MappingProxyType(context)
    return context


def check_patch(context: Any, patch: Mapping[str, Any] | None) -> None:
    """Check that ``patch`` can be merged into ``context``.

    Mapping and None contexts accept any field. Dataclass and Pydantic
    contexts only accept their declared fields (Pydantic models with
    ``extra="allow"`` accept any).

    Raises:
        TypeError: If the patch is not a mapping, names unknown fields or
            the context shape is not supported
    """
    if patch is None:
        return
    if not isinstance(patch, Mapping):
        raise TypeError(f"Node patch must be a mapping, got {type(patch).__name__}")
    if not patch or context is None or isinstance(context, Mapping):
        return

    if isinstance(context, BaseModel):
        if context.model_config.get("extra") == "allow":
            return
        known = set(type(context).model_fields)
    elif dataclasses.is_dataclass(context) and not isinstance(context, type):
        known = {f.name for f in dataclasses.fields(context) if f.init}
    else:
        raise TypeError(f"Cannot merge a patch into context of type {type(context).__name__}")

    unknown = sorted(set(patch) - known)
    if unknown:
        raise TypeError(
            f"Patch fields {unknown} are not fields of {type(context).__name__}"
        )


def merge_patch(context: Any, patch: Mapping[str, Any] | None) -> Any:
    """Return a new context with ``patch`` applied (shallow replace).

    Raises:
        TypeError: If the patch is not a mapping or the context shape is
            not supported
    """
    check_patch(context, patch)
    if not patch:
        return context

    if isinstance(context, BaseModel):
        return context.model_copy(update=dict(patch))
    if dataclasses.is_dataclass(context) and not isinstance(context, type):
        return dataclasses.replace(context, **patch)
    if isinstance(context, MutableMapping):
        merged = copy.copy(context)
        merged.update(patch)
        return merged
    if context is None:
        return dict(patch)
    raise TypeError(f"Cannot merge a patch into context of type {type(context).__name__}")
