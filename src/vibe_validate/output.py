# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Render models as structured YAML documents."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import yaml

from .constants import DOCUMENT_MARKER
from .models import DocumentModel


def dump_yaml(data: Mapping[str, Any]) -> str:
    """Return ``data`` as block-style YAML preserving key order."""

    return yaml.safe_dump(
        dict(data),
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        width=120,
    )


def render_document(model: DocumentModel | Mapping[str, Any]) -> str:
    """Return ``model`` as a YAML document framed by a leading ``---`` line.

    Args:
        model: Model (serialised with camelCase keys, ``None`` fields dropped)
            or an already serialised mapping.

    Returns:
        str: Document text ending with a newline.
    """

    data = model.to_document() if isinstance(model, DocumentModel) else model
    return f"{DOCUMENT_MARKER}\n{dump_yaml(data)}"


__all__ = ["dump_yaml", "render_document"]
