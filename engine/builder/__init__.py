"""
Site Builder — the website document engine.

Components:
  blocks      — block type registry and schema validation
  theme       — theme validation, presets and CSS variable resolution
  document    — the Project aggregate and its mutation primitives
  primitives  — payload validation for the five reviewable operations
  operations  — operation construction and review previews
  reducer     — (project, operation) → project  (pure, deterministic)
  changeset   — proposed → accepted → applied | rejected lifecycle
  renderer    — project → standalone HTML  (pure, deterministic)
  plans       — subscription limits and feature gates
  assembly    — coordinates reducer + renderer + IO (storage, plan gate)
  postgres_storage — asyncpg adapters for storage and plans
"""

from engine.builder.assembly import MemoryStorage, ProjectStorage, SiteAssembly
from engine.builder.blocks import BLOCK_TYPES, create_default, validate_block_data
from engine.builder.changeset import Changeset
from engine.builder.document import new_project
from engine.builder.operations import make_operation, operations_from_raw
from engine.builder.plans import BUILDER_PLANS, MemoryPlanStore, PlanGate
from engine.builder.primitives import validate_operation
from engine.builder.reducer import reduce, replay
from engine.builder.renderer import render, render_site
from engine.builder.theme import apply_theme

__all__ = [
    "BLOCK_TYPES",
    "BUILDER_PLANS",
    "validate_block_data",
    "validate_operation",
    "create_default",
    "new_project",
    "make_operation",
    "operations_from_raw",
    "reduce",
    "replay",
    "render",
    "render_site",
    "apply_theme",
    "Changeset",
    "PlanGate",
    "MemoryPlanStore",
    "ProjectStorage",
    "MemoryStorage",
    "SiteAssembly",
]
