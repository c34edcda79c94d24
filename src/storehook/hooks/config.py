"""
Hook definitions file loading.

Hooks are declared in a YAML file, each naming its handlers as
``module:function`` references:

```yaml
version: 1
hooks:
  - id: vip
    label: VIP Membership
    on_purchase: my_server.store:grant_vip
    on_remove: my_server.store:revoke_vip
    on_renew: my_server.store:grant_vip
```

Handler modules must be importable (on ``sys.path``). Additional
directories can be listed under ``python_path``; relative entries are
resolved against the file's directory.
"""

from __future__ import annotations

import importlib as _importlib
import logging as _logging
import pathlib as _pathlib
import sys as _sys
import typing as _typing

import pydantic as _pydantic
import yaml as _yaml

import storehook.errors as errors
import storehook.hooks.events as events

if _typing.TYPE_CHECKING:
    import storehook.hooks.registry as registry_module

_logger = _logging.getLogger(__name__)


class HookDefinition(_pydantic.BaseModel):
    """
    Definition of a single hook in a hooks file.

    At least one handler must be given.
    """

    model_config = _pydantic.ConfigDict(extra="forbid")

    id: str = _pydantic.Field(min_length=1)
    """Unique hook identifier."""

    label: str = _pydantic.Field(min_length=1)
    """Human-readable label."""

    on_purchase: str | None = None
    """``module:function`` reference for the purchase handler."""

    on_remove: str | None = None
    """``module:function`` reference for the removal handler."""

    on_renew: str | None = None
    """``module:function`` reference for the renewal handler."""

    enabled: bool = True
    """Whether this hook is registered when the file is loaded."""

    @_pydantic.field_validator("on_purchase", "on_remove", "on_renew")
    @classmethod
    def _validate_reference(cls, value: str | None) -> str | None:
        """Handler references must look like ``module:function``."""
        if value is None:
            return value
        module, sep, attr = value.partition(":")
        if not sep or not module or not attr:
            raise ValueError(f"handler reference must be 'module:function', got '{value}'")
        return value

    @_pydantic.model_validator(mode="after")
    def _validate_has_handler(self) -> HookDefinition:
        """A hook without handlers can never do anything."""
        if not any(getattr(self, kind.handler_name) for kind in events.ActionKind):
            raise ValueError(f"hook '{self.id}' must define at least one handler")
        return self

    def handler_references(self) -> dict[events.ActionKind, str]:
        """Map each configured action kind to its handler reference."""
        refs: dict[events.ActionKind, str] = {}
        for kind in events.ActionKind:
            ref = getattr(self, kind.handler_name)
            if ref:
                refs[kind] = ref
        return refs


class HooksFile(_pydantic.BaseModel):
    """Complete contents of a hooks YAML file."""

    model_config = _pydantic.ConfigDict(extra="forbid")

    version: int = 1
    """File format version (for future compatibility)."""

    python_path: list[str] = _pydantic.Field(default_factory=list)
    """Extra directories to put on sys.path before importing handlers."""

    hooks: list[HookDefinition] = _pydantic.Field(default_factory=list)
    """Hook definitions."""

    @_pydantic.model_validator(mode="after")
    def _validate_unique_ids(self) -> HooksFile:
        seen: set[str] = set()
        for hook in self.hooks:
            if hook.id in seen:
                raise ValueError(f"duplicate hook id '{hook.id}'")
            seen.add(hook.id)
        return self


def load_hooks_yaml(path: _pathlib.Path) -> HooksFile:
    """
    Load hook definitions from a YAML file.

    Args:
        path: Path to the hooks file.

    Returns:
        Parsed HooksFile.

    Raises:
        FileNotFoundError: If file doesn't exist.
        ValueError: If file is invalid.
    """
    if not path.exists():
        raise FileNotFoundError(f"Hooks file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
        data = _yaml.safe_load(content) or {}
        return HooksFile.model_validate(data)
    except _yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    except _pydantic.ValidationError as e:
        raise ValueError(f"Invalid hooks file {path}: {e}") from e


def import_handler(reference: str) -> events.HandlerFn:
    """
    Import a handler from a ``module:function`` reference.

    Dotted attribute paths after the colon are followed
    (``pkg.mod:Store.grant``).

    Raises:
        HookValidationError: If the module or attribute cannot be loaded
            or is not callable.
    """
    module_name, _, attr_path = reference.partition(":")
    try:
        target: _typing.Any = _importlib.import_module(module_name)
    except ImportError as e:
        raise errors.HookValidationError(f"Cannot import handler module '{module_name}': {e}") from e

    for part in attr_path.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as e:
            raise errors.HookValidationError(f"Handler '{reference}' not found") from e

    if not callable(target):
        raise errors.HookValidationError(f"Handler '{reference}' is not callable")
    handler: events.HandlerFn = target
    return handler


def build_hook(definition: HookDefinition) -> events.Hook:
    """Resolve a definition's handler references into a Hook."""
    handlers = {
        kind.handler_name: import_handler(ref)
        for kind, ref in definition.handler_references().items()
    }
    return events.Hook(id=definition.id, label=definition.label, **handlers)


def register_from_file(
    hook_registry: registry_module.HookRegistry,
    path: _pathlib.Path,
) -> list[events.Hook]:
    """
    Load a hooks file and register every enabled hook.

    A hook whose handlers cannot be imported, or whose id is already
    registered, is skipped with an error log; the others still load.

    Returns:
        The hooks that were registered.
    """
    hooks_file = load_hooks_yaml(path)

    for entry in hooks_file.python_path:
        directory = _pathlib.Path(entry).expanduser()
        if not directory.is_absolute():
            directory = path.parent / directory
        if str(directory) not in _sys.path:
            _sys.path.insert(0, str(directory))

    registered: list[events.Hook] = []
    for definition in hooks_file.hooks:
        if not definition.enabled:
            continue
        try:
            hook = hook_registry.register_hook(build_hook(definition))
        except errors.StoreHookError as e:
            _logger.error("Failed to load hook %s: %s", definition.id, e)
            continue
        registered.append(hook)

    return registered
