"""
Filesystem adapter — file and directory operations.

Provides a receipt-returning interface for the file work of the
recipe (config rendering, tree copies, staging cleanup) so the
engine can log and dry-run it like any command.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from wpbootstrap.adapters.base import Adapter, ExecutionContext
from wpbootstrap.core.models.action import Receipt
from wpbootstrap.core.services.wpconfig import PlaceholderError, render_file

logger = logging.getLogger(__name__)

_VALID_OPS = {"write", "mkdir", "copy", "copy_tree", "remove", "substitute"}

# Params each operation cannot do without
_REQUIRED_PARAMS = {
    "write": ("path", "content"),
    "mkdir": ("path",),
    "copy": ("source", "path"),
    "copy_tree": ("source", "path"),
    "remove": ("path",),
    "substitute": ("path", "replacements"),
}


class FilesystemAdapter(Adapter):
    """File and directory operations with receipts.

    Action params:
        operation (str): One of 'write', 'mkdir', 'copy', 'copy_tree',
            'remove', 'substitute'.
        path (str): Target path (absolute).
        source (str): Source path for 'copy', 'copy_tree' and optionally
            'substitute' (render source into path).
        content (str): Content for 'write'.
        mode (int): Optional permission bits for 'write'.
        replacements (dict): Token → value mapping for 'substitute'.
        required (list): Tokens that must not survive 'substitute'.
    """

    @property
    def name(self) -> str:
        return "filesystem"

    def is_available(self) -> bool:
        return True  # filesystem is always available

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.params.get("operation", "")
        if not operation:
            return False, "Missing required param: 'operation'"

        if operation not in _VALID_OPS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(_VALID_OPS))}"

        for key in _REQUIRED_PARAMS[operation]:
            if key not in context.params:
                return False, f"Missing required param: '{key}' for {operation} operation"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        operation = context.params["operation"]
        target = Path(context.params["path"])

        try:
            if operation == "write":
                return self._write(context, target)
            elif operation == "mkdir":
                return self._mkdir(context, target)
            elif operation == "copy":
                return self._copy(context, target)
            elif operation == "copy_tree":
                return self._copy_tree(context, target)
            elif operation == "remove":
                return self._remove(context, target)
            elif operation == "substitute":
                return self._substitute(context, target)
            else:
                return Receipt.failure(
                    adapter=self.name,
                    action_id=context.action.id,
                    error=f"Unknown operation: {operation}",
                )
        except Exception as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=context.mask(f"Filesystem error: {e}"),
                metadata={"operation": operation, "path": str(target)},
            )

    def _write(self, ctx: ExecutionContext, target: Path) -> Receipt:
        content = ctx.params["content"]
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        mode = ctx.params.get("mode")
        if mode is not None:
            target.chmod(mode)
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Written {len(content)} bytes to {target}",
            metadata={"path": str(target), "size": len(content)},
        )

    def _mkdir(self, ctx: ExecutionContext, target: Path) -> Receipt:
        target.mkdir(parents=True, exist_ok=True)
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Directory created: {target}",
            metadata={"path": str(target)},
        )

    def _copy(self, ctx: ExecutionContext, target: Path) -> Receipt:
        source = Path(ctx.params["source"])
        if not source.is_file():
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"File not found: {source}",
            )
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Copied {source} → {target}",
            metadata={"source": str(source), "path": str(target)},
        )

    def _copy_tree(self, ctx: ExecutionContext, target: Path) -> Receipt:
        """Copy the *contents* of source into target, merging directories."""
        source = Path(ctx.params["source"])
        if not source.is_dir():
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Not a directory: {source}",
            )
        shutil.copytree(source, target, dirs_exist_ok=True, symlinks=True)
        count = sum(1 for _ in source.rglob("*"))
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Copied {count} entries from {source} to {target}",
            metadata={"source": str(source), "path": str(target), "count": count},
        )

    def _remove(self, ctx: ExecutionContext, target: Path) -> Receipt:
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        elif target.exists() or target.is_symlink():
            target.unlink()
        else:
            return Receipt.skip(
                adapter=self.name,
                action_id=ctx.action.id,
                reason=f"Nothing to remove at {target}",
            )
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Removed {target}",
            metadata={"path": str(target)},
        )

    def _substitute(self, ctx: ExecutionContext, target: Path) -> Receipt:
        source = Path(ctx.params.get("source") or target)
        replacements: dict[str, str] = ctx.params["replacements"]
        required = ctx.params.get("required")

        if not source.is_file():
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"File not found: {source}",
            )

        try:
            render_file(source, target, replacements, required=required)
        except PlaceholderError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=str(e),
                metadata={"path": str(target), "unresolved": e.tokens},
            )

        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Rendered {target} ({len(replacements)} placeholders)",
            metadata={"source": str(source), "path": str(target)},
        )
