"""
Environment activation adapter — make ``~/.cargo/bin`` visible.

Fails like ``source "$HOME/.cargo/env"`` does when rustup never wrote
its env file. On success the receipt exports the new PATH; the
installer applies it to every later action.
"""

from __future__ import annotations

from provisioner.adapters.base import Adapter, ExecutionContext
from provisioner.core.models.action import Receipt
from provisioner.core.services.cargo_env import (
    activated_path,
    cargo_bin_dir,
    cargo_env_file,
)


class CargoEnvAdapter(Adapter):

    @property
    def name(self) -> str:
        return "env"

    def is_available(self) -> bool:
        return True

    def execute(self, context: ExecutionContext) -> Receipt:
        env_file = cargo_env_file()
        if not env_file.is_file():
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"{env_file}: No such file or directory",
                metadata={"return_code": 1},
            )

        path = activated_path(context.env.get("PATH"))
        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            output=f"PATH now starts with {cargo_bin_dir()}",
            metadata={"env": {"PATH": path}},
        )
