"""
Provisioning configuration — what gets installed, and how it is checked.

Loaded from an optional provision.yml. Every field has a default, so an
empty (or absent) file reproduces the stock Ubuntu setup: Rust through
rustup, the wasm32v1-none target, and a pinned Stellar CLI release.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_PACKAGES = ["curl", "build-essential", "git"]
DEFAULT_TARGETS = ["wasm32v1-none"]

RUSTUP_URL = "https://sh.rustup.rs"

STELLAR_VERSION = "23.1.1"
STELLAR_TRIPLE = "x86_64-unknown-linux-gnu"


def _normalize_sha256(value: str | None) -> str | None:
    """Accept ``abc...`` or ``sha256:abc...``; store bare lowercase hex."""
    if value is None:
        return None
    digest = value.strip().removeprefix("sha256:").lower()
    if len(digest) != 64 or any(c not in "0123456789abcdef" for c in digest):
        raise ValueError("sha256 must be a 64-character hex digest")
    return digest


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid")


class RustupConfig(_Section):
    """Toolchain-manager bootstrap."""

    url: str = RUSTUP_URL
    sha256: str | None = None
    args: list[str] = Field(default_factory=lambda: ["-y"])

    @field_validator("sha256")
    @classmethod
    def _check_sha(cls, v: str | None) -> str | None:
        return _normalize_sha256(v)


class ReleaseConfig(_Section):
    """Pinned third-party CLI release archive."""

    base_url: str = "https://github.com"
    repo: str = "stellar/stellar-cli"
    name: str = "stellar-cli"
    binary: str = "stellar"
    version: str = STELLAR_VERSION
    triple: str = STELLAR_TRIPLE
    install_dir: str = "/usr/local/bin"
    sha256: str | None = None
    skip_if_current: bool = True

    @field_validator("sha256")
    @classmethod
    def _check_sha(cls, v: str | None) -> str | None:
        return _normalize_sha256(v)

    @field_validator("version")
    @classmethod
    def _strip_tag_prefix(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("version must not be empty")
        return v.removeprefix("v")


class VerifyCheck(_Section):
    """One row of the verification policy table.

    ``fatal: false`` names a check whose failure is reported but does
    not stop the run.
    """

    tool: str
    command: list[str] = Field(default_factory=list)
    fatal: bool = True
    banner: str | None = None
    failure_message: str | None = None

    def resolved_command(self) -> list[str]:
        return self.command or [self.tool, "--version"]


def _default_checks() -> list[VerifyCheck]:
    return [
        VerifyCheck(
            tool="rustc",
            banner="=== Verificando instalación de Rust ===",
            failure_message="Error: Rust no se instaló correctamente",
        ),
        VerifyCheck(
            tool="cargo",
            failure_message="Error: Cargo no se instaló correctamente",
        ),
        VerifyCheck(
            tool="rustup",
            failure_message="Error: rustup no se instaló correctamente",
        ),
        VerifyCheck(
            tool="stellar",
            banner="=== Verificando instalación de Stellar CLI ===",
            failure_message="Error: Stellar CLI no se instaló correctamente",
        ),
        # git is optional for a working toolchain
        VerifyCheck(
            tool="git",
            fatal=False,
            banner="=== Verificando instalación de Git ===",
        ),
    ]


class ProvisionConfig(_Section):
    """Root configuration — loaded from provision.yml or built from defaults."""

    version: int = 1

    apt_update: bool = True
    packages: list[str] = Field(default_factory=lambda: list(DEFAULT_PACKAGES))
    rustup: RustupConfig = Field(default_factory=RustupConfig)
    targets: list[str] = Field(default_factory=lambda: list(DEFAULT_TARGETS))
    release: ReleaseConfig = Field(default_factory=ReleaseConfig)
    checks: list[VerifyCheck] = Field(default_factory=_default_checks)

    timeout_seconds: int | None = None   # None = wait indefinitely

    @field_validator("timeout_seconds")
    @classmethod
    def _positive_timeout(cls, v: int | None) -> int | None:
        if v is not None and v <= 0:
            raise ValueError("timeout_seconds must be positive")
        return v
