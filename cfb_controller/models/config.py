"""Benchmark configuration (workspace, timeouts and implementation catalog)."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from cfb_common.config.env import parse_float_env, parse_path_env
from cfb_common.errors import ConfigurationError
from cfb_runner.models.scenario import Phase

DEFAULT_WORKSPACE = Path("~/polytec")
MEASURED_PHASES = (Phase.CREATION, Phase.TRAVERSAL, Phase.MODIFICATION)

CMAKE_CONFIGURE = ["cmake", "-S", ".", "-B", "build"]
CMAKE_BUILD = ["cmake", "--build", "build", "--config", "Release", "--parallel", "4"]


class OperationConfig(BaseModel):
    """One measured operation (creation, traversal or modification)."""

    executable: str = Field(description="Executable base name looked up in the binary dir")
    args: List[str] = Field(default_factory=list, description="Arguments passed to the executable")
    required_inputs: List[Path] = Field(
        default_factory=list,
        description="Files (relative to the run dir) that must exist before running",
    )
    stage_sample_as: Optional[str] = Field(
        default=None,
        description="Copy the shared sample file into the run dir under this name",
    )
    output_artifact: Optional[Path] = Field(
        default=None, description="File produced by the operation, reported by size"
    )
    timeout_seconds: Optional[float] = Field(default=None, gt=0, description="Per-operation timeout")
    detach_after_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Stop waiting after this window and leave the process running",
    )


class ImplementationConfig(BaseModel):
    """A benchmarked implementation living under the workspace root."""

    name: str = Field(description="Short identifier used in scenario names")
    label: str = Field(default="", description="Human readable description")
    root: Path = Field(description="Directory relative to the workspace root")
    enabled: bool = Field(default=True, description="Include this implementation in runs")
    build_command: List[str] = Field(default_factory=list, description="Build command run in root")
    configure_command: Optional[List[str]] = Field(
        default=None, description="Command run first when the configure marker is missing"
    )
    configure_marker: Optional[Path] = Field(
        default=None, description="Directory whose absence triggers the configure command"
    )
    binary_dir: Path = Field(default=Path("."), description="Where executables land, relative to root")
    run_dir: Optional[Path] = Field(
        default=None, description="Working directory for operations; defaults to binary_dir"
    )
    operations: Dict[Phase, OperationConfig] = Field(
        default_factory=dict, description="Measured operations keyed by phase"
    )

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("ImplementationConfig: 'name' must be non-empty")
        return value.strip()

    @field_validator("operations")
    @classmethod
    def _validate_operations(cls, value: Dict[Phase, OperationConfig]) -> Dict[Phase, OperationConfig]:
        if Phase.BUILD in value:
            raise ValueError("ImplementationConfig: build is configured via build_command")
        return value

    @property
    def display_name(self) -> str:
        return self.label or self.name

    def root_path(self, workspace: Path) -> Path:
        return workspace / self.root

    def binary_path(self, workspace: Path) -> Path:
        return self.root_path(workspace) / self.binary_dir

    def run_path(self, workspace: Path) -> Path:
        run_dir = self.run_dir if self.run_dir is not None else self.binary_dir
        return self.root_path(workspace) / run_dir


def default_implementations() -> List[ImplementationConfig]:
    """The three compound-file implementations as laid out in the workspace."""
    return [
        ImplementationConfig(
            name="rust",
            label="Rust (Native)",
            root=Path("rust-cfb-compound-file-format"),
            build_command=["cargo", "build", "--examples", "--release"],
            binary_dir=Path("target/release/examples"),
            run_dir=Path("."),
            operations={
                Phase.CREATION: OperationConfig(
                    executable="create_1gb_cfb",
                    output_artifact=Path("large_1gb.cfb"),
                    detach_after_seconds=120,
                ),
                Phase.TRAVERSAL: OperationConfig(
                    executable="traverse_streams",
                    required_inputs=[Path("large_1gb.cfb")],
                ),
                Phase.MODIFICATION: OperationConfig(executable="modify_streams"),
            },
        ),
        ImplementationConfig(
            name="cfbcpp",
            label="cfbcpp (FFI Wrapper)",
            root=Path("cfbcpp"),
            configure_command=list(CMAKE_CONFIGURE),
            configure_marker=Path("build"),
            build_command=list(CMAKE_BUILD),
            binary_dir=Path("build"),
            operations={
                Phase.CREATION: OperationConfig(
                    executable="create_1gb_cfb",
                    output_artifact=Path("large_1gb_memory.cfb"),
                ),
                Phase.TRAVERSAL: OperationConfig(executable="traverse_streams"),
                Phase.MODIFICATION: OperationConfig(executable="modify_streams"),
            },
        ),
        ImplementationConfig(
            name="compoundfile",
            label="CompoundFile (Translated Headers)",
            root=Path("rust-cpp-cfb/CompoundFile"),
            configure_command=list(CMAKE_CONFIGURE),
            configure_marker=Path("build"),
            build_command=list(CMAKE_BUILD),
            binary_dir=Path("build"),
            operations={
                Phase.CREATION: OperationConfig(
                    executable="create_1gb_cfb",
                    output_artifact=Path("large_1gb_mscompoundfile.cfb"),
                ),
                Phase.TRAVERSAL: OperationConfig(
                    executable="traverse_streams",
                    args=["test.cfb"],
                    stage_sample_as="test.cfb",
                ),
                Phase.MODIFICATION: OperationConfig(
                    executable="modify_streams",
                    args=["test.cfb"],
                    stage_sample_as="test.cfb",
                ),
            },
        ),
    ]


def default_workspace() -> Path:
    """``$CFB_WORKSPACE_ROOT`` or ``~/polytec``."""
    return parse_path_env(os.environ.get("CFB_WORKSPACE_ROOT")) or DEFAULT_WORKSPACE.expanduser()


class BenchConfig(BaseModel):
    """Main configuration for a benchmark run."""

    workspace_root: Path = Field(default_factory=default_workspace, description="Root holding all implementations")
    report_path: Optional[Path] = Field(
        default=None, description="Markdown report path; defaults to <workspace>/performance_report.md"
    )
    log_dir: Optional[Path] = Field(
        default=None, description="Root for per-run log dirs; defaults to <workspace>/benchmark_logs"
    )
    default_timeout_seconds: float = Field(default=300.0, gt=0, description="Timeout for measured operations")
    build_timeout_seconds: float = Field(default=900.0, gt=0, description="Timeout for build scenarios")
    timeout_override: Optional[float] = Field(
        default=None, gt=0, description="Replace every scenario timeout with this value"
    )
    memory_limit_mb: Optional[int] = Field(
        default=None, gt=0, description="Address-space limit applied to measured operations"
    )
    fresh_outputs: bool = Field(default=True, description="Delete previous output files before creation runs")
    sample_input: Optional[Path] = Field(
        default=Path("rust-cfb-compound-file-format/test.cfb"),
        description="Shared sample file (relative to the workspace) staged into implementations",
    )
    sampler: Optional[str] = Field(default=None, description="Force a sampler strategy (rusage or poll)")
    phases: List[Phase] = Field(default_factory=Phase.ordered, description="Phases to run")
    implementations: List[ImplementationConfig] = Field(
        default_factory=default_implementations, description="Implementations to benchmark"
    )

    @field_validator("workspace_root", "report_path", "log_dir", mode="after")
    @classmethod
    def _expand_user(cls, value: Optional[Path]) -> Optional[Path]:
        return value.expanduser() if value is not None else None

    @field_validator("phases", mode="after")
    @classmethod
    def _canonical_phase_order(cls, value: List[Phase]) -> List[Phase]:
        if not value:
            raise ValueError("BenchConfig: at least one phase must be selected")
        selected = set(value)
        return [phase for phase in Phase.ordered() if phase in selected]

    @model_validator(mode="after")
    def _validate_implementation_names_unique(self) -> "BenchConfig":
        names = [impl.name for impl in self.implementations]
        if len(names) != len(set(names)):
            raise ValueError("BenchConfig: implementation names must be unique")
        return self

    @property
    def resolved_report_path(self) -> Path:
        if self.report_path is None:
            return self.workspace_root / "performance_report.md"
        if self.report_path.is_absolute():
            return self.report_path
        return Path.cwd() / self.report_path

    @property
    def resolved_log_dir(self) -> Path:
        if self.log_dir is None:
            return self.workspace_root / "benchmark_logs"
        return self.log_dir

    @property
    def resolved_sample_input(self) -> Optional[Path]:
        if self.sample_input is None:
            return None
        if self.sample_input.is_absolute():
            return self.sample_input
        return self.workspace_root / self.sample_input

    def enabled_implementations(self) -> List[ImplementationConfig]:
        return [impl for impl in self.implementations if impl.enabled]

    def timeout_for(self, phase: Phase, operation: Optional[OperationConfig] = None) -> float:
        if self.timeout_override is not None:
            return self.timeout_override
        if phase is Phase.BUILD:
            return self.build_timeout_seconds
        if operation is not None and operation.timeout_seconds is not None:
            return operation.timeout_seconds
        return self.default_timeout_seconds

    def validate_workspace(self) -> None:
        """Raise ConfigurationError when the workspace root is unusable."""
        if not self.workspace_root.is_dir():
            raise ConfigurationError(
                f"Workspace root {self.workspace_root} does not exist",
                context={"workspace_root": self.workspace_root},
            )

    def apply_overrides(self, **overrides: Any) -> "BenchConfig":
        """Return a copy with non-None overrides applied and re-validated."""
        updates = {key: value for key, value in overrides.items() if value is not None}
        if not updates:
            return self
        data = self.model_dump()
        data.update(updates)
        try:
            return type(self).from_dict(data)
        except ValidationError as exc:
            raise ConfigurationError(
                f"Invalid option: {exc.errors()[0].get('msg', exc)}",
                context={"options": sorted(updates)},
                cause=exc,
            ) from exc

    @classmethod
    def from_env(cls) -> "BenchConfig":
        """Defaults plus ``CFB_TIMEOUT`` from the environment."""
        try:
            return cls(timeout_override=parse_float_env(os.environ.get("CFB_TIMEOUT")))
        except ValidationError as exc:
            raise ConfigurationError(
                "CFB_TIMEOUT must be a positive number",
                context={"CFB_TIMEOUT": os.environ.get("CFB_TIMEOUT")},
                cause=exc,
            ) from exc

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BenchConfig":
        return cls.model_validate(data)

    def save(self, filepath: Path) -> None:
        filepath.write_text(self.model_dump_json(indent=2))

    @classmethod
    def load(cls, filepath: Path) -> "BenchConfig":
        """Load a JSON config, wrapping IO and validation failures."""
        try:
            return cls.model_validate_json(filepath.read_text())
        except OSError as exc:
            raise ConfigurationError(
                f"Cannot read config file {filepath}", context={"path": filepath}, cause=exc
            ) from exc
        except ValidationError as exc:
            raise ConfigurationError(
                f"Invalid config file {filepath}",
                context={"path": filepath, "errors": exc.error_count()},
                cause=exc,
            ) from exc
