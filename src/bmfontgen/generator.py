"""Build orchestration: skip check, rasterize, composite, pack, write, persist.

Every font unit x size is an independent job. Jobs run on a thread pool; a
failure in one job is recorded in the report and never stops the others.
"""

from __future__ import annotations

import contextlib
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Sequence

from bmfontgen.effects import composite
from bmfontgen.exceptions import BmfontgenError, ConfigurationError
from bmfontgen.fingerprint import FingerprintRecord, FingerprintStore, compute_fingerprint, rebuild_reason
from bmfontgen.packer import pack
from bmfontgen.rasterizer import RasterResult, rasterize
from bmfontgen.schema import FontUnit, SizeSpec
from bmfontgen.writer import FontMetrics, page_paths, write_atlas

logger = logging.getLogger(__name__)

Rasterizer = Callable[..., RasterResult]


class BuildStatus(str, Enum):
    BUILT = "built"
    UP_TO_DATE = "up-to-date"
    FAILED = "failed"


@dataclass
class SizeResult:
    """Outcome of one font unit x size job.

    A unit rejected by configuration validation has no size or output; it is
    reported as a single failed result.
    """

    unit: str
    size: int | None
    output: Path | None
    status: BuildStatus
    outputs: list[Path] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    reason: str | None = None
    error: Exception | None = None
    duration_seconds: float = 0.0


@dataclass
class BuildReport:
    """All job outcomes of one build invocation, in configuration order."""

    results: list[SizeResult] = field(default_factory=list)

    def _with(self, status: BuildStatus) -> list[SizeResult]:
        return [r for r in self.results if r.status is status]

    @property
    def built(self) -> list[SizeResult]:
        return self._with(BuildStatus.BUILT)

    @property
    def up_to_date(self) -> list[SizeResult]:
        return self._with(BuildStatus.UP_TO_DATE)

    @property
    def failed(self) -> list[SizeResult]:
        return self._with(BuildStatus.FAILED)

    @property
    def warnings(self) -> list[str]:
        return [w for r in self.results for w in r.warnings]

    @property
    def ok(self) -> bool:
        return not self.failed


class Generator:
    """Generates bitmap fonts and keeps their fingerprints current.

    Args:
        store: Where fingerprints persist between invocations.
        rasterizer: Callable with the signature of ``rasterize``.
        max_workers: Thread pool size for parallel sizes (None = default).
    """

    def __init__(
        self,
        store: FingerprintStore,
        rasterizer: Rasterizer = rasterize,
        max_workers: int | None = None,
    ) -> None:
        self.store = store
        self.rasterizer = rasterizer
        self.max_workers = max_workers

    # -- Host operations ----------------------------------------------------

    def declared_outputs(self, unit: FontUnit, spec: SizeSpec) -> list[Path]:
        """Files a size produces: the metrics file and its page images.

        The page count is only known after packing, so the files recorded by
        the last successful build are used; before any build the single-page
        names are declared.
        """
        output = unit.output_path(spec)
        record = self.store.read(str(output))
        if record is not None and record.outputs:
            paths = [Path(p) for p in record.outputs]
            if output not in paths:
                paths.append(output)
            return paths
        return page_paths(output, 1) + [output]

    def rebuild_reason(self, unit: FontUnit, spec: SizeSpec) -> str | None:
        output = unit.output_path(spec)
        previous = self.store.read(str(output))
        return rebuild_reason(unit, spec, previous, self.declared_outputs(unit, spec))

    def should_rebuild(self, unit: FontUnit, spec: SizeSpec) -> bool:
        return self.rebuild_reason(unit, spec) is not None

    def build_size(self, unit: FontUnit, spec: SizeSpec, force: bool = False) -> SizeResult:
        """Regenerate one size unless it is up to date.

        The stored fingerprint is dropped before any file is touched and only
        written back after every output was written, so an interrupted build
        is always rebuilt next time.
        """
        start = time.monotonic()
        output = unit.output_path(spec)
        key = str(output)
        previous = self.store.read(key)
        current = compute_fingerprint(unit, spec)

        if force:
            reason: str | None = "forced"
        else:
            reason = rebuild_reason(
                unit, spec, previous, self.declared_outputs(unit, spec), current=current
            )
        if reason is None:
            logger.info("%s (size %d) is up to date", output, spec.size)
            return SizeResult(unit.name, spec.size, output, BuildStatus.UP_TO_DATE)

        logger.info("Building %s (size %d): %s", output, spec.size, reason)
        self.store.forget(key)
        written, warnings = self._generate(unit, spec, output)

        if previous is not None:
            self._remove_stale(previous, written)
        self.store.write(key, FingerprintRecord(current, tuple(str(p) for p in written)))

        return SizeResult(
            unit.name,
            spec.size,
            output,
            BuildStatus.BUILT,
            outputs=written,
            warnings=warnings,
            reason=reason,
            duration_seconds=time.monotonic() - start,
        )

    def build_unit(self, unit: FontUnit, force: bool = False) -> BuildReport:
        return self.build_all([unit], force=force)

    def build_all(
        self,
        units: Sequence[FontUnit],
        force: bool = False,
        invalid: Sequence[ConfigurationError] = (),
    ) -> BuildReport:
        """Build every size of every unit, collecting failures instead of raising.

        ``invalid`` carries the units that failed configuration validation; each
        is reported as failed ahead of the built units.
        """
        rejected = [
            SizeResult(e.unit or "?", None, None, BuildStatus.FAILED, error=e) for e in invalid
        ]
        jobs = [(unit, spec) for unit in units for spec in unit.sizes]
        results: list[SizeResult | None] = [None] * len(jobs)

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(self._run_job, unit, spec, force): index
                for index, (unit, spec) in enumerate(jobs)
            }
            for future in as_completed(futures):
                results[futures[future]] = future.result()

        report = BuildReport(rejected + [r for r in results if r is not None])
        logger.info(
            "Build finished: %d built, %d up to date, %d failed",
            len(report.built),
            len(report.up_to_date),
            len(report.failed),
        )
        return report

    # -- Internals ----------------------------------------------------------

    def _run_job(self, unit: FontUnit, spec: SizeSpec, force: bool) -> SizeResult:
        try:
            return self.build_size(unit, spec, force=force)
        except (BmfontgenError, OSError) as e:
            logger.error("Font '%s' size %d failed: %s", unit.name, spec.size, e)
            error: Exception = e
        except Exception as e:
            logger.exception("Font '%s' size %d failed unexpectedly", unit.name, spec.size)
            error = e
        return SizeResult(
            unit.name,
            spec.size,
            unit.output_path(spec),
            BuildStatus.FAILED,
            error=error,
        )

    def _generate(self, unit: FontUnit, spec: SizeSpec, output: Path) -> tuple[list[Path], list[str]]:
        settings = unit.settings
        raster = self.rasterizer(
            unit.input_font,
            spec.size,
            unit.codepoints,
            bold=settings.bold,
            italic=settings.italic,
            mono=settings.mono,
        )
        glyphs = [composite(g, settings.effects, settings.gamma) for g in raster.glyphs.values()]
        pages = pack(glyphs, settings.page_size, settings.padding, size=spec.size)
        written = write_atlas(pages, FontMetrics.from_raster(raster, settings), output)
        return written, [str(e) for e in raster.missing]

    def _remove_stale(self, previous: FingerprintRecord, written: list[Path]) -> None:
        """Delete files the previous build wrote that this one did not (fewer pages)."""
        keep = {Path(p) for p in written}
        for name in previous.outputs:
            path = Path(name)
            if path not in keep:
                logger.info("Removing stale output %s", path)
                with contextlib.suppress(FileNotFoundError):
                    path.unlink()
