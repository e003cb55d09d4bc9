# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Catalog runner and parallel execution coordinator.

A run has a serial phase and a striped phase:

    1. Serial: validate the header, find the first epoch in the catalog,
       build the perturber cache, and integrate any massive-asteroid
       perturbers (Ceres, Pallas, Vesta) in catalog order. Each one is
       added to the cache as soon as it is done, so it perturbs every
       record integrated after it.
    2. Striped: worker w of N handles records w, w + N, w + 2N, ... and
       writes one output line per record to its own chunk file (plus an
       optional ephemeris-sample chunk). Workers return a ChunkResult
       through the process pool.

The parent merges the chunks round-robin, which restores catalog order,
writes the output through a temporary file and deletes the chunks. A
failed worker fails the whole run; no partial output is written.

External dependencies (concurrent.futures, tempfile, file I/O) are
confined to this adapter layer. N = 1 runs the same code in-process.
"""
import logging
import os
import tempfile
from concurrent.futures import ProcessPoolExecutor, as_completed
from contextlib import ExitStack
from dataclasses import dataclass, field

from encke.adapters.catalog_io import (
    format_sample,
    iter_catalog,
    open_catalog,
    open_previous_output,
    read_header,
)
from encke.domain.config import IntegrationConfig, check_config
from encke.domain.integration import (
    IntegrationContext,
    IntegrationResult,
    build_context,
    integrate_orbit,
)
from encke.domain.perturber_cache import AsteroidTrack
from encke.domain.perturbers import ASTEROID_INDICES, PERTURBERS, perturber_for_designation
from encke.domain.planetary_ephemeris import AnalyticEphemeris
from encke.domain.sof import (
    SofHeader,
    SofRecord,
    epoch_column_text,
    format_elements,
    parse_record,
)

_log = logging.getLogger(__name__)

INTEGRATED = "integrated"
REUSED = "reused"
PASSED = "passed"


@dataclass
class RunSummary:
    """Counters for one run (or one worker's share of it)."""
    records_read: int = 0
    integrated: int = 0
    reused: int = 0
    passed_through: int = 0
    rejected_steps: int = 0

    def count(self, outcome: "RecordOutcome") -> None:
        self.records_read += 1
        self.rejected_steps += outcome.rejected_steps
        if outcome.status == INTEGRATED:
            self.integrated += 1
        elif outcome.status == REUSED:
            self.reused += 1
        else:
            self.passed_through += 1

    def merge(self, other: "RunSummary") -> None:
        self.records_read += other.records_read
        self.integrated += other.integrated
        self.reused += other.reused
        self.passed_through += other.passed_through
        self.rejected_steps += other.rejected_steps


@dataclass(frozen=True)
class RecordOutcome:
    """Output line (and samples) for one catalog record."""
    line: str
    status: str
    samples: tuple[str, ...] = ()
    rejected_steps: int = 0


@dataclass(frozen=True)
class ChunkTask:
    """Work item for one worker: its stride of the catalog."""
    worker: int
    n_workers: int
    input_path: str
    chunk_path: str
    sample_path: str | None
    header: SofHeader
    target_jd: float
    context: IntegrationContext
    precomputed: dict[int, RecordOutcome] = field(default_factory=dict)
    previous_output: str | None = None
    max_objects: int | None = None


@dataclass(frozen=True)
class ChunkResult:
    """What a worker reports back after writing its chunk."""
    worker: int
    records: int
    sample_counts: tuple[int, ...]
    summary: RunSummary


def _label(header: SofHeader, line: str) -> str:
    return header.text(line, "Name").strip() or "?"


def _integrated_outcome(
    header: SofHeader, line: str, designation: str, result: IntegrationResult,
) -> RecordOutcome:
    samples = tuple(
        format_sample(designation, step.jd_end, step.position) for step in result.steps
    )
    return RecordOutcome(
        line=format_elements(header, line, result.elements),
        status=INTEGRATED,
        samples=samples,
        rejected_steps=result.rejected_steps,
    )


def _integrable(line: str, header: SofHeader, context: IntegrationContext) -> SofRecord | None:
    """Parsed record, or None when the record is to be passed through."""
    try:
        record = parse_record(header, line)
    except ValueError as e:
        _log.warning("Passing through %s: %s", _label(header, line), e)
        return None
    if record.is_unperturbed and not context.config.include_unperturbed:
        return None
    return record


def _integrate_record(
    record: SofRecord,
    header: SofHeader,
    context: IntegrationContext,
    target_jd: float,
) -> tuple[RecordOutcome, IntegrationResult | None]:
    """Integrate one record; a ValueError passes it through unchanged."""
    try:
        result = integrate_orbit(record.elements, target_jd, context, record.designation)
        return _integrated_outcome(header, record.line, record.designation, result), result
    except ValueError as e:
        _log.warning("Passing through %s: %s", record.designation, e)
        return RecordOutcome(line=record.line, status=PASSED), None


def process_record(
    line: str,
    header: SofHeader,
    context: IntegrationContext,
    target_jd: float,
    previous=None,
) -> RecordOutcome:
    """Produce the output for one record.

    Unparseable records, and records without a fit RMS unless
    ``include_unperturbed`` is set, are passed through unchanged. A
    verified match in ``previous`` output is reused without integrating.

    Raises:
        RuntimeError: If the integration's adaptive step underflows.
    """
    record = _integrable(line, header, context)
    if record is None:
        return RecordOutcome(line=line, status=PASSED)

    if previous is not None:
        cached = previous.lookup(line)
        if cached is not None:
            return RecordOutcome(line=cached, status=REUSED)

    outcome, _ = _integrate_record(record, header, context, target_jd)
    return outcome


def run_chunk(task: ChunkTask) -> ChunkResult:
    """Process one stride of the catalog into the task's chunk file(s)."""
    summary = RunSummary()
    sample_counts: list[int] = []
    _log.debug("Worker %d/%d started", task.worker + 1, task.n_workers)
    with ExitStack() as stack:
        out = stack.enter_context(open_catalog(task.chunk_path, "w"))
        samples = None
        if task.sample_path:
            samples = stack.enter_context(open_catalog(task.sample_path, "w"))
        previous = open_previous_output(task.previous_output, task.header, task.target_jd)
        if previous is not None:
            stack.enter_context(previous)

        for number, line in enumerate(iter_catalog(task.input_path)):
            if task.max_objects is not None and number >= task.max_objects:
                break
            if number % task.n_workers != task.worker:
                continue
            outcome = task.precomputed.get(number)
            if outcome is None:
                outcome = process_record(
                    line, task.header, task.context, task.target_jd, previous,
                )
            summary.count(outcome)
            out.write(outcome.line + "\n")
            if samples is not None:
                samples.writelines(s + "\n" for s in outcome.samples)
                sample_counts.append(len(outcome.samples))

    _log.debug(
        "Worker %d/%d finished: %d records", task.worker + 1, task.n_workers,
        summary.records_read,
    )
    return ChunkResult(
        worker=task.worker,
        records=summary.records_read,
        sample_counts=tuple(sample_counts),
        summary=summary,
    )


def _prescan(
    input_path: str, header: SofHeader, max_objects: int | None,
) -> tuple[float | None, list[tuple[int, str, int]]]:
    """First parseable epoch, and (number, line, perturber index) of asteroid perturbers."""
    first_epoch = None
    asteroids = []
    for number, line in enumerate(iter_catalog(input_path)):
        if max_objects is not None and number >= max_objects:
            break
        if first_epoch is None:
            try:
                first_epoch = parse_record(header, line).elements.epoch
            except ValueError:
                pass
        body = perturber_for_designation(header.text(line, "Name"))
        if body is not None and body.index in ASTEROID_INDICES:
            asteroids.append((number, line, body.index))
    return first_epoch, asteroids


def _integrate_asteroids(
    asteroids: list[tuple[int, str, int]],
    header: SofHeader,
    context: IntegrationContext,
    target_jd: float,
) -> tuple[IntegrationContext, dict[int, RecordOutcome]]:
    """Integrate the asteroid perturbers in order, enabling each in turn.

    They follow the same rules as any other record; one that is passed
    through stays disabled as a perturber.
    """
    precomputed: dict[int, RecordOutcome] = {}
    for number, line, index in asteroids:
        name = PERTURBERS[index].name
        record = _integrable(line, header, context)
        if record is None:
            precomputed[number] = RecordOutcome(line=line, status=PASSED)
            _log.info("Asteroid perturber %s passed through; not enabled", name)
            continue
        outcome, result = _integrate_record(record, header, context, target_jd)
        precomputed[number] = outcome
        if result is None:
            _log.info("Asteroid perturber %s could not be integrated; not enabled", name)
            continue
        if result.steps:
            track = AsteroidTrack.from_steps(index, result.steps)
        else:
            track = AsteroidTrack(index, (result.elements.epoch,), (result.elements,))
        context = context.with_track(track)
        _log.info("Asteroid perturber %s integrated and enabled", name)
    return context, precomputed


def _run_tasks(tasks: list[ChunkTask]) -> list[ChunkResult]:
    """Run chunk tasks, one process per worker; N = 1 runs in-process.

    The first worker exception fails the run as a RuntimeError; queued
    tasks are cancelled without waiting for running ones.
    """
    if len(tasks) == 1:
        return [run_chunk(tasks[0])]

    results: list[ChunkResult | None] = [None] * len(tasks)
    executor = ProcessPoolExecutor(max_workers=len(tasks))
    try:
        futures = {executor.submit(run_chunk, task): task.worker for task in tasks}
        for future in as_completed(futures):
            worker = futures[future]
            try:
                results[worker] = future.result()
            except Exception as e:
                raise RuntimeError(f"Worker {worker + 1} failed: {e!r}") from e
            _log.info("Worker %d/%d done", worker + 1, len(tasks))
    except BaseException:
        executor.shutdown(wait=False, cancel_futures=True)
        raise
    executor.shutdown()
    return results


def merge_chunks(
    header: SofHeader,
    results: list[ChunkResult],
    chunk_paths: list[str],
    output_path: str,
    sample_chunk_paths: list[str] | None = None,
    sample_path: str | None = None,
) -> None:
    """Round-robin merge of worker chunks into the final output file(s).

    Record k of the catalog is line k // N of chunk k % N. Output is
    written to a temporary name and moved into place, so a reader never
    sees a half-written catalog.
    """
    n = len(results)
    total = sum(result.records for result in results)
    tmp_output = output_path + ".tmp"
    tmp_samples = sample_path + ".tmp" if sample_path and sample_chunk_paths else None
    try:
        with ExitStack() as stack:
            out = stack.enter_context(open_catalog(tmp_output, "w"))
            chunks = [stack.enter_context(open_catalog(path)) for path in chunk_paths]
            out.write(header.line + "\n")
            for k in range(total):
                out.write(chunks[k % n].readline())

        if tmp_samples is not None:
            with ExitStack() as stack:
                out = stack.enter_context(open_catalog(tmp_samples, "w"))
                chunks = [stack.enter_context(open_catalog(path)) for path in sample_chunk_paths]
                for k in range(total):
                    w = k % n
                    for _ in range(results[w].sample_counts[k // n]):
                        out.write(chunks[w].readline())

        os.replace(tmp_output, output_path)
        if tmp_samples is not None:
            os.replace(tmp_samples, sample_path)
    finally:
        for path in (tmp_output, tmp_samples):
            if path is not None and os.path.exists(path):
                os.remove(path)
    _log.info("Merged %d records from %d chunk(s) into %s", total, n, output_path)


def propagate_catalog(
    input_path: str,
    output_path: str,
    target_jd: float,
    config: IntegrationConfig | None = None,
    ephemeris=None,
    workers: int = 1,
    sample_path: str | None = None,
    previous_output: str | None = None,
    max_objects: int | None = None,
) -> RunSummary:
    """Propagate every record of a SOF catalog to ``target_jd``.

    Args:
        input_path: Input catalog.
        output_path: Output catalog (replaced atomically at the end).
        target_jd: Target epoch (JD, TT).
        config: Integration settings; defaults to IntegrationConfig().
        ephemeris: EphemerisSource; defaults to AnalyticEphemeris().
        workers: Number of worker processes (1 = in-process).
        sample_path: Optional ephemeris-sample output file.
        previous_output: Previous output to reuse unchanged records from.
        max_objects: Only process the first this-many records.

    Returns:
        RunSummary for the whole run.

    Raises:
        FileNotFoundError: If the input catalog is missing.
        ValueError: If the header or configuration is invalid.
        RuntimeError: On cache allocation failure, step underflow, or a
            failed worker.
    """
    config = check_config(config or IntegrationConfig())
    if workers < 1:
        raise ValueError(f"workers must be >= 1, got {workers}")
    if max_objects is not None and max_objects < 0:
        raise ValueError(f"max_objects must be >= 0, got {max_objects}")
    if ephemeris is None:
        ephemeris = AnalyticEphemeris()

    header = read_header(input_path)
    epoch_column_text(header, target_jd)
    first_epoch, asteroids = _prescan(input_path, header, max_objects)
    jd_start = target_jd if first_epoch is None else first_epoch
    _log.info(
        "Propagating %s to JD %.5f with %d worker(s), %s",
        input_path, target_jd, workers, ephemeris,
    )
    context = build_context(config, ephemeris, jd_start, target_jd)
    context, precomputed = _integrate_asteroids(asteroids, header, context, target_jd)

    out_dir = os.path.dirname(os.path.abspath(output_path))
    with tempfile.TemporaryDirectory(prefix="encke-", dir=out_dir) as tmp:
        chunk_paths = [os.path.join(tmp, f"chunk{w}.sof") for w in range(workers)]
        sample_chunks = None
        if sample_path:
            sample_chunks = [os.path.join(tmp, f"samples{w}.txt") for w in range(workers)]
        tasks = [
            ChunkTask(
                worker=w,
                n_workers=workers,
                input_path=input_path,
                chunk_path=chunk_paths[w],
                sample_path=sample_chunks[w] if sample_chunks else None,
                header=header,
                target_jd=target_jd,
                context=context,
                precomputed={k: v for k, v in precomputed.items() if k % workers == w},
                previous_output=previous_output,
                max_objects=max_objects,
            )
            for w in range(workers)
        ]
        results = _run_tasks(tasks)
        merge_chunks(header, results, chunk_paths, output_path, sample_chunks, sample_path)
        for path in chunk_paths + (sample_chunks or []):
            os.remove(path)

    summary = RunSummary()
    for result in results:
        summary.merge(result.summary)
    return summary
