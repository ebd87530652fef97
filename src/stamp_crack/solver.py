import multiprocessing
import threading
import time
from collections import deque
from concurrent.futures import Future, ProcessPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

import structlog

from stamp_crack.cipher import TimestampCipher
from stamp_crack.config import (
    CHECK_INTERVAL,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONFIG,
    PROGRESS_INTERVAL,
    CipherConfig,
    ConfigError,
    SearchRange,
)
from stamp_crack.logs import configure_logging
from stamp_crack.state_snapshot import SearchSnapshot
from stamp_crack.text import BytesLike, TextDecodeFailure
from stamp_crack.utils import split_trailing_block, validate_ciphertext


log = structlog.get_logger()

ProgressFn = Callable[[SearchSnapshot], None]
CheckpointFn = Callable[[int, int, int], None]
StopFn = Callable[[], bool]

POLL_INTERVAL = 0.25


class SearchOutcome(str, Enum):
    FOUND = "found"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"

    def __str__(self):
        return self.value


@dataclass(frozen=True, slots=True)
class Match:
    seed: int
    password: bytes
    plaintext: bytes
    text: str


@dataclass(frozen=True, slots=True)
class FalsePositive:
    """A seed that passed the padding heuristic but did not decrypt to text."""

    seed: int
    invalid_byte: int
    encoding: str


@dataclass(frozen=True, slots=True)
class ScanResult:
    seeds_checked: int
    candidates: int
    match: Optional[Match] = None
    false_positives: tuple[FalsePositive, ...] = ()
    stopped: bool = False


@dataclass(frozen=True, slots=True)
class SearchResult:
    outcome: SearchOutcome
    seeds_checked: int
    candidates: int
    elapsed: float
    match: Optional[Match] = None
    false_positives: tuple[FalsePositive, ...] = ()

    @property
    def found(self) -> bool:
        return self.outcome is SearchOutcome.FOUND

    @property
    def seed(self) -> Optional[int]:
        return self.match.seed if self.match else None

    @property
    def text(self) -> Optional[str]:
        return self.match.text if self.match else None


def padding_run_length(block: BytesLike) -> int:
    """Number of bytes at the end of the block equal to the last byte."""
    last_byte = block[-1]
    run_length = 0
    for value in reversed(block):
        if value != last_byte:
            break
        run_length += 1
    return run_length


def expected_padding(total_length: int, run_length: int, config: CipherConfig = DEFAULT_CONFIG) -> int:
    return config.trailing_size - (total_length - run_length) % config.block_size


def is_strong_match(decoded_tail: BytesLike, total_length: int, config: CipherConfig = DEFAULT_CONFIG) -> bool:
    """
    Cheap padding-consistency check on a decoded trailing block.

    The scheme pads with N bytes of value N, where N is between
    `trailing_size - block_size + 1` and `trailing_size`. A candidate passes when
    the run of equal bytes at the end has exactly the length and value the
    ciphertext length implies. Passing is necessary but not sufficient.
    """
    last_byte = decoded_tail[-1]
    # Any accepted value lies in (trailing_size - block_size, trailing_size].
    if last_byte > config.trailing_size or last_byte <= config.trailing_size - config.block_size:
        return False

    run_length = padding_run_length(decoded_tail)
    expected = expected_padding(total_length, run_length, config)
    return last_byte == expected and run_length == expected


def confirm_candidate(
    cipher: TimestampCipher,
    password: bytes,
    ciphertext: bytes,
    scratch: bytearray,
) -> str | TextDecodeFailure:
    """Decrypt the whole buffer under a strong match and check it reads as text."""
    return cipher.try_decode_text(password, ciphertext, scratch)


def scan_seeds(
    cipher: TimestampCipher,
    ciphertext: bytes,
    seeds: range,
    *,
    should_stop: Optional[StopFn] = None,
    on_checkpoint: Optional[CheckpointFn] = None,
    checkpoint_every: int = CHECK_INTERVAL,
) -> ScanResult:
    """
    Try every seed in order and stop at the first one whose password decrypts
    the ciphertext to text.

    Every `checkpoint_every` seeds, `on_checkpoint(checked, last_seed, candidates)`
    is called and `should_stop()` is polled.
    """
    config = cipher.config
    total_length = len(ciphertext)
    _, trailing_block = split_trailing_block(ciphertext, config.trailing_size)

    tail_scratch = bytearray(config.trailing_size)
    full_scratch: Optional[bytearray] = None

    checked = 0
    candidates = 0
    false_positives: list[FalsePositive] = []
    last_seed = None

    for seed in seeds:
        if checked and checked % checkpoint_every == 0:
            if on_checkpoint is not None:
                on_checkpoint(checked, last_seed, candidates)
            if should_stop is not None and should_stop():
                return ScanResult(checked, candidates, false_positives=tuple(false_positives), stopped=True)

        checked += 1
        last_seed = seed
        password = cipher.generate_password(seed)
        cipher.decode(password, trailing_block, tail_scratch)
        if not is_strong_match(tail_scratch, total_length, config):
            continue

        candidates += 1
        log.info("candidate found", seed=seed, run_length=padding_run_length(tail_scratch))

        if full_scratch is None:
            full_scratch = bytearray(total_length)
        text = confirm_candidate(cipher, password, ciphertext, full_scratch)
        if isinstance(text, TextDecodeFailure):
            log.info("candidate rejected", seed=seed, invalid_byte=text.invalid_byte, encoding=text.encoding)
            false_positives.append(FalsePositive(seed, text.invalid_byte, text.encoding))
            continue

        match = Match(seed=seed, password=password, plaintext=bytes(full_scratch), text=text)
        return ScanResult(checked, candidates, match=match, false_positives=tuple(false_positives))

    return ScanResult(checked, candidates, false_positives=tuple(false_positives))


class _ProgressReporter:
    """Logs progress every `interval` seeds and publishes snapshots."""

    def __init__(self, seeds: range, workers: int, started: float, interval: int,
                 on_progress: Optional[ProgressFn]):
        self.seeds = seeds
        self.workers = workers
        self.started = started
        self.interval = interval
        self.on_progress = on_progress
        self.state_version = 0
        self._next_report = interval

    def update(self, checked: int, current_seed: int, candidates: int, false_positives: int) -> None:
        if checked < self._next_report:
            return
        while self._next_report <= checked:
            self._next_report += self.interval

        log.info("checking seeds", seed=current_seed, seeds_checked=checked, timestamp=int(time.time()))
        self._publish(False, checked, current_seed, candidates, false_positives)

    def finish(self, checked: int, current_seed: int, candidates: int, false_positives: int,
               found_seed: Optional[int]) -> None:
        self._publish(True, checked, current_seed, candidates, false_positives, found_seed)

    def _publish(self, complete: bool, checked: int, current_seed: int, candidates: int,
                 false_positives: int, found_seed: Optional[int] = None) -> None:
        if self.on_progress is None:
            return
        self.state_version += 1
        self.on_progress(SearchSnapshot(
            state_version=self.state_version,
            complete=complete,
            seeds_total=len(self.seeds),
            seeds_checked=checked,
            current_seed=current_seed,
            upper_seed=self.seeds[0],
            lower_seed=self.seeds[-1],
            workers=self.workers,
            elapsed=time.time() - self.started,
            candidates=candidates,
            false_positives=false_positives,
            found_seed=found_seed,
        ))


def _search_inline(cipher, ciphertext, seeds, *, should_stop, reporter) -> ScanResult:
    def on_checkpoint(checked: int, seed: int, candidates: int) -> None:
        # No match yet, so every candidate so far was a false positive.
        reporter.update(checked, seed, candidates, candidates)

    return scan_seeds(cipher, ciphertext, seeds, should_stop=should_stop, on_checkpoint=on_checkpoint)


# Per-process state, set once by the pool initializer.
_worker_state: dict[str, Any] = {}


def _init_worker(cipher: TimestampCipher, ciphertext: bytes, stop_event, log_config: Optional[dict]) -> None:
    if log_config is not None:
        configure_logging(**log_config)
    _worker_state["cipher"] = cipher
    _worker_state["ciphertext"] = ciphertext
    _worker_state["stop_event"] = stop_event


def _scan_chunk(seeds: range, deadline: Optional[float]) -> ScanResult:
    stop_event = _worker_state["stop_event"]

    def should_stop() -> bool:
        return stop_event.is_set() or (deadline is not None and time.time() >= deadline)

    if should_stop():
        return ScanResult(0, 0, stopped=True)
    return scan_seeds(_worker_state["cipher"], _worker_state["ciphertext"], seeds, should_stop=should_stop)


def _wait_for(future: Future, stop_event, cancel_event: Optional[threading.Event]) -> ScanResult:
    while True:
        try:
            return future.result(timeout=POLL_INTERVAL)
        except TimeoutError:
            if cancel_event is not None and cancel_event.is_set():
                stop_event.set()


def _search_pool(cipher, ciphertext, seeds, *, workers, chunk_size, deadline, cancel_event,
                 reporter, log_config) -> tuple[ScanResult, int]:
    """
    Split the seeds into chunks in search order and scan them in a process pool.

    Results are consumed in chunk order, so the first match in search order wins
    no matter which worker finishes first.
    """
    # Spawned workers do not inherit locks held by the UI threads.
    context = multiprocessing.get_context("spawn")
    stop_event = context.Event()
    chunks = (seeds[i:i + chunk_size] for i in range(0, len(seeds), chunk_size))

    checked = 0
    candidates = 0
    false_positives: list[FalsePositive] = []
    match = None
    stopped = False
    current_seed = seeds[0]

    with ProcessPoolExecutor(
        max_workers=workers,
        mp_context=context,
        initializer=_init_worker,
        initargs=(cipher, ciphertext, stop_event, log_config),
    ) as executor:
        pending: deque[tuple[Future, range]] = deque()

        def submit_more() -> None:
            while len(pending) < workers * 2:
                chunk = next(chunks, None)
                if chunk is None:
                    return
                pending.append((executor.submit(_scan_chunk, chunk, deadline), chunk))

        try:
            submit_more()
            while pending:
                future, chunk = pending.popleft()
                result = _wait_for(future, stop_event, cancel_event)

                checked += result.seeds_checked
                candidates += result.candidates
                false_positives.extend(result.false_positives)
                if result.seeds_checked:
                    current_seed = chunk[result.seeds_checked - 1]

                if result.match is not None:
                    match = result.match
                    break
                if result.stopped:
                    stopped = True
                    break

                reporter.update(checked, current_seed, candidates, len(false_positives))
                submit_more()
        finally:
            # Chunks still running see the event at their next checkpoint.
            stop_event.set()
            for future, _ in pending:
                future.cancel()

    scan = ScanResult(checked, candidates, match=match, false_positives=tuple(false_positives), stopped=stopped)
    return scan, current_seed


def solve_ciphertext(
    cipher: TimestampCipher,
    ciphertext: bytes,
    search_range: SearchRange,
    *,
    workers: int = 1,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    max_seeds: Optional[int] = None,
    timeout: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
    progress_interval: int = PROGRESS_INTERVAL,
    on_progress: Optional[ProgressFn] = None,
    log_config: Optional[dict] = None,
) -> SearchResult:
    """
    Search the seed range from the top down for the password that decrypts the
    ciphertext to text.

    - workers: 1 scans in the calling thread, more uses a process pool
    - max_seeds: iteration budget; stopping on it yields CANCELLED
    - timeout: wall clock limit in seconds
    - cancel_event: set from another thread to stop the search
    - log_config: `configure_logging` kwargs applied inside worker processes
    """
    validate_ciphertext(ciphertext, cipher.config)
    if workers < 1:
        raise ConfigError(f"Workers must be at least 1: {workers}")
    if chunk_size < 1:
        raise ConfigError(f"Chunk size must be at least 1: {chunk_size}")
    if progress_interval < 1:
        raise ConfigError(f"Progress interval must be at least 1: {progress_interval}")
    if max_seeds is not None and max_seeds < 1:
        raise ConfigError(f"Seed budget must be at least 1: {max_seeds}")

    seeds = search_range.seeds()
    budget_limited = max_seeds is not None and max_seeds < len(seeds)
    if budget_limited:
        seeds = seeds[:max_seeds]

    body, trailing_block = split_trailing_block(ciphertext, cipher.config.trailing_size)
    log.info(
        "search started",
        ciphertext_bits=len(ciphertext) * 8,
        trailing_bits=len(trailing_block) * 8,
        body_bits=len(body) * 8,
        upper_seed=search_range.upper,
        lower_seed=search_range.lower,
        step=search_range.step,
        seeds=len(seeds),
        workers=workers,
    )

    started = time.time()
    deadline = started + timeout if timeout is not None else None
    reporter = _ProgressReporter(seeds, workers, started, progress_interval, on_progress)

    if workers == 1:
        def should_stop() -> bool:
            if cancel_event is not None and cancel_event.is_set():
                return True
            return deadline is not None and time.time() >= deadline

        scan = _search_inline(cipher, ciphertext, seeds, should_stop=should_stop, reporter=reporter)
        current_seed = seeds[scan.seeds_checked - 1] if scan.seeds_checked else seeds[0]
    else:
        scan, current_seed = _search_pool(
            cipher, ciphertext, seeds,
            workers=workers,
            chunk_size=chunk_size,
            deadline=deadline,
            cancel_event=cancel_event,
            reporter=reporter,
            log_config=log_config,
        )

    if scan.match is not None:
        outcome = SearchOutcome.FOUND
    elif scan.stopped or budget_limited:
        outcome = SearchOutcome.CANCELLED
    else:
        outcome = SearchOutcome.EXHAUSTED

    elapsed = time.time() - started
    reporter.finish(scan.seeds_checked, current_seed, scan.candidates, len(scan.false_positives),
                    scan.match.seed if scan.match else None)
    log.info(
        "search finished",
        outcome=str(outcome),
        seed=scan.match.seed if scan.match else None,
        seeds_checked=scan.seeds_checked,
        candidates=scan.candidates,
        false_positives=len(scan.false_positives),
        elapsed=round(elapsed, 3),
    )

    return SearchResult(
        outcome=outcome,
        seeds_checked=scan.seeds_checked,
        candidates=scan.candidates,
        elapsed=elapsed,
        match=scan.match,
        false_positives=scan.false_positives,
    )
