"""Per-file scanning and the bounded scheduler that fans scans out across threads"""

import logging
import os
import threading
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from time import time

import psutil

from xgrep.document import DocumentParseError, parse_document
from xgrep.matcher import Emit, Matcher
from xgrep.models import ScanSummary
from xgrep.regex import PatternSet
from xgrep.walk import walk


logger = logging.getLogger(__name__)


def get_default_cores() -> int:
    """Get the default scan concurrency from XGREP_CORES.

    Returns:
        XGREP_CORES when it is a positive integer, otherwise the number of
        logical CPUs.
    """
    fallback = psutil.cpu_count(logical=True) or 1
    value = os.environ.get('XGREP_CORES')
    if value is None:
        return fallback

    try:
        cores = int(value)
    except (ValueError, TypeError):
        logger.warning(f'Invalid XGREP_CORES value {value!r}, using default {fallback}')
        return fallback

    if cores < 1:
        logger.warning(f'XGREP_CORES must be at least 1, got {cores}; using default {fallback}')
        return fallback
    return cores


DEFAULT_CORES = get_default_cores()


class ScanError(RuntimeError):
    """A single file could not be read, parsed or walked"""

    def __init__(self, filename: str, message: str):
        super().__init__(f'{filename}: {message}')
        self.filename = filename


def scan_file(filename: str, patterns: PatternSet, emit: Emit, colorize: bool = False) -> int:
    """
    Read, parse and match one file.

    Args:
        filename: Path of the XML file
        patterns: Compiled filters
        emit: Receives each MatchRecord as soon as it is found
        colorize: Highlight matched text in emitted records

    Returns:
        Number of matches emitted

    Raises:
        ScanError: On read, parse or traversal failure
    """
    thread_id = threading.current_thread().name

    try:
        with open(filename, 'rb') as f:
            data = f.read()
    except OSError as e:
        raise ScanError(filename, f'unable to read: {e}') from e

    try:
        root = parse_document(data)
    except DocumentParseError as e:
        raise ScanError(filename, f'unable to decode XML: {e}') from e

    matcher = Matcher(filename, patterns, emit, colorize=colorize)
    try:
        walk([root], matcher)
    except Exception as e:
        raise ScanError(filename, f'unable to walk: {e}') from e

    logger.debug(f'[SCAN {thread_id}] {filename}: {matcher.matches} matches')
    return matcher.matches


def scan_files(
    filenames: Sequence[str],
    patterns: PatternSet,
    emit: Emit,
    cores: int = DEFAULT_CORES,
    colorize: bool = False,
) -> ScanSummary:
    """
    Scan every file with at most ``cores`` scans running at once.

    One task is submitted per file; the pool admits ``cores`` of them at a
    time and the call returns only after all have finished. A failing file is
    logged and counted, never raised, so it cannot affect the others. Output
    from different files may interleave; within one file, matches keep walk
    order.

    Args:
        filenames: Files to scan
        patterns: Compiled filters shared read-only by all tasks
        emit: Receives each MatchRecord, called from worker threads
        cores: Maximum number of concurrent scans
        colorize: Highlight matched text in emitted records

    Returns:
        ScanSummary with per-run counters
    """
    if cores < 1:
        raise ValueError(f'cores must be at least 1, got {cores}')

    start_time = time()
    summary = ScanSummary()

    if not filenames:
        return summary

    logger.info(f'[SCHEDULER] Scanning {len(filenames)} files with {cores} workers')

    with ThreadPoolExecutor(max_workers=cores, thread_name_prefix='Scanner') as executor:
        future_to_file = {
            executor.submit(scan_file, filename, patterns, emit, colorize): filename for filename in filenames
        }

        for future in as_completed(future_to_file):
            filename = future_to_file[future]
            try:
                summary.matches += future.result()
                summary.files_scanned += 1
            except ScanError as e:
                logger.warning(f'[SCHEDULER] Unable to scan {e}')
                summary.files_failed += 1
            except Exception as e:
                logger.error(f'[SCHEDULER] Scan of {filename} failed unexpectedly: {e}')
                summary.files_failed += 1

    summary.time = time() - start_time
    logger.info(
        f'[SCHEDULER] Completed: {summary.files_scanned} scanned, {summary.files_failed} failed, '
        f'{summary.matches} matches in {summary.time:.3f}s'
    )
    return summary
