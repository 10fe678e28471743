"""
Batch extraction - runs many extractions across worker threads.

Each submitted Rules is an independent, synchronous Harvester.extract call;
the workers share the harvester, so per-host delays and the robots.txt cache
apply across the whole batch.
"""

import logging
import threading
import time
from dataclasses import dataclass
from queue import Empty, Queue
from typing import List, Optional, Sequence, Tuple

from .harvester import Harvester, Output
from .rules import Rules


@dataclass
class BatchResult:
    """Outcome of one submitted Rules: an output or the error it raised."""
    index: int
    rules: Rules
    output: Optional[Output] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None and (self.output is None or not self.output.errors)


class BatchExtractor:
    """
    Runs Harvester.extract for a list of rules with a pool of workers.

    Results come back in submission order. A failing item is reported in its
    BatchResult and does not stop the batch.
    """

    def __init__(self, harvester: Harvester, num_workers: int = 4):
        """
        Args:
            harvester: Harvester shared by every worker
            num_workers: Number of worker threads to spawn
        """
        self.harvester = harvester
        self.num_workers = max(1, num_workers)

        self.input_queue: "Queue[Tuple[int, Rules]]" = Queue()
        self.results: List[Optional[BatchResult]] = []
        self.workers: List[threading.Thread] = []
        self.is_running = False

        # Statistics
        self.processed_count = 0
        self.error_count = 0
        self.start_time = None
        self.total_processing_time = 0.0

        self.stats_lock = threading.Lock()
        self.logger = logging.getLogger(self.__class__.__name__)

    def run(self, rules_list: Sequence[Rules]) -> List[BatchResult]:
        """
        Extract every rules in ``rules_list`` and wait for completion.

        Returns:
            One BatchResult per rules, in the same order
        """
        self.results = [None] * len(rules_list)
        for index, rules in enumerate(rules_list):
            self.input_queue.put((index, rules))

        self.logger.info(f"Starting batch of {len(rules_list)} with {self.num_workers} workers")
        self._start()
        try:
            self.input_queue.join()
        finally:
            self._stop()

        with self.stats_lock:
            self.logger.info(f"Batch finished: {self.processed_count} processed, "
                             f"{self.error_count} errors")
            return list(self.results)

    def _start(self):
        self.is_running = True
        self.start_time = time.time()

        for i in range(self.num_workers):
            worker = threading.Thread(
                target=self._worker_loop,
                name=f"Harvester-Worker-{i+1}",
                daemon=True
            )
            worker.start()
            self.workers.append(worker)

    def _stop(self, timeout: float = 5.0):
        self.is_running = False
        for worker in self.workers:
            worker.join(timeout=timeout)
            if worker.is_alive():
                self.logger.warning(f"Worker {worker.name} did not stop in time")
        self.workers.clear()

    def _worker_loop(self):
        worker_name = threading.current_thread().name
        self.logger.debug(f"{worker_name} started")

        while self.is_running:
            try:
                index, rules = self.input_queue.get(timeout=0.1)
            except Empty:
                continue

            try:
                start_time = time.time()
                result = self.process(index, rules)
                processing_time = time.time() - start_time

                with self.stats_lock:
                    self.results[index] = result
                    self.processed_count += 1
                    self.total_processing_time += processing_time
                    if not result.ok:
                        self.error_count += 1

                self.logger.debug(f"{worker_name} processed {rules.url} in {processing_time:.3f}s")
            finally:
                self.input_queue.task_done()

        self.logger.debug(f"{worker_name} stopped")

    def process(self, index: int, rules: Rules) -> BatchResult:
        try:
            output = self.harvester.extract(rules)
        except Exception as e:
            self.logger.error(f"Extraction of {rules.url} failed: {e}")
            return BatchResult(index=index, rules=rules, error=e)
        return BatchResult(index=index, rules=rules, output=output)

    def get_stats(self) -> dict:
        with self.stats_lock:
            runtime = time.time() - self.start_time if self.start_time else 0
            stats = {
                'workers': self.num_workers,
                'processed': self.processed_count,
                'errors': self.error_count,
                'runtime_seconds': round(runtime, 2),
            }
            if self.processed_count > 0:
                stats['avg_processing_time_seconds'] = round(
                    self.total_processing_time / self.processed_count, 3
                )
            else:
                stats['avg_processing_time_seconds'] = 0.0
            return stats
