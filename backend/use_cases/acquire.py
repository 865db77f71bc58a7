"""SourceAcquirer — turns a MediaReference into a local file plus VideoInfo.

Remote sources go through an ordered cascade of interchangeable download
strategies. Each attempt has its own timeout inside the strategy; between
attempts the acquirer waits a short random backoff. The first success wins
and later strategies are never touched.
"""

import os
import random
import time
import logging
from typing import Callable, Optional, Sequence

from domain.errors import AcquisitionError, InputError, StrategyError, classify_acquisition_failure
from domain.models import MediaReference, VideoInfo
from ports.acquisition import AcquisitionStrategyPort, MetadataProbePort
from ports.media import MediaToolsPort

logger = logging.getLogger(__name__)


class SourceAcquirer:
    def __init__(
        self,
        strategies: Sequence[AcquisitionStrategyPort],
        media: MediaToolsPort,
        probes: Sequence[MetadataProbePort] = (),
        backoff: tuple[float, float] = (1.0, 3.0),
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._strategies = list(strategies)
        self._media = media
        self._probes = list(probes)
        self._backoff = backoff
        self._sleep = sleep

    @property
    def strategy_names(self) -> list[str]:
        return [s.name for s in self._strategies]

    def acquire(self, reference: MediaReference, work_dir: str) -> str:
        """Return a local path for reference. Raises AcquisitionError if every strategy fails."""
        if not reference.is_remote:
            if not os.path.isfile(reference.location):
                raise InputError(f"Uploaded file not found: {reference.location}")
            return reference.location

        url = reference.location
        attempts: list[tuple[str, str]] = []
        timed_out = False

        for index, strategy in enumerate(self._strategies):
            if index > 0:
                delay = random.uniform(*self._backoff)
                logger.info(f"Waiting {delay:.1f}s before next strategy")
                self._sleep(delay)

            logger.info(f"Acquisition attempt {index + 1}/{len(self._strategies)}: {strategy.name}")
            try:
                path = strategy.attempt(url, work_dir)
            except StrategyError as e:
                logger.warning(f"Strategy {strategy.name} failed: {e}")
                attempts.append((strategy.name, str(e)))
                timed_out = timed_out or e.timed_out
                continue

            size_mb = os.path.getsize(path) / (1024 * 1024)
            logger.info(f"Downloaded with {strategy.name}: {os.path.basename(path)} ({size_mb:.1f} MB)")
            return path

        reason = classify_acquisition_failure([msg for _, msg in attempts], timed_out=timed_out)
        logger.error(f"All {len(attempts)} acquisition strategies failed ({reason.value})")
        raise AcquisitionError(reason, attempts)

    def probe_remote(self, url: str) -> VideoInfo:
        """Best-effort metadata lookup. Never raises; returns defaults when every probe fails."""
        for probe in self._probes:
            try:
                info = probe.fetch(url)
                logger.info(f"Metadata via {probe.name}: {info.title!r} ({info.duration_seconds:.0f}s)")
                return info
            except Exception as e:  # noqa: BLE001
                logger.warning(f"Metadata probe {probe.name} failed: {e}")
        return VideoInfo()

    def describe_local(self, path: str, fallback: Optional[VideoInfo] = None) -> VideoInfo:
        """Probe the local file; on failure fall back to remote metadata or defaults."""
        try:
            info = self._media.probe(path)
        except Exception as e:  # noqa: BLE001
            logger.warning(f"Could not probe {path}: {e}")
            return fallback or VideoInfo()

        if fallback:
            if fallback.title != "Unknown Title":
                info.title = fallback.title
            info.description = fallback.description or info.description
            info.video_id = fallback.video_id or info.video_id
        return info
