# weightscope/analysis/analyzer.py
"""
Top-level operation: compute parameter and byte statistics for a Hub model.
"""
from __future__ import annotations

import asyncio
from typing import Optional

import httpx
from loguru import logger

from weightscope.analysis.aggregate import aggregate
from weightscope.analysis.base import ModelReport
from weightscope.analysis.layout import detect_layout
from weightscope.config import DEFAULT_REVISION, Settings
from weightscope.io.hub_client import HubClient
from weightscope.observability import Timer


class ModelAnalyzer:
    """Reads only the safetensors headers of a remote model and aggregates them."""

    def __init__(
        self,
        model_id: str,
        revision: str = DEFAULT_REVISION,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.model_id = model_id
        self.revision = revision
        self.settings = settings or Settings()
        self._transport = transport

    async def run(self) -> ModelReport:
        """
        List the repository, pick its layout, fetch the needed headers and
        aggregate them. Any failure aborts the whole run.
        """
        with Timer("analyze") as t_total:
            async with HubClient(
                self.model_id, self.revision, self.settings, transport=self._transport
            ) as hub:
                with Timer("list_files"):
                    files = await hub.list_files()
                logger.debug("Listed {n} files", n=len(files))

                layout = detect_layout(files)
                logger.info(
                    "{model}@{rev}: {kind} layout", model=self.model_id, rev=self.revision, kind=layout.kind
                )

                with Timer("collect"):
                    collected = await layout.collect(hub)
                logger.debug("Read {n} headers", n=len(collected.files))

            stats = aggregate(collected.components)

        logger.info(
            "{model}@{rev}: {params} params, {nbytes} bytes across {n} components",
            model=self.model_id,
            rev=self.revision,
            params=stats.param_count,
            nbytes=stats.bytes_count,
            n=len(stats.components),
        )
        return ModelReport(
            model_id=self.model_id,
            revision=self.revision,
            layout=layout.kind,
            stats=stats,
            files=collected.files,
            duration_ms=t_total.duration_ms,
        )


async def compute_stats(
    model_id: str,
    revision: str = DEFAULT_REVISION,
    settings: Optional[Settings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ModelReport:
    """Compute statistics for ``model_id`` at ``revision`` without downloading weights."""
    return await ModelAnalyzer(model_id, revision, settings, transport=transport).run()


def analyze(
    model_id: str,
    revision: str = DEFAULT_REVISION,
    settings: Optional[Settings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ModelReport:
    """Blocking wrapper around :func:`compute_stats` for scripts and the CLI."""
    return asyncio.run(compute_stats(model_id, revision, settings, transport=transport))
