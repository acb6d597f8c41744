# weightscope/analysis/layout.py
"""
Repository layout detection and the minimal fetch plan for each layout.

The layout is decided once from the file listing (``detect_layout``); the
returned variant carries everything it needs to collect tensor descriptors:

- single file:        ``model.safetensors``
- sharded:            ``model.safetensors.index.json`` -> unique shard files
- diffusion pipeline: ``model_index.json`` -> one component per sub-pipeline

Single-file and sharded layouts may be decorated with sentence-transformers
Dense modules (``config_sentence_transformers.json`` + ``modules.json``).
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Collection,
    Dict,
    Iterable,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    TypeVar,
)

from loguru import logger

from weightscope.errors import IndexParseError, LayoutNotFound
from weightscope.formats.safetensors import TensorDescriptor

SINGLE_FILE = "model.safetensors"
SHARDED_INDEX = "model.safetensors.index.json"
DIFFUSERS_INDEX = "model_index.json"
DIFFUSERS_WEIGHTS = "diffusion_pytorch_model.safetensors"
DIFFUSERS_WEIGHTS_INDEX = "diffusion_pytorch_model.safetensors.index.json"
SENTENCE_TRANSFORMERS_CONFIG = "config_sentence_transformers.json"
MODULES_LIST = "modules.json"
DENSE_MODULE_TYPE = "sentence_transformers.models.Dense"

LAYOUT_MARKERS: Tuple[str, ...] = (SINGLE_FILE, SHARDED_INDEX, DIFFUSERS_INDEX)

# Order matters: the first file present in a sub-pipeline wins.
PIPELINE_WEIGHT_RULES: Tuple[Tuple[str, bool], ...] = (
    (DIFFUSERS_WEIGHTS, False),
    (SINGLE_FILE, False),
    (DIFFUSERS_WEIGHTS_INDEX, True),
    (SHARDED_INDEX, True),
)

TRANSFORMER_COMPONENT = "Transformer"
SENTENCE_TRANSFORMER_COMPONENT = "0_Transformer"

T = TypeVar("T")
TensorMap = Dict[str, TensorDescriptor]


class RepositoryReader(Protocol):
    """What the layouts need from the transport."""

    async def fetch_json(self, path: str) -> Any: ...

    async def fetch_header(self, path: str) -> TensorMap: ...


@dataclass
class Collected:
    """Tensor descriptors per component, plus the weight files read."""

    components: Dict[str, TensorMap] = field(default_factory=dict)
    files: List[str] = field(default_factory=list)


async def gather_settled(aws: Iterable[Awaitable[T]]) -> List[T]:
    """Run ``aws`` concurrently, wait for all of them, then re-raise the first failure."""
    results = await asyncio.gather(*aws, return_exceptions=True)
    for r in results:
        if isinstance(r, BaseException):
            raise r
    return list(results)


def _join(prefix: str, name: str) -> str:
    return f"{prefix}/{name}" if prefix else name


def _dirname(path: str) -> str:
    return path.rpartition("/")[0]


def shard_files(index: Any, index_path: str) -> List[str]:
    """Unique shard paths referenced by an index's ``weight_map``, first-seen order.

    Shard names are resolved relative to the directory holding the index.
    """
    weight_map = index.get("weight_map") if isinstance(index, dict) else None
    if not isinstance(weight_map, dict):
        raise IndexParseError(index_path, "missing 'weight_map' object")
    prefix = _dirname(index_path)
    return [_join(prefix, shard) for shard in dict.fromkeys(weight_map.values())]


def merge_shards(shards: Sequence[Tuple[str, TensorMap]]) -> TensorMap:
    """Union of shard headers keyed by tensor name; the first shard to declare a name keeps it."""
    merged: TensorMap = {}
    for path, tensors in shards:
        for name, desc in tensors.items():
            if name in merged:
                logger.warning(
                    "Tensor {name} declared again in {path}; keeping the first declaration",
                    name=name,
                    path=path,
                )
                continue
            merged[name] = desc
    return merged


def dense_module_paths(modules: Any) -> List[str]:
    """Paths of the Dense entries in a sentence-transformers ``modules.json``."""
    if not isinstance(modules, list):
        raise IndexParseError(MODULES_LIST, "expected a JSON array of modules")
    return [
        m["path"]
        for m in modules
        if isinstance(m, dict) and m.get("type") == DENSE_MODULE_TYPE and m.get("path")
    ]


@dataclass(frozen=True)
class WeightSource:
    """A direct safetensors file, or a shard index naming several."""

    path: str
    indexed: bool = False

    async def read(self, reader: RepositoryReader) -> Tuple[TensorMap, List[str]]:
        if not self.indexed:
            return await reader.fetch_header(self.path), [self.path]
        index = await reader.fetch_json(self.path)
        paths = shard_files(index, self.path)
        logger.debug("{index}: {n} unique shards", index=self.path, n=len(paths))
        headers = await gather_settled(reader.fetch_header(p) for p in paths)
        return merge_shards(list(zip(paths, headers))), paths


def resolve_pipeline_source(name: str, files: Collection[str]) -> Optional[WeightSource]:
    """Weight source of one diffusion sub-pipeline, or None when it has no weights."""
    for filename, indexed in PIPELINE_WEIGHT_RULES:
        path = _join(name, filename)
        if path in files:
            return WeightSource(path, indexed)
    return None


@dataclass(frozen=True)
class SentenceEmbedding:
    """Sentence-transformers decoration of a transformer layout."""

    has_modules_list: bool

    async def collect_dense(self, reader: RepositoryReader) -> Collected:
        out = Collected()
        if not self.has_modules_list:
            return out
        paths = dense_module_paths(await reader.fetch_json(MODULES_LIST))
        files = [_join(p, SINGLE_FILE) for p in paths]
        headers = await gather_settled(reader.fetch_header(f) for f in files)
        out.components.update(zip(paths, headers))
        out.files.extend(files)
        return out


class Layout(ABC):
    """A repository packaging convention and its fetch plan."""

    kind: str

    @abstractmethod
    async def collect(self, reader: RepositoryReader) -> Collected:
        raise NotImplementedError


@dataclass(frozen=True)
class TransformerLayout(Layout):
    """Single-file or sharded weights forming one primary component."""

    source: WeightSource
    sentence_embedding: Optional[SentenceEmbedding] = None

    @property
    def kind(self) -> str:  # type: ignore[override]
        return "sharded" if self.source.indexed else "single_file"

    @property
    def component_name(self) -> str:
        if self.sentence_embedding is not None:
            return SENTENCE_TRANSFORMER_COMPONENT
        return TRANSFORMER_COMPONENT

    async def collect(self, reader: RepositoryReader) -> Collected:
        tensors, files = await self.source.read(reader)
        out = Collected(components={self.component_name: tensors}, files=list(files))
        if self.sentence_embedding is not None:
            dense = await self.sentence_embedding.collect_dense(reader)
            out.components.update(dense.components)
            out.files.extend(dense.files)
        return out


@dataclass(frozen=True)
class DiffusionPipelineLayout(Layout):
    """A diffusers pipeline; each ``model_index.json`` entry is a component."""

    files: frozenset
    kind = "diffusion_pipeline"

    async def collect(self, reader: RepositoryReader) -> Collected:
        index = await reader.fetch_json(DIFFUSERS_INDEX)
        if not isinstance(index, dict):
            raise IndexParseError(DIFFUSERS_INDEX, "expected a JSON object")
        sources: Dict[str, WeightSource] = {}
        for name in index:
            if name.startswith("_"):
                continue
            source = resolve_pipeline_source(name, self.files)
            if source is None:
                logger.debug("Sub-pipeline {name} has no safetensors weights, skipping", name=name)
                continue
            sources[name] = source
        results = await gather_settled(s.read(reader) for s in sources.values())
        out = Collected()
        for name, (tensors, files) in zip(sources, results):
            out.components[name] = tensors
            out.files.extend(files)
        return out


def detect_layout(file_paths: Iterable[str]) -> Layout:
    """Pick the layout for a repository from its (files only) listing.

    Raises:
        LayoutNotFound: none of the layout marker files is present.
    """
    files = frozenset(file_paths)
    if SINGLE_FILE in files or SHARDED_INDEX in files:
        source = (
            WeightSource(SINGLE_FILE)
            if SINGLE_FILE in files
            else WeightSource(SHARDED_INDEX, indexed=True)
        )
        embedding = None
        if SENTENCE_TRANSFORMERS_CONFIG in files:
            embedding = SentenceEmbedding(has_modules_list=MODULES_LIST in files)
        return TransformerLayout(source, embedding)
    if DIFFUSERS_INDEX in files:
        return DiffusionPipelineLayout(files)
    raise LayoutNotFound(LAYOUT_MARKERS)
