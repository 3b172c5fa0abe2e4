"""RenderOrchestrator — turns parameter edits into engine render requests.

Usage::

    orchestrator = RenderOrchestrator(OpenSCADEngine(), on_state_changed=print)
    await orchestrator.initialize()
    orchestrator.load_document(source_text)
    orchestrator.on_parameter_edit({"width": 60})
    await orchestrator.settled()

Everything runs on the event loop that calls the orchestrator; there is a
single writer for the state, the cache and the latest-request-id map.

Preview requests are debounced and at most one is outstanding.  Issuing a
request for a tier supersedes the previous one for that tier: its consumer
task is cancelled, the engine is asked (without waiting) to cancel it, and
any event that still arrives for it is dropped.  Full-quality requests run
alongside previews and never touch the public state; their results resolve
the future returned by :meth:`RenderOrchestrator.request_full_quality`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from paramforge.config import DEFAULT_DEBOUNCE_MS
from paramforge.parser import parse_source
from paramforge.render.cache import PreviewCache, cache_key
from paramforge.render.engines.base import EventKind, GeometryEngine, RenderRequest
from paramforge.render.state import (
    FailureKind,
    RenderFailure,
    RenderResult,
    RenderState,
    StateDetail,
)
from paramforge.render.tiers import FULL, PREVIEW, QualityTier, apply_quality_settings, get_tier
from paramforge.schema.models import SchemaModel

if TYPE_CHECKING:
    from paramforge.settings import Settings

logger = logging.getLogger(__name__)

StateCallback = Callable[[RenderState, StateDetail], None]
ProgressCallback = Callable[[str, str, float], None]

# States from which an edit marks an existing result stale
_STALE_FROM = (RenderState.CURRENT, RenderState.STALE, RenderState.RENDERING)


@dataclass
class _Outstanding:
    request_id: str
    tier: str
    key: str
    task: Optional[asyncio.Task] = None
    submitted: bool = False
    futures: list[asyncio.Future] = field(default_factory=list)


class RenderOrchestrator:
    """Debounced, tiered, cached render pipeline in front of a :class:`GeometryEngine`.

    Parameters
    ----------
    engine:
        The geometry engine boundary.
    debounce_ms:
        Quiet period after the last edit before a preview is requested.
    cache:
        Result cache; a new :class:`PreviewCache` by default.
    preview_tier, full_tier:
        Quality tiers for debounced previews and explicit full renders.
    on_state_changed:
        Called with ``(state, detail)`` on every state change.
    on_progress:
        Called with ``(tier, request_id, percent)`` for progress events.
    """

    def __init__(
        self,
        engine: GeometryEngine,
        *,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        cache: PreviewCache | None = None,
        preview_tier: QualityTier = PREVIEW,
        full_tier: QualityTier = FULL,
        on_state_changed: StateCallback | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self._engine = engine
        self.debounce_ms = debounce_ms
        self._cache = cache if cache is not None else PreviewCache()
        self._preview_tier = preview_tier
        self._full_tier = full_tier
        self._on_state_changed = on_state_changed
        self._on_progress = on_progress

        self._state = RenderState.IDLE
        self._ready = False
        self._init_failure: RenderFailure | None = None

        self._schema: SchemaModel | None = None
        self._source_text: str | None = None
        self._auxiliary_files: dict[str, bytes] = {}

        self._counter = 0
        self._debounce: asyncio.TimerHandle | None = None
        self._pending_values: dict[str, Any] | None = None
        self._latest_values: dict[str, Any] | None = None
        self._latest_key: str | None = None
        self._latest: dict[str, str] = {}
        self._outstanding: dict[str, _Outstanding] = {}
        self._current_key: str | None = None
        self._last_result: RenderResult | None = None
        self._background: set[asyncio.Task] = set()
        self._idle = asyncio.Event()
        self._idle.set()

    @classmethod
    def from_settings(cls, engine: GeometryEngine, settings: "Settings", **overrides: Any) -> "RenderOrchestrator":
        """Build an orchestrator from validated :class:`~paramforge.settings.Settings`.

        *overrides* take precedence over the settings-derived keyword arguments.
        """
        kwargs: dict[str, Any] = {
            "debounce_ms": settings.debounce_ms,
            "cache": PreviewCache(settings.cache_capacity),
            "preview_tier": get_tier(settings.preview_tier),
        }
        kwargs.update(overrides)
        return cls(engine, **kwargs)

    # -- properties ---------------------------------------------------------

    @property
    def state(self) -> RenderState:
        return self._state

    @property
    def last_result(self) -> RenderResult | None:
        """The most recent preview result that reached ``current``."""
        return self._last_result

    @property
    def cache(self) -> PreviewCache:
        return self._cache

    @property
    def schema(self) -> SchemaModel | None:
        return self._schema

    @property
    def ready(self) -> bool:
        return self._ready and self._init_failure is None

    @property
    def init_failure(self) -> RenderFailure | None:
        return self._init_failure

    # -- lifecycle ----------------------------------------------------------

    async def initialize(self, assets: dict[str, Any] | None = None) -> bool:
        """Initialize the engine.  A failure is sticky until :meth:`reinitialize`."""
        try:
            ready = await self._engine.initialize(assets)
            message = "" if ready else f"Engine '{self._engine.name}' failed to initialize"
        except (OSError, RuntimeError) as exc:
            ready = False
            message = f"Engine '{self._engine.name}' failed to initialize: {exc}"

        self._ready = ready
        if ready:
            self._init_failure = None
            logger.info("Engine '%s' ready", self._engine.name)
            return True

        self._init_failure = RenderFailure(FailureKind.BOUNDARY_INIT_FAILED, message)
        logger.error("%s", message)
        self._cancel_all(self._init_failure)
        self._set_state(RenderState.ERROR, StateDetail.from_failure(self._init_failure))
        return False

    async def reinitialize(self, assets: dict[str, Any] | None = None) -> bool:
        ready = await self.initialize(assets)
        if ready and self._state is RenderState.ERROR:
            self._set_state(RenderState.IDLE, StateDetail())
        return ready

    def load_document(
        self,
        source_text: str,
        schema: SchemaModel | None = None,
        auxiliary_files: dict[str, bytes] | None = None,
    ) -> SchemaModel:
        """Make *source_text* the current document and reset all render state.

        The schema is parsed from the source when not given.
        """
        self._cancel_all(RenderFailure(FailureKind.CANCELLED, "Document replaced"))
        self._cache.clear()
        if schema is None:
            schema, _ = parse_source(source_text)
        self._schema = schema
        self._source_text = source_text
        self._auxiliary_files = dict(auxiliary_files or {})
        self._latest_values = None
        self._latest_key = None
        self._current_key = None
        self._last_result = None
        if self._init_failure is None:
            self._set_state(RenderState.IDLE, StateDetail())
        logger.info("Loaded document with %d parameter(s)", len(schema.parameters))
        return schema

    async def close(self) -> None:
        """Cancel everything and release the engine."""
        self._cancel_all(RenderFailure(FailureKind.CANCELLED, "Orchestrator closed"))
        background = list(self._background)
        for task in background:
            task.cancel()
        if background:
            await asyncio.gather(*background, return_exceptions=True)
        await self._engine.close()

    # -- inbound ------------------------------------------------------------

    def on_parameter_edit(self, snapshot: dict[str, Any]) -> None:
        """Record an edit and (re)start the debounce timer for a preview."""
        if self._init_failure is not None:
            logger.debug("Edit ignored: %s", self._init_failure.message)
            return
        if self._source_text is None:
            logger.warning("Edit ignored: no document loaded")
            return

        values = self._resolve(snapshot)
        key = cache_key(self._preview_tier.name, apply_quality_settings(values, self._preview_tier))
        self._latest_values = values
        self._latest_key = key

        if self._state is RenderState.CURRENT and key == self._current_key:
            return

        self._cancel_debounce()
        if self._cache.contains(self._preview_tier.name, key):
            self._supersede(self._preview_tier.name)
            self._set_state(RenderState.PENDING, StateDetail(tier=self._preview_tier.name))
            self._start_preview(values)
            return

        if self._last_result is not None and self._state in _STALE_FROM:
            self._set_state(RenderState.STALE, StateDetail(tier=self._preview_tier.name))
        else:
            self._set_state(RenderState.PENDING, StateDetail(tier=self._preview_tier.name))

        loop = asyncio.get_running_loop()
        self._pending_values = values
        self._debounce = loop.call_later(self.debounce_ms / 1000, self._on_debounce)
        self._idle.clear()

    def request_full_quality(self, snapshot: dict[str, Any] | None = None) -> asyncio.Future:
        """Render *snapshot* (default: the latest edit) at full quality, without debounce.

        Returns a future resolving to a :class:`RenderResult` or failing
        with :class:`RenderFailure`.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        if self._init_failure is not None:
            future.set_exception(self._init_failure)
            return future
        if self._source_text is None or self._schema is None:
            future.set_exception(RenderFailure(FailureKind.ENGINE_ERROR, "No document loaded"))
            return future

        tier = self._full_tier
        if snapshot is not None:
            values = self._resolve(snapshot)
        elif self._latest_values is not None:
            values = self._latest_values
        else:
            values = self._schema.defaults()
        tiered = apply_quality_settings(values, tier)
        key = cache_key(tier.name, tiered)

        latest = self._latest.get(tier.name)
        joined = self._outstanding.get(latest) if latest else None
        if joined is not None and joined.key == key:
            logger.debug("Joining in-flight %s request %s", tier.name, latest)
            joined.futures.append(future)
            return future

        record = self._issue(tier, key)
        record.futures.append(future)
        record.task = self._spawn(self._run(tier, record, tiered))
        return future

    def cancel_current(self) -> None:
        """Cancel the debounce timer and every outstanding request."""
        busy = self._debounce is not None or bool(self._outstanding)
        failure = RenderFailure(FailureKind.CANCELLED, "Cancelled by caller")
        self._cancel_all(failure)
        if busy and self._init_failure is None:
            self._set_state(RenderState.ERROR, StateDetail.from_failure(failure, self._preview_tier.name))

    async def settled(self) -> None:
        """Wait until no debounce timer and no preview request remain."""
        await self._idle.wait()

    # -- preview pipeline -----------------------------------------------------

    def _on_debounce(self) -> None:
        self._debounce = None
        values, self._pending_values = self._pending_values, None
        if values is None:
            self._update_idle()
            return
        self._start_preview(values)

    def _start_preview(self, values: dict[str, Any]) -> None:
        tier = self._preview_tier
        tiered = apply_quality_settings(values, tier)
        key = cache_key(tier.name, tiered)

        latest = self._latest.get(tier.name)
        joined = self._outstanding.get(latest) if latest else None
        if joined is not None and joined.key == key:
            logger.debug("Preview %s already in flight for this snapshot", latest)
            self._set_state(RenderState.RENDERING, StateDetail(tier=tier.name, request_id=latest))
            return

        record = self._issue(tier, key)
        record.task = self._spawn(self._run(tier, record, tiered))
        self._idle.clear()

    def _issue(self, tier: QualityTier, key: str) -> _Outstanding:
        self._supersede(tier.name)
        self._counter += 1
        record = _Outstanding(request_id=f"{tier.name}-{self._counter}", tier=tier.name, key=key)
        self._latest[tier.name] = record.request_id
        self._outstanding[record.request_id] = record
        return record

    async def _run(self, tier: QualityTier, record: _Outstanding, values: dict[str, Any]) -> None:
        rid = record.request_id
        preview = tier.name == self._preview_tier.name

        cached = await self._cache.get(tier.name, record.key)
        if not self._is_latest(record):
            return
        if cached is not None:
            logger.debug("Cache hit for %s (%s)", rid, record.key[:12])
            self._complete(record, cached.model_copy(update={"cached": True, "request_id": rid}), preview)
            return

        if preview:
            self._set_state(RenderState.RENDERING, StateDetail(tier=tier.name, request_id=rid))
        request = RenderRequest(
            request_id=rid,
            tier=tier.name,
            parameters=values,
            timeout_ms=tier.timeout_ms,
            source_text=self._source_text or "",
            auxiliary_files=self._auxiliary_files,
            resolution=tier.resolution(),
        )
        record.submitted = True
        logger.debug("Submitting %s", rid)

        try:
            result = await asyncio.wait_for(self._consume(request, record), tier.timeout_ms / 1000)
        except asyncio.TimeoutError:
            self._schedule_engine_cancel(rid)
            self._fail(record, RenderFailure(
                FailureKind.TIMEOUT, f"Render exceeded {tier.timeout_ms} ms", rid,
            ), preview)
            return
        except RenderFailure as failure:
            self._fail(record, failure, preview)
            return

        await self._cache.put(tier.name, record.key, result)
        self._complete(record, result, preview)

    async def _consume(self, request: RenderRequest, record: _Outstanding) -> RenderResult:
        rid = request.request_id
        stream = self._engine.submit(request)
        try:
            async for event in stream:
                if event.request_id != rid or not self._is_latest(record):
                    logger.debug("Dropping %s event for %s", event.kind.value, event.request_id)
                    continue
                if event.kind is EventKind.PROGRESS:
                    if self._on_progress is not None:
                        self._on_progress(request.tier, rid, event.percent or 0.0)
                elif event.kind is EventKind.COMPLETE:
                    return RenderResult(
                        request_id=rid,
                        tier=request.tier,
                        key=record.key,
                        artifact=event.artifact or b"",
                        stats=event.stats,
                    )
                else:
                    raise RenderFailure(FailureKind.ENGINE_ERROR, event.message, rid)
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
        raise RenderFailure(FailureKind.ENGINE_ERROR, "Engine finished without a result", rid)

    def _complete(self, record: _Outstanding, result: RenderResult, preview: bool) -> None:
        if not self._is_latest(record):
            logger.debug("Discarding stale result for %s", record.request_id)
            return
        self._retire(record)
        for future in record.futures:
            if not future.done():
                future.set_result(result)
        if preview:
            if record.key != self._latest_key:
                logger.debug("Result for %s is outdated by a newer edit", record.request_id)
                self._update_idle()
                return
            # An edit back to this snapshot may have restarted the timer
            self._cancel_debounce()
            self._current_key = record.key
            self._last_result = result
            self._set_state(RenderState.CURRENT, StateDetail.from_result(result))
            self._update_idle()

    def _fail(self, record: _Outstanding, failure: RenderFailure, preview: bool) -> None:
        if not self._is_latest(record):
            logger.debug("Discarding stale failure for %s: %s", record.request_id, failure.message)
            return
        self._retire(record)
        logger.warning("Render %s failed: %s", record.request_id, failure)
        for future in record.futures:
            if not future.done():
                future.set_exception(failure)
        if preview:
            if record.key != self._latest_key and self._debounce is not None:
                self._update_idle()
                return
            self._set_state(RenderState.ERROR, StateDetail.from_failure(failure, record.tier))
            self._update_idle()

    # -- bookkeeping ----------------------------------------------------------

    def _resolve(self, snapshot: dict[str, Any]) -> dict[str, Any]:
        if self._schema is None:
            return dict(snapshot)
        return self._schema.resolve_values(snapshot)

    def _is_latest(self, record: _Outstanding) -> bool:
        return self._latest.get(record.tier) == record.request_id

    def _retire(self, record: _Outstanding) -> None:
        self._outstanding.pop(record.request_id, None)
        if self._latest.get(record.tier) == record.request_id:
            del self._latest[record.tier]

    def _supersede(self, tier: str, failure: RenderFailure | None = None) -> None:
        rid = self._latest.pop(tier, None)
        record = self._outstanding.pop(rid, None) if rid else None
        if record is None:
            return
        logger.debug("Superseding %s", rid)
        if record.task is not None and not record.task.done():
            record.task.cancel()
        if record.submitted:
            self._schedule_engine_cancel(rid)
        failure = failure or RenderFailure(FailureKind.CANCELLED, "Superseded by a newer request", rid)
        for future in record.futures:
            if not future.done():
                future.set_exception(failure)

    def _cancel_all(self, failure: RenderFailure) -> None:
        self._cancel_debounce()
        for tier in list(self._latest):
            self._supersede(tier, failure)
        self._update_idle()

    def _cancel_debounce(self) -> None:
        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None
        self._pending_values = None

    def _update_idle(self) -> None:
        preview_busy = self._preview_tier.name in self._latest
        if self._debounce is None and not preview_busy:
            self._idle.set()
        else:
            self._idle.clear()

    def _schedule_engine_cancel(self, request_id: str) -> None:
        self._spawn(self._engine.cancel(request_id))

    def _spawn(self, coro: Awaitable[Any]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background render task failed: %r", exc)

    def _set_state(self, state: RenderState, detail: StateDetail) -> None:
        if state is self._state and state not in (RenderState.CURRENT, RenderState.ERROR):
            return
        logger.debug("State %s -> %s", self._state.value, state.value)
        self._state = state
        if self._on_state_changed is not None:
            self._on_state_changed(state, detail)
