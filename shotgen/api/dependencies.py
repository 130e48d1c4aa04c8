"""
API Dependencies - Process-wide store, dispatcher and background generation registry
"""

import asyncio
from typing import Awaitable, Callable, Dict, Optional

from shotgen.config.settings import settings
from shotgen.models.generation import DispatchResult
from shotgen.services.credential_pool import CredentialPool
from shotgen.services.dispatcher import GenerationDispatcher
from shotgen.services.group_store import GroupStore
from shotgen.services.observability import logger


class GenerationJobs:
    """
    Background generation tasks keyed by group id

    Each running generation owns a cancel event; cancel() sets it and the
    poller stops within one poll interval.
    """

    def __init__(self):
        self._tasks: Dict[str, asyncio.Task] = {}
        self._cancel_events: Dict[str, asyncio.Event] = {}

    def is_running(self, group_id: str) -> bool:
        task = self._tasks.get(group_id)
        return task is not None and not task.done()

    def start(
        self,
        group_id: str,
        run: Callable[[asyncio.Event], Awaitable[DispatchResult]],
    ) -> asyncio.Task:
        """
        Start a generation in the background

        Args:
            group_id: Shot group identifier
            run: Coroutine factory receiving the cancel event

        Raises:
            ValueError: If a generation is already running for the group
        """
        if self.is_running(group_id):
            raise ValueError(f"Generation already running for group {group_id}")

        cancel_event = asyncio.Event()
        task = asyncio.create_task(run(cancel_event))
        self._tasks[group_id] = task
        self._cancel_events[group_id] = cancel_event
        task.add_done_callback(lambda t, gid=group_id: self._on_done(gid, t))
        return task

    def _on_done(self, group_id: str, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("background_generation_failed", group_id=group_id, error=str(error))

    def cancel(self, group_id: str) -> bool:
        """Signal cancellation; returns False when nothing is running"""
        if not self.is_running(group_id):
            return False
        self._cancel_events[group_id].set()
        logger.info("generation_cancel_requested", group_id=group_id)
        return True

    async def wait(self, group_id: str) -> Optional[DispatchResult]:
        """Await a group's current generation task, if any"""
        task = self._tasks.get(group_id)
        if task is None:
            return None
        return await task


_group_store: Optional[GroupStore] = None
_dispatcher: Optional[GenerationDispatcher] = None
_credential_pool: Optional[CredentialPool] = None
_jobs: Optional[GenerationJobs] = None


def get_group_store() -> GroupStore:
    global _group_store
    if _group_store is None:
        _group_store = GroupStore()
    return _group_store


def get_dispatcher() -> GenerationDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = GenerationDispatcher(get_group_store())
    return _dispatcher


def get_credential_pool() -> CredentialPool:
    """
    Credential pool built from settings

    Raises:
        NoCredentialsError: If VENDOR_API_KEYS is empty
    """
    global _credential_pool
    if _credential_pool is None:
        _credential_pool = CredentialPool(settings.api_key_list)
    return _credential_pool


def get_generation_jobs() -> GenerationJobs:
    global _jobs
    if _jobs is None:
        _jobs = GenerationJobs()
    return _jobs


async def close_dispatcher() -> None:
    """Close the shared vendor client, if one was created"""
    global _dispatcher
    if _dispatcher is not None:
        await _dispatcher.client.close()
        _dispatcher = None
