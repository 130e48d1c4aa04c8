"""
Generation Dispatcher - Orchestrate per-group video generation across vendors
"""

import asyncio
import inspect
import time
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union
from pydantic import BaseModel, ConfigDict

from shotgen.config.settings import settings
from shotgen.core.asset_validator import AssetQuotaError, AssetValidator
from shotgen.core.format_router import FormatRouter, ProtocolVariant
from shotgen.core.request_builders import build_payload
from shotgen.core.task_poller import TaskPoller
from shotgen.core.vendor_client import VendorVideoClient
from shotgen.models.generation import DispatchResult, GenerationRequest, VendorPayload, VendorTask
from shotgen.models.shot import GenerationRecord, GroupStatus
from shotgen.services.credential_pool import CredentialPool
from shotgen.services.error_classifier import (
    ErrorClassifier,
    FailureKind,
    GenerationCancelledError,
    GenerationError,
)
from shotgen.services.group_store import GroupNotFoundError, GroupStateError, GroupStore
from shotgen.services.observability import (
    logger,
    log_failure_classification,
    log_generation_duration,
    log_key_rotation,
)


ProgressCallback = Callable[[int], Any]
Credentials = Union[CredentialPool, Sequence[str]]


class DispatchJob(BaseModel):
    """One group to generate in a batch"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    group_id: str
    request: GenerationRequest
    model: Optional[str] = None
    cancel_event: Optional[asyncio.Event] = None


class GenerationDispatcher:
    """
    Validate, route, submit and poll one shot group's generation

    Generation failures end up on the group (status, failure kind, history)
    and in the returned DispatchResult; they are not raised. Quota and state
    conflicts are raised before anything is submitted.
    """

    def __init__(
        self,
        store: GroupStore,
        client: Optional[VendorVideoClient] = None,
        router: Optional[FormatRouter] = None,
        validator: Optional[AssetValidator] = None,
        classifier: Optional[ErrorClassifier] = None,
        poll_interval_s: Optional[float] = None,
        max_poll_attempts: Optional[int] = None,
        not_found_grace_attempts: Optional[int] = None,
    ):
        self.store = store
        self.classifier = classifier or ErrorClassifier()
        self.client = client or VendorVideoClient(classifier=self.classifier)
        self.router = router or FormatRouter()
        self.validator = validator or AssetValidator()
        self.poll_interval_s = poll_interval_s
        self.max_poll_attempts = max_poll_attempts
        self.not_found_grace_attempts = not_found_grace_attempts

    async def dispatch(
        self,
        group_id: str,
        request: GenerationRequest,
        credentials: Credentials,
        model: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> DispatchResult:
        """
        Generate video for a shot group

        Args:
            group_id: Shot group identifier
            request: Logical generation request
            credentials: Credential pool (or key list) used for submission
            model: Video model id (defaults to settings.video_model)
            on_progress: Called with 0-100 progress values
            cancel_event: Set to cancel generation

        Returns:
            DispatchResult

        Raises:
            AssetQuotaError: If group or request references exceed quotas
            GroupStateError: If the group is already generating or is calibrating
            GroupNotFoundError: If the group does not exist
        """
        group = self.store.get(group_id)
        self.validator.validate_group(group)
        self.validator.validate_request(request)

        model = model or settings.video_model
        pool = credentials if isinstance(credentials, CredentialPool) else CredentialPool(credentials)

        await self.store.begin_generation(group_id, request.prompt)
        started = time.monotonic()
        variant: Optional[ProtocolVariant] = None
        task: Optional[VendorTask] = None

        async def report(progress: int) -> None:
            await self.store.update_progress(group_id, progress)
            if on_progress is not None:
                result = on_progress(progress)
                if inspect.isawaitable(result):
                    await result

        try:
            variant = self.router.detect_format(model)
            payload = build_payload(variant, request, model, self.client.base_url)

            if cancel_event is not None and cancel_event.is_set():
                raise GenerationCancelledError("Generation cancelled")

            task_id, credential = await self._submit_with_rotation(variant, payload, pool)
            task = VendorTask(task_id=task_id, variant=variant.value)

            poller = TaskPoller(
                client=self.client,
                task=task,
                credential=credential,
                on_progress=report,
                cancel_event=cancel_event,
                poll_interval_s=self.poll_interval_s,
                max_attempts=self.max_poll_attempts,
                not_found_grace_attempts=self.not_found_grace_attempts,
                classifier=self.classifier,
            )
            await poller.run()

        except asyncio.CancelledError:
            await self._record_failure(
                group_id, request, GenerationCancelledError("Generation task cancelled"), variant, task
            )
            raise

        except GenerationError as e:
            return await self._record_failure(group_id, request, e, variant, task)

        except Exception as e:
            # unexpected failures still release the group before propagating
            await self.store.fail_generation(group_id, FailureKind.VENDOR_ERROR.value, str(e))
            logger.error("dispatch_unexpected_error", group_id=group_id, error=str(e))
            raise

        record = GenerationRecord(
            prompt=request.prompt,
            video_url=task.video_url,
            status=GroupStatus.COMPLETED,
            variant=variant.value,
            task_id=task.task_id,
            aspect_ratio=request.aspect_ratio,
            resolution=request.resolution,
            duration=request.duration,
        )
        await self.store.complete_generation(group_id, task.video_url, record)

        log_generation_duration(
            group_id=group_id,
            duration_s=round(time.monotonic() - started, 3),
            shot_count=len(group.shot_ids),
            variant=variant.value,
            poll_attempts=task.attempts,
        )

        return DispatchResult(
            group_id=group_id,
            status="succeeded",
            video_url=task.video_url,
            task_id=task.task_id,
            variant=variant.value,
        )

    async def _submit_with_rotation(
        self,
        variant: ProtocolVariant,
        payload: VendorPayload,
        pool: CredentialPool,
    ) -> Tuple[str, str]:
        """
        Submit, rotating credentials on auth/rate-limit failures

        Each credential is tried at most once; the last rotate-kind error is
        raised when all have failed.

        Returns:
            (task id, credential the task is bound to)
        """
        last_error: Optional[GenerationError] = None
        for _ in range(pool.size):
            index, credential = await pool.snapshot()
            try:
                task_id = await self.client.submit(variant, payload, credential)
                return task_id, credential
            except GenerationError as e:
                if not self.classifier.should_rotate(e.kind):
                    raise
                last_error = e
                to_index = await pool.rotate_from(index)
                log_key_rotation(
                    from_index=index,
                    to_index=to_index,
                    failure_kind=e.kind.value,
                    status_code=e.status_code,
                )
        raise last_error

    async def _record_failure(
        self,
        group_id: str,
        request: GenerationRequest,
        error: GenerationError,
        variant: Optional[ProtocolVariant],
        task: Optional[VendorTask],
    ) -> DispatchResult:
        description = self.classifier.describe(error)
        log_failure_classification(
            error_code=error.kind.value,
            classification=description["classification"],
            retryable=error.retryable,
            group_id=group_id,
        )

        record = GenerationRecord(
            prompt=request.prompt,
            status=GroupStatus.FAILED,
            error=error.message,
            failure_kind=error.kind.value,
            variant=variant.value if variant else None,
            task_id=task.task_id if task else None,
            aspect_ratio=request.aspect_ratio,
            resolution=request.resolution,
            duration=request.duration,
        )
        await self.store.fail_generation(group_id, error.kind.value, error.message, record)

        return DispatchResult(
            group_id=group_id,
            status="failed",
            task_id=task.task_id if task else None,
            variant=variant.value if variant else None,
            failure_kind=error.kind.value,
            error=error.message,
        )

    async def dispatch_all(
        self,
        jobs: Sequence[DispatchJob],
        credentials: Credentials,
        concurrency: Optional[int] = None,
        on_progress: Optional[Callable[[str, int], Any]] = None,
    ) -> List[DispatchResult]:
        """
        Generate many groups with bounded concurrency

        Quota, state and missing-group problems of individual jobs are
        reported as failed results instead of aborting the batch.

        Args:
            jobs: Groups to generate
            credentials: Credential pool shared by all jobs
            concurrency: Maximum simultaneous generations (defaults to settings)
            on_progress: Called with (group_id, progress)

        Returns:
            DispatchResult per job, in input order
        """
        pool = credentials if isinstance(credentials, CredentialPool) else CredentialPool(credentials)
        semaphore = asyncio.Semaphore(max(1, concurrency or settings.generation_concurrency))

        async def run(job: DispatchJob) -> DispatchResult:
            async with semaphore:
                progress_cb = None
                if on_progress is not None:
                    progress_cb = lambda p, gid=job.group_id: on_progress(gid, p)
                try:
                    return await self.dispatch(
                        job.group_id,
                        job.request,
                        pool,
                        model=job.model,
                        on_progress=progress_cb,
                        cancel_event=job.cancel_event,
                    )
                except (AssetQuotaError, GroupNotFoundError, GroupStateError) as e:
                    logger.warning("dispatch_rejected", group_id=job.group_id, error=str(e))
                    return DispatchResult(group_id=job.group_id, status="failed", error=str(e))

        logger.info("batch_dispatch_start", job_count=len(jobs))
        return list(await asyncio.gather(*(run(job) for job in jobs)))
