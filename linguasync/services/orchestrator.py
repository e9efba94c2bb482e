"""
Translation orchestrator.

Syncs a source item into one or more target languages: translates its
content, creates or updates the linked translation item, routes its
fields, and clears the pending flags for each language it completed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

from linguasync.config import Settings, get_settings
from linguasync.core.errors import (
    InvalidLanguageCode,
    ItemCreateFailed,
    ItemUpdateFailed,
    LinguaSyncError,
    LinkingError,
    NotSourceLanguage,
    RelationFailed,
    SourceNotFound,
    StorageError,
)
from linguasync.core.events import (
    TRANSLATION_COMPLETED,
    TRANSLATION_REQUESTED,
    Event,
    EventBus,
    content_saved,
    publish_if,
)
from linguasync.core.models import (
    BatchTranslationResult,
    ContentItem,
    FieldRoutingResult,
    ItemStatus,
    LanguageResult,
    TranslationResult,
    TranslationStep,
)
from linguasync.fields.router import FieldRouter
from linguasync.i18n.languages import LanguageTag, match_language_code
from linguasync.i18n.registry import ProviderRegistry
from linguasync.integrations.sentry import capture_exception
from linguasync.services.base import Service
from linguasync.storage.base import StorageProvider

if TYPE_CHECKING:
    from linguasync.sync.tracker import ChangeTracker

logger = logging.getLogger(__name__)


@dataclass
class TranslationJob:
    """One (source item, target language) unit moving through the steps."""

    source: ContentItem
    source_language: LanguageTag
    target_language: LanguageTag
    step: TranslationStep = TranslationStep.START
    target_id: str | None = None
    created_new: bool = False
    host_code: str | None = None

    @property
    def code(self) -> str:
        """The host's spelling of the target language once resolved."""
        return self.host_code or str(self.target_language)

    def advance(self, step: TranslationStep) -> None:
        logger.debug(f"{self.source.id} -> {self.code}: {self.step.value} -> {step.value}")
        self.step = step


class TranslationOrchestrator(Service):
    """
    Runs the per-language translation state machine.

    START -> VALIDATE_SOURCE -> RESOLVE_TARGET -> TRANSLATE_CONTENT ->
    WRITE_TARGET -> ROUTE_FIELDS -> FINALIZE -> DONE

    On the create path WRITE_TARGET inserts a draft, assigns its language
    and relates it to the source (reported as RELATE). A failed assign or
    relate deletes the new item again.

    Usage:
        orchestrator = TranslationOrchestrator(storage, providers, tracker=tracker)

        result = await orchestrator.translate_to_language(source_id, "de")
        batch = await orchestrator.translate_to_languages(source_id, ["de", "fr"])
    """

    def __init__(
        self,
        storage: StorageProvider,
        providers: ProviderRegistry,
        router: FieldRouter | None = None,
        tracker: ChangeTracker | None = None,
        event_bus: EventBus | None = None,
        settings: Settings | None = None,
    ):
        self.storage = storage
        self.providers = providers
        self.settings = settings or get_settings()
        self.event_bus = event_bus
        self.router = router or FieldRouter(
            storage,
            providers,
            settings=self.settings,
            event_bus=event_bus,
        )
        self.tracker = tracker

    # =========================================================================
    # Service
    # =========================================================================

    @property
    def service_id(self) -> str:
        return "translation_orchestrator"

    @property
    def subscribes_to(self) -> list[str]:
        return [TRANSLATION_REQUESTED]

    async def handle(self, event: Event) -> list[Event]:
        """Answer ``translation.requested`` with ``translation.completed``."""
        languages = event.payload.get("languages") or []

        try:
            batch = await self.translate_to_languages(event.item_id, languages)
        except LinguaSyncError as e:
            logger.warning(f"Translation request for {event.item_id} rejected: {e.message}")
            payload = {"success": False, "error": e.to_dict()}
        else:
            payload = {"success": batch.success, "result": batch.model_dump(mode="json")}

        completed = Event(
            event_type=TRANSLATION_COMPLETED,
            item_id=event.item_id,
            payload=payload,
        )
        return [completed.caused_by(event)]

    # =========================================================================
    # Public API
    # =========================================================================

    async def translate_to_language(self, source_id: str, language: LanguageTag | str) -> TranslationResult:
        """
        Sync ``source_id`` into one language.

        Raises:
            InvalidLanguageCode, SourceNotFound, NotSourceLanguage: before
                anything is written
            LinguaSyncError: any other failure, with ``step`` set
        """
        target = self._parse_language(language)
        source, source_language = await self._validate_source(source_id)
        self._check_target(target, source_language)

        job = TranslationJob(source=source, source_language=source_language, target_language=target)
        job.advance(TranslationStep.VALIDATE_SOURCE)
        return await self._run(job)

    async def translate_to_languages(
        self,
        source_id: str,
        languages: Iterable[LanguageTag | str],
    ) -> BatchTranslationResult:
        """
        Sync ``source_id`` into several languages concurrently.

        Precondition errors raise before any language is processed. Every
        other failure is recorded on that language's result only.
        """
        targets: list[LanguageTag] = []
        for language in languages:
            tag = self._parse_language(language)
            if tag not in targets:
                targets.append(tag)

        source, source_language = await self._validate_source(source_id)
        for tag in targets:
            self._check_target(tag, source_language)

        batch = BatchTranslationResult(
            source_item_id=source_id,
            source_language=str(source_language),
        )
        semaphore = asyncio.Semaphore(max(1, self.settings.max_parallel_languages))

        async def run_one(tag: LanguageTag) -> LanguageResult:
            job = TranslationJob(source=source, source_language=source_language, target_language=tag)
            job.advance(TranslationStep.VALIDATE_SOURCE)
            async with semaphore:
                return await self._run_isolated(job)

        for language_result in await asyncio.gather(*(run_one(tag) for tag in targets)):
            batch.add(language_result)

        logger.info(
            f"Translated {source_id}: {len(batch.completed_languages)} succeeded, "
            f"{len(batch.failed_languages)} failed"
        )
        return batch

    # =========================================================================
    # Preconditions
    # =========================================================================

    def _parse_language(self, language: LanguageTag | str) -> LanguageTag:
        try:
            return LanguageTag.coerce(language)
        except InvalidLanguageCode as e:
            raise e.at_step(TranslationStep.START.value)

    async def _validate_source(self, source_id: str) -> tuple[ContentItem, LanguageTag]:
        step = TranslationStep.VALIDATE_SOURCE.value

        source = await self.storage.content.get(source_id)
        if source is None:
            raise SourceNotFound(
                f"Source item not found: {source_id}",
                step=step,
                context={"item_id": source_id},
            )

        if not await self.storage.linking.is_source_item(source_id):
            raise NotSourceLanguage(
                f"Item {source_id} is not a source language item",
                step=step,
                context={"item_id": source_id},
            )

        code = await self.storage.linking.get_language(source_id)
        if not code:
            raise NotSourceLanguage(
                f"Item {source_id} has no language assigned",
                step=step,
                context={"item_id": source_id},
            )

        try:
            return source, LanguageTag.parse(code)
        except InvalidLanguageCode as e:
            raise e.at_step(step)

    def _check_target(self, target: LanguageTag, source_language: LanguageTag) -> None:
        if str(target).lower() == str(source_language).lower():
            raise InvalidLanguageCode(
                f'Target language "{target}" is the source language',
                step=TranslationStep.VALIDATE_SOURCE.value,
                context={"language": str(target)},
            )

    # =========================================================================
    # State machine
    # =========================================================================

    async def _run_isolated(self, job: TranslationJob) -> LanguageResult:
        """Run one job, turning any failure into a failed language result."""
        try:
            return LanguageResult.succeeded(await self._run(job))
        except LinguaSyncError as e:
            logger.warning(f"Translation of {job.source.id} to {job.code} failed at {e.step}: {e.message}")
            return LanguageResult.failed(job.code, e.code, e.message, e.step or job.step)
        except Exception as e:
            logger.exception(f"Unexpected error translating {job.source.id} to {job.code}")
            capture_exception(e, source_item_id=job.source.id, language=job.code, step=job.step.value)
            return LanguageResult.failed(job.code, "unexpected_error", str(e), job.step)

    async def _run(self, job: TranslationJob) -> TranslationResult:
        try:
            job.advance(TranslationStep.RESOLVE_TARGET)
            job.host_code = await self._resolve_host_code(job)
            existing_id = await self.storage.linking.get_translation_for(job.source.id, job.code)

            job.advance(TranslationStep.TRANSLATE_CONTENT)
            content = await self._translate_content(job)

            job.advance(TranslationStep.WRITE_TARGET)
            if existing_id is None:
                await self._create_target(job, content)
            else:
                await self._update_target(job, existing_id, content)

            job.advance(TranslationStep.ROUTE_FIELDS)
            routing = await self.router.route_all_fields(
                job.source.id,
                job.target_id,
                job.target_language,
                job.source_language,
                target_code=job.code,
            )

            job.advance(TranslationStep.FINALIZE)
            await self._finalize(job)

        except LinguaSyncError as e:
            failed_at = job.step
            job.advance(TranslationStep.ERROR)
            raise e.at_step(failed_at.value)

        job.advance(TranslationStep.DONE)
        return self._build_result(job, routing)

    async def _resolve_host_code(self, job: TranslationJob) -> str:
        """
        The code the linking service knows the target language by.

        Group members win over active languages; a language the host has
        never seen keeps its canonical spelling.
        """
        linking = self.storage.linking
        tag = job.target_language

        match = match_language_code(tag, await linking.get_group_members(job.source.id))
        if match is None:
            match = match_language_code(tag, await linking.get_active_languages())
        return match or str(tag)

    async def _translate_content(self, job: TranslationJob) -> dict[str, str]:
        """Title always; body and summary only when they have text."""
        source = job.source
        translate = self.providers.translate

        content = {
            "title": await translate(job.target_language, source.title, job.source_language),
            "body": "",
            "summary": "",
        }
        if source.body:
            content["body"] = await translate(job.target_language, source.body, job.source_language)
        if source.summary:
            content["summary"] = await translate(job.target_language, source.summary, job.source_language)

        return content

    async def _create_target(self, job: TranslationJob, content: dict[str, str]) -> None:
        try:
            target_id = await self.storage.content.create({
                **content,
                "status": ItemStatus.DRAFT.value,
                "language": job.code,
            })
        except StorageError as e:
            raise ItemCreateFailed(
                f"Could not create {job.code} translation of {job.source.id}: {e.message}",
                context={"source_item_id": job.source.id, "language": job.code},
            ) from e

        job.target_id = target_id
        job.created_new = True

        job.advance(TranslationStep.RELATE)
        try:
            await self.storage.linking.assign_language(target_id, job.code)
            await self.storage.linking.relate(target_id, job.source.id, job.code)
        except LinkingError as e:
            await self._discard(target_id)
            raise RelationFailed(
                f"Could not relate {target_id} to {job.source.id} as {job.code}: {e.message}",
                context={"source_item_id": job.source.id, "target_item_id": target_id, "language": job.code},
            ) from e

        logger.info(f"Created {job.code} translation {target_id} of {job.source.id}")

    async def _discard(self, target_id: str) -> None:
        """Delete a half-created translation so no orphan is left behind."""
        try:
            await self.storage.content.delete(target_id)
        except StorageError as e:
            logger.error(f"Could not delete orphaned item {target_id}: {e.message}")

    async def _update_target(self, job: TranslationJob, target_id: str, content: dict[str, str]) -> None:
        try:
            await self.storage.content.update(target_id, content)
        except StorageError as e:
            raise ItemUpdateFailed(
                f"Could not update {job.code} translation {target_id}: {e.message}",
                context={"target_item_id": target_id, "language": job.code},
            ) from e

        job.target_id = target_id
        job.created_new = False
        logger.info(f"Updated {job.code} translation {target_id} of {job.source.id}")

    async def _finalize(self, job: TranslationJob) -> None:
        if self.storage.fields is not None:
            await self.storage.fields.copy_managed_fields(job.source.id, job.target_id)

        await publish_if(self.event_bus, content_saved(
            item_id=job.target_id,
            language=job.code,
            source_item_id=job.source.id,
            created_new=job.created_new,
        ))

        if self.tracker is not None:
            await self.tracker.clear(job.source.id, lang=job.code)

    def _build_result(self, job: TranslationJob, routing: FieldRoutingResult) -> TranslationResult:
        return TranslationResult(
            language=job.code,
            source_item_id=job.source.id,
            target_item_id=job.target_id,
            created_new=job.created_new,
            translated_field_count=routing.translated_count,
            skipped_field_count=routing.skipped_count,
            errors=list(routing.field_errors),
        )
