"""Editing session over one document draft.

The session owns the in-memory model. Each edit replaces ``editor.model``
immediately (warnings recomputed) and schedules a debounced save; lifecycle
actions flush pending edits first so they always act on the latest content.
"""

from __future__ import annotations

import logging

from tradedocs.docengine.autosave import DebouncedDraftSaver, SaveStatus
from tradedocs.docengine.editor import (
    add_table_row,
    merge_models,
    mutate_field,
    mutate_table_cell,
    remove_table_row,
)
from tradedocs.docengine.lifecycle import IssuanceOutcome
from tradedocs.docengine.ovis import recompute_warnings
from tradedocs.docengine.service import DocumentService
from tradedocs.models.draft import DocumentDraft
from tradedocs.models.render_model import CellValue, RenderModel
from tradedocs.models.template import DocType, DocumentTemplate
from tradedocs.models.user import UserContext

logger = logging.getLogger(__name__)


class DocumentEditor:
    """Stateful editor for one (job_id, doc_type) draft.

    Use :meth:`open` to load or create the draft. Saves carry the last known
    version, so a concurrent writer surfaces as a ConflictError in
    ``saver.last_error`` instead of being silently overwritten.
    """

    def __init__(
        self,
        service: DocumentService,
        user: UserContext,
        draft: DocumentDraft,
        delay_ms: int | None = None,
    ) -> None:
        self._service = service
        self._user = user
        self.draft = draft
        self.model: RenderModel = draft.data
        self._template: DocumentTemplate = service.templates.get(draft.doc_type)
        self.saver = DebouncedDraftSaver(self._save, delay_ms)

    @classmethod
    async def open(
        cls,
        service: DocumentService,
        user: UserContext,
        job_id: str,
        doc_type: DocType,
        include_materials_markup: bool = False,
        delay_ms: int | None = None,
    ) -> DocumentEditor:
        draft = await service.load_or_create(user, job_id, doc_type, include_materials_markup)
        return cls(service, user, draft, delay_ms)

    @property
    def job_id(self) -> str:
        return self.draft.job_id

    @property
    def doc_type(self) -> DocType:
        return self.draft.doc_type

    @property
    def save_status(self) -> SaveStatus:
        return self.saver.status

    async def _save(self, model: RenderModel) -> None:
        self.draft = await self._service.save_draft(
            self._user,
            self.job_id,
            self.doc_type,
            model,
            expected_version=self.draft.version,
        )

    def _apply(self, model: RenderModel) -> None:
        self.model = recompute_warnings(self._template, model)
        self.saver.schedule(self.model)

    def set_field(self, section_id: str, field_id: str, value: CellValue) -> None:
        self._apply(mutate_field(self.model, section_id, field_id, value))

    def set_cell(self, section_id: str, row_index: int, column_id: str, value: CellValue) -> None:
        self._apply(mutate_table_cell(self.model, section_id, row_index, column_id, value))

    def add_row(self, section_id: str) -> None:
        self._apply(add_table_row(self.model, section_id))

    def remove_row(self, section_id: str, row_index: int) -> None:
        self._apply(remove_table_row(self.model, section_id, row_index))

    async def save(self) -> bool:
        """Save pending edits now. Returns False if there was nothing to save."""
        return await self.saver.flush()

    async def regenerate(self, include_materials_markup: bool | None = None) -> RenderModel:
        """Refresh from job data, keeping every value the user has entered."""
        await self.saver.flush()
        before = self.model
        self.draft = await self._service.regenerate_and_merge(
            self._user,
            self.job_id,
            self.doc_type,
            current_model=before,
            include_materials_markup=include_materials_markup,
        )

        if self.model is before:
            self.model = self.draft.data
        else:
            # Edits landed while regenerating; lay them over the merged result.
            self._apply(merge_models(self.model, self.draft.data))
        return self.model

    async def approve(self) -> DocumentDraft:
        await self.saver.flush()
        self.draft = await self._service.approve(self._user, self.job_id, self.doc_type)
        return self.draft

    async def issue(self, strict: bool = True) -> IssuanceOutcome:
        """Flush edits and issue the draft.

        Raises:
            IssuanceValidationError: If the business profile is incomplete.
        """
        await self.saver.flush()
        outcome = await self._service.issue(self._user, self.job_id, self.doc_type, strict)
        self.draft = outcome.draft
        self.model = outcome.draft.data
        return outcome

    async def close(self, save: bool = True) -> None:
        await self.saver.close(save=save)
        logger.debug("Closed editor for %s on job %s", self.doc_type, self.job_id)
