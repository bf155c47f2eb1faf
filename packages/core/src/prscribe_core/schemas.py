"""Declared shape of a generated checklist.

Models reply in camelCase (``checklistItems``, ``isChecked``); the aliases
accept that while the Python side uses snake_case.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from prscribe_store.models import ChecklistItem, FileChecklist


class ChecklistItemModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    description: str
    is_checked: bool = Field(default=False, alias="isChecked")


class ChecklistResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    filename: str
    explanation: str
    checklist_items: list[ChecklistItemModel] = Field(default_factory=list, alias="checklistItems")

    def to_file_checklist(self) -> FileChecklist:
        return FileChecklist(
            filename=self.filename,
            explanation=self.explanation,
            items=[
                ChecklistItem(id=i.id, description=i.description, is_checked=i.is_checked)
                for i in self.checklist_items
            ],
        )


def checklist_json_schema() -> dict:
    """JSON schema of ChecklistResult using the camelCase wire names."""
    return ChecklistResult.model_json_schema(by_alias=True)
