"""Forms validating interlinking requests.

The JSON endpoints translate their camelCase payloads into these forms so
request validation follows the same rules and error format everywhere.
"""

from __future__ import annotations

from typing import Any, List

from django import forms
from django.conf import settings

from .engine.types import ANSWER, MAIN_PAGE, QUESTION, InterlinkableContent
from .services import to_interlinkable

CONTENT_TYPE_CHOICES = [
    (QUESTION, 'Question'),
    (ANSWER, 'Answer'),
    (MAIN_PAGE, 'Main site page'),
]


def _clean_records(value: Any, label: str) -> List[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise forms.ValidationError(f'{label} must be a list of content items.')
    if len(value) > settings.CROSSLINKER_MAX_TARGETS:
        raise forms.ValidationError(
            f'{label} may contain at most {settings.CROSSLINKER_MAX_TARGETS} items.'
        )
    for index, record in enumerate(value, start=1):
        if not isinstance(record, dict):
            raise forms.ValidationError(f'{label} item {index} must be an object.')
        if not isinstance(record.get('id'), int) or isinstance(record.get('id'), bool):
            raise forms.ValidationError(f'{label} item {index} needs an integer id.')
    return value


class SuggestionRequestForm(forms.Form):
    """Input for single-corpus suggestions and the question-only legacy call."""

    # Source text is kept byte-for-byte; anchors are matched against it verbatim.
    content = forms.CharField(strip=False)
    source_title = forms.CharField(required=False)
    source_type = forms.ChoiceField(choices=CONTENT_TYPE_CHOICES, required=False)
    source_id = forms.IntegerField(required=False, min_value=1)
    limit = forms.IntegerField(required=False, min_value=1, max_value=settings.CROSSLINKER_MAX_LIMIT)
    target_contents = forms.JSONField(required=False)
    existing_questions = forms.JSONField(required=False)

    def clean_target_contents(self) -> List[InterlinkableContent]:
        records = _clean_records(self.cleaned_data.get('target_contents'), 'Target contents')
        return to_interlinkable(records)

    def clean_existing_questions(self) -> List[Any]:
        return _clean_records(self.cleaned_data.get('existing_questions'), 'Existing questions')

    @property
    def is_legacy(self) -> bool:
        """Requests without a source title or type use the question-only path."""

        data = getattr(self, 'cleaned_data', {})
        return not data.get('source_title') or not data.get('source_type')

    def clean(self) -> dict[str, Any]:  # type: ignore[override]
        cleaned_data = super().clean()
        if self.errors:
            return cleaned_data
        if self.is_legacy:
            if not cleaned_data.get('existing_questions'):
                raise forms.ValidationError(
                    'Provide sourceTitle and sourceType with targetContents, or existingQuestions.'
                )
        elif not cleaned_data.get('target_contents'):
            raise forms.ValidationError('targetContents must include at least one known content item.')
        return cleaned_data


class BidirectionalRequestForm(forms.Form):
    """Input for cross-corpus suggestions between the forum and the main site."""

    forum_content = forms.JSONField(required=False)
    main_site_content = forms.JSONField(required=False)
    max_suggestions_per_item = forms.IntegerField(
        required=False,
        min_value=1,
        max_value=settings.CROSSLINKER_MAX_LIMIT,
    )

    def clean_forum_content(self) -> List[InterlinkableContent]:
        records = _clean_records(self.cleaned_data.get('forum_content'), 'Forum content')
        return to_interlinkable(records, default_type=QUESTION)

    def clean_main_site_content(self) -> List[InterlinkableContent]:
        records = _clean_records(self.cleaned_data.get('main_site_content'), 'Main site content')
        return to_interlinkable(records, default_type=MAIN_PAGE)
